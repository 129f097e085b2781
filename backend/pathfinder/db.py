from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# Base class for creating tables
Base = declarative_base()


def make_engine(database_url: str):
    """Create a connection to the remote database.

    pool_pre_ping makes a dead server show up on first use instead of on
    some later request.
    """
    return create_engine(database_url, pool_pre_ping=True)


def make_session_factory(engine):
    # This creates sessions to talk to the database
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
