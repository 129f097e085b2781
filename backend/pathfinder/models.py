# backend/pathfinder/models.py
# Column names match the record field names in schemas.py so rows and
# JSON documents convert one-to-one.
from sqlalchemy import Column, String, Integer, BigInteger, Text, JSON
from .db import Base


class Candidate(Base):
    __tablename__ = "candidates"
    id = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    current_company = Column(String(255), default="")
    current_salary = Column(String(64), default="")
    notice_period = Column(String(64), default="")
    assigned_paper_id = Column(String(64), nullable=True)
    registered_at = Column(BigInteger, nullable=False)


class QuestionPaper(Base):
    __tablename__ = "papers"
    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, default="")
    duration = Column(Integer, default=60)  # minutes
    questions = Column(JSON, nullable=False)  # ordered list of question dicts
    created_at = Column(BigInteger, nullable=False)


class ExamAssignment(Base):
    __tablename__ = "assignments"
    id = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    paper_id = Column(String(64), nullable=False)
    assigned_by = Column(String(64), default="Admin")
    assigned_at = Column(BigInteger, nullable=False)


class ExamSubmission(Base):
    __tablename__ = "submissions"
    candidate_id = Column(String(64), primary_key=True)
    paper_id = Column(String(64), nullable=False)
    start_time = Column(BigInteger, nullable=False)
    end_time = Column(BigInteger, nullable=True)
    answers = Column(JSON, nullable=False)  # mapping question_id -> answer text
    proctor_logs = Column(JSON, nullable=False)  # ordered list of log dicts
    status = Column(String(32), default="IN_PROGRESS")
    ai_evaluation = Column(JSON, nullable=True)
