# backend/pathfinder/auth.py
import os
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from passlib.context import CryptContext

from . import config, schemas

# -------------------- CONFIG --------------------
ALGORITHM = "HS256"
ADMIN_SUBJECT = "admin"

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="admin/login")

router = APIRouter()


# -------------------- PASSWORD UTILS --------------------
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# A pre-hashed password may be supplied; otherwise hash the plain one once.
ADMIN_PASSWORD_HASH = os.getenv("ADMIN_PASSWORD_HASH") or get_password_hash(config.ADMIN_PASSWORD)


# -------------------- JWT UTILS --------------------
def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=ALGORITHM)


# -------------------- GET CURRENT ADMIN --------------------
def get_current_admin(token: str = Depends(oauth2_scheme)) -> str:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception

    if payload.get("sub") != ADMIN_SUBJECT:
        raise credentials_exception

    return payload["sub"]


# -------------------- LOGIN --------------------
@router.post("/admin/login", response_model=schemas.Token)
def admin_login(payload: schemas.AdminLoginIn):
    if not verify_password(payload.password, ADMIN_PASSWORD_HASH):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token({"sub": ADMIN_SUBJECT})
    return {"access_token": token, "token_type": "bearer"}
