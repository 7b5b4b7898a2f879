# api/users.py
# Handles user registration, login and the caller's own profile.

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

# Import local modules
from app import crud
from app import schemas
from app.api.deps import get_current_user_id
from app.core.config import settings
from app.core.errors import NotFound, ValidationError
from app.core.rate_limit import limiter
from app.core.security import create_access_token, verify_password
from app.db.session import get_db

# Create an API router
router = APIRouter()

# Get a logger instance
logger = logging.getLogger(__name__)


@router.post("/register", response_model=schemas.Token, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def register(request: Request, user_in: schemas.UserCreate, db: Session = Depends(get_db)):
    """
    Register a new user and log them straight in.
    """
    if crud.get_user_by_email(db, email=user_in.email):
        logger.warning(f"Registration attempt for existing email {user_in.email}")
        raise ValidationError("User already exists")

    user = crud.create_user(db, user_in)
    logger.info(f"User registered: {user.id}")
    return {"token": create_access_token(user.id), "user_id": user.id}


@router.post("/login", response_model=schemas.Token)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def login(request: Request, credentials: schemas.UserLogin, db: Session = Depends(get_db)):
    """
    Exchange email and password for an access token.
    """
    user = crud.get_user_by_email(db, email=credentials.email)
    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.warning("Incorrect email or password")
        raise ValidationError("Invalid credentials")
    return {"token": create_access_token(user.id), "user_id": user.id}


@router.get("/me", response_model=schemas.User)
def read_me(db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
    """
    The caller's own profile.
    """
    user = crud.get_user(db, user_id)
    if user is None:
        logger.warning(f"Token for unknown user {user_id}")
        raise NotFound("User")
    return user


@router.put("/me", response_model=schemas.User)
def update_me(
    user_update: schemas.UserUpdate,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    """
    Update name, email and/or avatar of the caller.
    """
    if user_update.email is not None:
        existing = crud.get_user_by_email(db, email=user_update.email)
        if existing is not None and existing.id != user_id:
            raise ValidationError("Email already in use")

    user = crud.update_user(db, user_id, user_update)
    if user is None:
        raise NotFound("User")
    return user
