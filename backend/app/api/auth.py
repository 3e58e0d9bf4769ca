"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_media_uploader
from app.core.security import (
    clear_auth_cookie,
    create_access_token,
    get_password_hash,
    set_auth_cookie,
    verify_password,
)
from app.core.storage import MediaUploader, MediaUploadError
from app.database import get_db
from app.models import User
from app.schemas import LoginRequest, ProfileUpdate, SignupRequest, UserRead

router = APIRouter()

logger = logging.getLogger(__name__)


def _start_session(response: Response, user: User) -> None:
    token = create_access_token({"sub": user.id})
    set_auth_cookie(response, token)


@router.post("/signup", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, response: Response, db: Session = Depends(get_db)) -> User:
    """Register a new user and sign them in."""

    email = payload.email.lower()
    existing_user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing_user is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already exists")

    user = User(
        full_name=payload.full_name,
        email=email,
        hashed_password=get_password_hash(payload.password),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already exists") from exc
    db.refresh(user)

    _start_session(response, user)
    logger.info("Registered user %s", user.id)
    return user


@router.post("/login", response_model=UserRead)
def login(credentials: LoginRequest, response: Response, db: Session = Depends(get_db)) -> User:
    """Authenticate a user and set the session cookie."""

    user = db.execute(
        select(User).where(User.email == credentials.email.lower())
    ).scalar_one_or_none()
    if user is None or not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    _start_session(response, user)
    return user


@router.post("/logout")
def logout(response: Response) -> dict[str, str]:
    clear_auth_cookie(response)
    return {"message": "Logged out successfully"}


@router.get("/check", response_model=UserRead)
def check_auth(current_user: User = Depends(get_current_user)) -> User:
    return current_user


@router.put("/update-profile", response_model=UserRead)
async def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    uploader: MediaUploader = Depends(get_media_uploader),
) -> User:
    """Upload a new avatar and store its URL on the profile."""

    try:
        url = await uploader.upload_image(current_user.id, payload.profile_pic)
    except MediaUploadError as exc:
        logger.exception("Profile picture upload failed for user %s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload profile picture",
        ) from exc

    current_user.profile_pic = url
    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    return current_user
