"""FastAPI dependencies for the API layer."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from pairchat.realtime import DeliveryChannel, EventPublisher, get_delivery_channel

from app.config import get_settings
from app.core.identifiers import is_valid_identifier
from app.core.security import decode_access_token
from app.core.storage import LocalMediaUploader, MediaUploader
from app.database import get_db
from app.models import User

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

_media_uploader = LocalMediaUploader()


def extract_token(cookies: dict[str, str], authorization: str | None) -> str | None:
    """Pick the access token from a bearer header, falling back to the auth cookie."""

    if authorization and authorization.startswith("Bearer "):
        token = authorization.removeprefix("Bearer ").strip()
        if token:
            return token
    return cookies.get(settings.auth_cookie_name) or None


def get_current_user(
    request: Request,
    bearer_token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Retrieve the current user from the auth cookie or bearer token."""

    token = bearer_token or request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - No token provided",
        )
    return get_user_from_token(token, db)


def get_user_from_token(token: str, db: Session) -> User:
    """Resolve a user from a JWT token or raise an HTTP 401 error."""

    payload = decode_access_token(token)
    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not is_valid_identifier(user_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return user


def get_event_publisher(
    channel: DeliveryChannel = Depends(get_delivery_channel),
) -> EventPublisher:
    return channel


def get_media_uploader() -> MediaUploader:
    return _media_uploader
