"""Schemas related to user profiles."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UserRead(BaseModel):
    """Public-facing user information; never includes the credential hash."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str
    email: str
    profile_pic: str | None = None
    created_at: datetime
