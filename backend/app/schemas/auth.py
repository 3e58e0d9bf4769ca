"""Schemas for authentication endpoints."""

from pydantic import BaseModel, EmailStr, Field, constr


class SignupRequest(BaseModel):
    """Payload for creating a new account."""

    full_name: constr(strip_whitespace=True, min_length=1, max_length=128) = Field(
        ..., description="Name shown to other users"
    )
    email: EmailStr = Field(..., description="Unique e-mail address used to log in")
    password: constr(min_length=6, max_length=128) = Field(
        ..., description="Plain text password that will be hashed before storing"
    )


class LoginRequest(BaseModel):
    """Payload for user login."""

    email: EmailStr = Field(..., description="Account e-mail address")
    password: constr(min_length=1, max_length=128) = Field(..., description="Account password")


class ProfileUpdate(BaseModel):
    """Payload for replacing the avatar image."""

    profile_pic: constr(strip_whitespace=True, min_length=1) = Field(
        ..., description="Image as a data URL or base64 payload"
    )
