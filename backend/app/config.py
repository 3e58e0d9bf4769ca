from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Literal

from pydantic import AliasChoices, AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="PairChat API", description="Human readable service name")
    environment: str = Field(default="development", description="Deployment environment name")
    debug: bool = Field(default=False, description="Enable debug mode")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:3000",
            "http://127.0.0.1:5173",
        ],
        description="List of allowed CORS origins",
    )

    cors_allow_origin_regex: str | None = Field(
        default=r"^https?://(localhost|127\.0\.0\.1|\[::1\])(:\d+)?$",
        description="Optional regular expression that matches allowed CORS origins",
    )

    database_user: str = Field(
        default="pairchat", validation_alias=AliasChoices("DB_USER", "database_user")
    )
    database_password: str = Field(
        default="pairchat", validation_alias=AliasChoices("DB_PASSWORD", "database_password")
    )
    database_host: str = Field(
        default="db", validation_alias=AliasChoices("DB_HOST", "database_host")
    )
    database_port: int = Field(
        default=3306, validation_alias=AliasChoices("DB_PORT", "database_port")
    )
    database_name: str = Field(
        default="pairchat", validation_alias=AliasChoices("DB_NAME", "database_name")
    )
    database_url_override: str | None = Field(
        default=None,
        validation_alias="DATABASE_URL",
        description="Full SQLAlchemy URL; takes precedence over the DB_* parts",
    )

    jwt_secret_key: str = Field(default="changeme")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24 * 7)

    auth_cookie_name: str = Field(default="jwt")
    auth_cookie_secure: bool = Field(default=False)
    auth_cookie_samesite: Literal["lax", "strict", "none"] = Field(default="strict")

    chat_message_max_length: int = Field(default=2000)
    search_result_limit: int = Field(
        default=100,
        description="Maximum number of hits returned by message search",
    )

    websocket_keepalive_timeout_seconds: float = Field(default=30)
    websocket_keepalive_ping_interval_seconds: float = Field(default=25)

    media_root: Path = Field(default=Path("uploads"))
    media_base_url: str = Field(default="/api/media")
    max_upload_size: int = Field(
        default=10 * 1024 * 1024, description="Maximum upload size in bytes"
    )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"mysql+pymysql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return v
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("media_root", mode="before")
    @classmethod
    def resolve_media_root(cls, value: str | Path) -> Path:
        if isinstance(value, Path):
            return value.resolve()
        return Path(value).resolve()


@lru_cache
def get_settings() -> Settings:
    return Settings()
