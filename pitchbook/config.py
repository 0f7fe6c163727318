from functools import lru_cache
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="Asia/Amman", alias="TIMEZONE")

    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    postgres_db: str = Field(default="pitchbook", alias="POSTGRES_DB")
    postgres_user: str = Field(default="pitchbook", alias="POSTGRES_USER")
    postgres_password: str = Field(default="pitchbook", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    jwt_secret: str = Field(default="", alias="JWT_SECRET")
    jwt_refresh_secret: str = Field(default="", alias="JWT_REFRESH_SECRET")
    access_token_expire_min: int = Field(default=15, alias="ACCESS_TOKEN_EXPIRE_MIN")
    refresh_token_expire_days: int = Field(default=7, alias="REFRESH_TOKEN_EXPIRE_DAYS")

    booking_hold_min: int = Field(default=20, alias="BOOKING_HOLD_MIN")
    expire_interval_sec: int = Field(default=60, alias="EXPIRE_INTERVAL_SEC")
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")

    default_admin_username: str = Field(default="admin", alias="DEFAULT_ADMIN_USERNAME")
    default_admin_password: str = Field(default="admin123", alias="DEFAULT_ADMIN_PASSWORD")

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def _check_token_settings(self) -> "Settings":
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET is required")
        if not self.jwt_refresh_secret:
            raise ValueError("JWT_REFRESH_SECRET is required")
        if self.jwt_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must differ")
        if self.access_token_expire_min <= 0 or self.refresh_token_expire_days <= 0:
            raise ValueError("Token lifetimes must be positive")
        if self.booking_hold_min <= 0:
            raise ValueError("BOOKING_HOLD_MIN must be positive")
        return self

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv(override=False)
    return Settings(**os.environ)
