from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from auth_service.utils.time import parse_duration


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database: DATABASE_URL wins, otherwise the PostgreSQL parts are composed
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: Optional[str] = None

    @property
    def SQLALCHEMY_DATABASE_URL(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Tokens
    ACCESS_TOKEN_SECRET: str
    REFRESH_TOKEN_SECRET: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRATION: str = "15m"
    REFRESH_TOKEN_EXPIRATION: str = "7d"
    EMAIL_EXPIRATION: str = "1d"
    BCRYPT_ROUNDS: int = 10

    AUTO_LOGIN_AFTER_REGISTER: bool = False
    ROTATE_REFRESH_TOKENS: bool = False
    RATE_LIMIT_ENABLED: bool = True

    # Google OAuth
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None

    APP_NAME: str = "Auth Service"
    APP_URL: str = "http://localhost:3000"
    FRONTEND_URL: str = "http://localhost:3001"

    # Email configuration
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    EMAILS_FROM: Optional[str] = None
    SMTP_TLS: bool = True  # Default to True for security
    SMTP_SSL: bool = False  # Typically use either TLS or SSL, not both

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    DEBUG: bool = False

    @field_validator("SMTP_PORT", mode="before")
    @classmethod
    def cast_smtp_port(cls, v):
        if v is None or v == "":
            return 587
        # Remove comments and whitespace
        if isinstance(v, str):
            v = v.split('#')[0].strip()
        return int(v)

    @field_validator("ACCESS_TOKEN_EXPIRATION", "REFRESH_TOKEN_EXPIRATION", "EMAIL_EXPIRATION")
    @classmethod
    def check_duration(cls, v: str) -> str:
        parse_duration(v)
        return v


settings = Settings()
