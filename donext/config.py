"""
DoNext: centralized configuration.

Loads settings from the environment (and a .env file at the project root)
and maps them onto a Flask config dict.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

DEFAULT_SECRET_KEY = "dev-key-123"


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///donext.db"

    # Sessions
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    SESSION_MAX_AGE: int = 60 * 60 * 24 * 7

    # Passwords
    PASSWORD_MIN_LENGTH: int = 6
    PASSWORD_HASH_METHOD: str = "scrypt"
    RESET_TOKEN_TTL: int = 60 * 60
    APP_URL: str = "http://localhost:5000"

    # Calendar providers
    GOOGLE_CALENDAR_CLIENT_ID: str = ""
    GOOGLE_CALENDAR_CLIENT_SECRET: str = ""
    GOOGLE_CALENDAR_REDIRECT_URI: str = "http://localhost:5000/api/calendar/callback"
    OUTLOOK_CLIENT_ID: str = ""
    OUTLOOK_CLIENT_SECRET: str = ""
    OUTLOOK_REDIRECT_URI: str = "http://localhost:5000/api/calendar/callback"
    APPLE_CALENDAR_CLIENT_ID: str = ""
    APPLE_CALENDAR_CLIENT_SECRET: str = ""
    APPLE_CALENDAR_REDIRECT_URI: str = "http://localhost:5000/api/calendar/callback"
    PROVIDER_TIMEOUT: int = 15

    # Demo account used by seed_demo
    DEMO_USER_EMAIL: str = "demo@donext.com"
    DEMO_USER_NAME: str = "John Doe"
    DEMO_USER_PASSWORD: str = "DemoPassword123!"

    @field_validator("SESSION_MAX_AGE", "RESET_TOKEN_TTL", "PASSWORD_MIN_LENGTH", "PROVIDER_TIMEOUT", mode="before")
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    def validate_for_production(self) -> list[str]:
        """Return a list of configuration problems that block a production start."""
        problems = []
        if not self.DATABASE_URL:
            problems.append("DATABASE_URL is not set")
        if self.is_production and self.SECRET_KEY == DEFAULT_SECRET_KEY:
            problems.append("SECRET_KEY must be changed in production")
        return problems

    def to_flask_config(self) -> dict:
        return {
            "ENV_NAME": self.ENV,
            "SQLALCHEMY_DATABASE_URI": self.DATABASE_URL,
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "SECRET_KEY": self.SECRET_KEY,
            "SESSION_COOKIE_NAME": "userId",
            "SESSION_COOKIE_HTTPONLY": True,
            "SESSION_COOKIE_SAMESITE": "Lax",
            "SESSION_COOKIE_SECURE": self.is_production,
            "PERMANENT_SESSION_LIFETIME": self.SESSION_MAX_AGE,
            "PASSWORD_MIN_LENGTH": self.PASSWORD_MIN_LENGTH,
            "PASSWORD_HASH_METHOD": self.PASSWORD_HASH_METHOD,
            "RESET_TOKEN_TTL": self.RESET_TOKEN_TTL,
            "APP_URL": self.APP_URL,
            "PROVIDER_TIMEOUT": self.PROVIDER_TIMEOUT,
            "CALENDAR_PROVIDERS": {
                "google": {
                    "client_id": self.GOOGLE_CALENDAR_CLIENT_ID,
                    "client_secret": self.GOOGLE_CALENDAR_CLIENT_SECRET,
                    "redirect_uri": self.GOOGLE_CALENDAR_REDIRECT_URI,
                },
                "outlook": {
                    "client_id": self.OUTLOOK_CLIENT_ID,
                    "client_secret": self.OUTLOOK_CLIENT_SECRET,
                    "redirect_uri": self.OUTLOOK_REDIRECT_URI,
                },
                "apple": {
                    "client_id": self.APPLE_CALENDAR_CLIENT_ID,
                    "client_secret": self.APPLE_CALENDAR_CLIENT_SECRET,
                    "redirect_uri": self.APPLE_CALENDAR_REDIRECT_URI,
                },
            },
        }


def load_settings() -> Settings:
    """Build settings from the current environment; unset keys keep their defaults."""
    values = {name: os.environ[name] for name in Settings.model_fields if name in os.environ}
    return Settings(**values)
