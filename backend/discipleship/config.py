"""Application settings and validation."""

import os
from pathlib import Path

from . import __version__

BASE = Path(__file__).resolve().parent.parent
DEFAULT_DB_URL = f"sqlite:///{BASE / 'app.db'}"
DEFAULT_JWT_SECRET = "change_me_for_prod"


class Settings:
    ENV: str
    DATABASE_URL: str
    DATABASE_ECHO: bool
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    LOG_LEVEL: str
    ALLOW_DEV_CORS: bool
    CORS_ORIGINS: list
    PUBLIC_API_URL: str
    API_VERSION: str

    def __init__(self, **overrides):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DB_URL)
        self.DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() == "true"
        self.JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET)
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.CORS_ORIGINS = [
            o.strip()
            for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
            if o.strip()
        ]
        # Backend the web frontend proxies `/api/*` to.
        self.PUBLIC_API_URL = os.getenv("PUBLIC_API_URL", "http://localhost:3001")
        self.API_VERSION = os.getenv("API_VERSION", __version__)
        for key, value in overrides.items():
            if not hasattr(self, key):
                raise TypeError(f"unknown setting: {key}")
            setattr(self, key, value)
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.JWT_EXPIRE_HOURS <= 0:
            raise RuntimeError("JWT_EXPIRE_HOURS must be positive")


_settings = None


def get_settings() -> Settings:
    """Return the process-wide settings, built from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
