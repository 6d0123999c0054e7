"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent
DEFAULT_DB_URL = f"sqlite:///{BASE / 'coursemanager.db'}"


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    ENV: str
    DATABASE_URL: str
    SQL_ECHO: bool
    ALLOW_DEV_CORS: bool
    ALLOW_SQLITE_IN_PROD: bool
    COLLAPSE_DOMAIN_ERRORS: bool
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DB_URL)
        self.SQL_ECHO = _flag("SQL_ECHO", "false")
        self.ALLOW_DEV_CORS = _flag("ALLOW_DEV_CORS", "true")
        self.ALLOW_SQLITE_IN_PROD = _flag("ALLOW_SQLITE_IN_PROD", "false")
        # legacy clients expect every domain failure as a plain 400
        self.COLLAPSE_DOMAIN_ERRORS = _flag("COLLAPSE_DOMAIN_ERRORS", "false")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_SQLITE_IN_PROD and self.DATABASE_URL == DEFAULT_DB_URL:
            raise RuntimeError("DATABASE_URL must be set to a real database in non-dev environments")


settings = Settings()
