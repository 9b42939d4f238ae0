"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    DATABASE_URL: str
    AUTH_MODE: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    BASE_URL: str
    WRITE_RATE_LIMIT_PER_MIN: int
    WRITE_RATE_LIMIT_WINDOW_SECONDS: int
    LNURL_NAME: str
    LNURL_CALLBACK: str
    LNURL_DOMAIN: str
    LNURL_MIN_SENDABLE: int
    LNURL_MAX_SENDABLE: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'app.db'}")
        self.AUTH_MODE = os.getenv("AUTH_MODE", "firebase").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.BASE_URL = os.getenv("BASE_URL", "http://localhost:8000").rstrip("/")
        self.WRITE_RATE_LIMIT_PER_MIN = int(os.getenv("WRITE_RATE_LIMIT_PER_MIN", "60"))
        self.WRITE_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("WRITE_RATE_LIMIT_WINDOW_SECONDS", "60"))
        # LNURL-pay document served under /.well-known/lnurlp/<name>
        self.LNURL_NAME = os.getenv("LNURL_NAME", "lnconnext")
        self.LNURL_CALLBACK = os.getenv(
            "LNURL_CALLBACK", "https://lates.lightningok.win/lnurlp/api/v1/lnurl/cb/HEZLVv"
        )
        self.LNURL_DOMAIN = os.getenv("LNURL_DOMAIN", "lates.lightningok.win")
        self.LNURL_MIN_SENDABLE = int(os.getenv("LNURL_MIN_SENDABLE", "1000"))
        self.LNURL_MAX_SENDABLE = int(os.getenv("LNURL_MAX_SENDABLE", "1000000000"))
        self._validate()

    def _validate(self):
        if self.AUTH_MODE not in ("firebase", "local"):
            raise RuntimeError("AUTH_MODE must be 'firebase' or 'local'")
        if (
            self.ENV != "dev"
            and self.AUTH_MODE == "local"
            and not self.ALLOW_INSECURE_JWT
            and self.JWT_SECRET == "change_me_for_prod"
        ):
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.LNURL_MIN_SENDABLE > self.LNURL_MAX_SENDABLE:
            raise RuntimeError("LNURL_MIN_SENDABLE must not exceed LNURL_MAX_SENDABLE")


settings = Settings()
