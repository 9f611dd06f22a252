"""Application settings and validation."""

import os
from pathlib import Path

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    TOKEN_TTL_SECONDS: int
    PASSWORD_HASH_ROUNDS: int
    DATA_DIR: Path
    LOCK_TIMEOUT_SECONDS: float
    FRONTEND_URL: str
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.TOKEN_TTL_SECONDS = _int_env("TOKEN_TTL_SECONDS", 3600)
        self.PASSWORD_HASH_ROUNDS = _int_env("PASSWORD_HASH_ROUNDS", 29000)
        self.DATA_DIR = Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR))).expanduser()
        self.LOCK_TIMEOUT_SECONDS = _float_env("LOCK_TIMEOUT_SECONDS", 10.0)
        self.FRONTEND_URL = os.getenv("FRONTEND_URL", "").strip().rstrip("/")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if not self.JWT_SECRET.strip():
            raise RuntimeError("JWT_SECRET must be set; tokens cannot be signed without it")
        if self.TOKEN_TTL_SECONDS <= 0:
            raise RuntimeError("TOKEN_TTL_SECONDS must be positive")
        if self.PASSWORD_HASH_ROUNDS < 1:
            raise RuntimeError("PASSWORD_HASH_ROUNDS must be >= 1")
        if self.LOCK_TIMEOUT_SECONDS <= 0:
            raise RuntimeError("LOCK_TIMEOUT_SECONDS must be positive")


settings = Settings()
