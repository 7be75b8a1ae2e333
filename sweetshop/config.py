"""Runtime configuration for the app (replaceable during tests/runtime)."""
import os
import re
from typing import NamedTuple

DEFAULT_EXPIRES_IN = 60 * 60 * 24 * 7  # 7 days

_UNITS = {"s": 1, "m": 60, "h": 60 * 60, "d": 60 * 60 * 24}


class Settings(NamedTuple):
    database_url: str
    jwt_secret: str
    jwt_expires_in: int
    log_level: str = "INFO"


def parse_duration(value: str | int | None, default: int = DEFAULT_EXPIRES_IN) -> int:
    """Turn ``"7d"``, ``"12h"``, ``"30m"``, ``"45s"`` or ``"3600"`` into seconds."""
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    m = re.fullmatch(r"\s*(\d+)\s*([smhd]?)\s*", value)
    if not m:
        raise ValueError(f"invalid duration: {value!r}")
    amount, unit = m.groups()
    return int(amount) * _UNITS[unit or "s"]


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./sweetshop.db"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        jwt_expires_in=parse_duration(os.getenv("JWT_EXPIRES_IN")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


state = load_settings()


def set_settings(value: Settings):
    global state
    state = value


def get_settings() -> Settings:
    return state
