import logging
import os

from dotenv import load_dotenv

load_dotenv()


def _require_env(name: str) -> str:
    value = (os.environ.get(name) or "").strip()
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in str(raw).split(",") if item.strip()]


def _parse_bool_env(name: str, default: str) -> bool:
    return str(os.environ.get(name, default)).strip().lower() in {"1", "true", "yes", "on"}


def _parse_int_env(name: str, default: str, minimum: int = 0) -> int:
    raw = os.environ.get(name) or default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid integer for {name}: {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


RENTAL_DB_URL = _require_env("RENTAL_DB_URL")

CORS_ALLOW_ORIGINS = _parse_csv_env(
    "CORS_ALLOW_ORIGINS",
    "http://127.0.0.1,http://localhost,http://127.0.0.1:3000,http://localhost:3000",
)
CORS_ALLOW_CREDENTIALS = _parse_bool_env("CORS_ALLOW_CREDENTIALS", "true")
if "*" in CORS_ALLOW_ORIGINS:
    # Browsers reject wildcard origins with credentials.
    CORS_ALLOW_CREDENTIALS = False

MAX_RENTAL_DAYS = _parse_int_env("MAX_RENTAL_DAYS", "30", minimum=1)
TURNAROUND_BUFFER_DAYS = _parse_int_env("TURNAROUND_BUFFER_DAYS", "1")
MAINTENANCE_DAY_OF_MONTH = _parse_int_env("MAINTENANCE_DAY_OF_MONTH", "15", minimum=1)
if MAINTENANCE_DAY_OF_MONTH > 31:
    raise ValueError(f"MAINTENANCE_DAY_OF_MONTH must be <= 31, got {MAINTENANCE_DAY_OF_MONTH}")

LOG_LEVEL = (os.environ.get("LOG_LEVEL") or "INFO").strip().upper()


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
