"""
Centralized configuration module for application-wide settings.

This module provides centralized configuration for timezone handling,
clinic scheduling rules and ledger rates. Every value is read from the
environment once at import time and cached in a module-level global.
"""

import logging
import os
from decimal import Decimal
from typing import FrozenSet
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

# ===========================
# Timezone Configuration
# ===========================


def get_app_timezone() -> ZoneInfo:
    """
    Get the application timezone from environment variable.

    Returns:
        ZoneInfo: Application timezone (defaults to UTC if not configured)

    Environment Variables:
        TZ: Timezone identifier (e.g., 'Africa/Cairo', 'UTC')
            Default: 'UTC'
    """
    tz_name = os.getenv("TZ", "UTC")

    try:
        return ZoneInfo(tz_name)
    except Exception as e:
        logger.warning(
            f"Invalid timezone '{tz_name}' specified in TZ environment variable. "
            f"Falling back to UTC. Error: {e}"
        )
        return ZoneInfo("UTC")


# Global timezone instance - initialized once at import time
APP_TZ = get_app_timezone()


# ===========================
# Database Configuration
# ===========================


def get_database_url() -> str:
    """
    Get the database URL.

    Environment Variables:
        DATABASE_URL: SQLAlchemy URL. PostgreSQL URLs get a pooled engine,
            anything else (SQLite in development and tests) a minimal one.
            Default: 'sqlite:///./clinic.db'
    """
    return os.getenv("DATABASE_URL", "sqlite:///./clinic.db")


# ===========================
# Schedule Configuration
# ===========================

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

DEFAULT_OPEN_DAYS = "sunday,tuesday,wednesday,saturday"
OPEN_DAY_COUNT = 4


def parse_open_days(value: str) -> FrozenSet[int]:
    """
    Parse a comma separated list of weekday names into ``date.weekday()``
    numbers (Monday=0 ... Sunday=6).

    Raises:
        ValueError: unknown weekday name or not exactly four distinct days

    Examples:
        >>> sorted(parse_open_days("sunday,tuesday,wednesday,saturday"))
        [1, 2, 5, 6]
    """
    days = set()
    for raw in value.split(","):
        name = raw.strip().lower()
        if not name:
            continue
        if name not in WEEKDAY_NAMES:
            raise ValueError(f"Unknown weekday name: {raw.strip()!r}")
        days.add(WEEKDAY_NAMES.index(name))

    if len(days) != OPEN_DAY_COUNT:
        raise ValueError(
            f"Clinic must have exactly {OPEN_DAY_COUNT} open days, got {len(days)}"
        )
    return frozenset(days)


def get_clinic_open_days() -> FrozenSet[int]:
    """
    Get the weekdays on which IN_CLINIC sessions may be scheduled.

    Environment Variables:
        CLINIC_OPEN_DAYS: Comma separated weekday names
            Default: 'sunday,tuesday,wednesday,saturday'

    Falls back to the default set when the variable is malformed.
    """
    raw = os.getenv("CLINIC_OPEN_DAYS", DEFAULT_OPEN_DAYS)
    try:
        return parse_open_days(raw)
    except ValueError as e:
        logger.warning(
            "Invalid CLINIC_OPEN_DAYS, falling back to default open days",
            extra={"context": {"value": raw, "error": str(e)}},
        )
        return parse_open_days(DEFAULT_OPEN_DAYS)


CLINIC_OPEN_DAYS = get_clinic_open_days()


def get_free_return_window_days() -> int:
    """
    Get the FREE_RETURN window length in days.

    Environment Variables:
        FREE_RETURN_WINDOW_DAYS: Default 10
    """
    try:
        return int(os.getenv("FREE_RETURN_WINDOW_DAYS", "10"))
    except (TypeError, ValueError):
        return 10


FREE_RETURN_WINDOW_DAYS = get_free_return_window_days()


# ===========================
# Ledger Configuration
# ===========================


def _get_rate(env_name: str, default: str) -> Decimal:
    raw = os.getenv(env_name, default)
    try:
        rate = Decimal(raw)
    except Exception:
        logger.warning(
            f"Invalid {env_name} value '{raw}', using default {default}",
        )
        return Decimal(default)
    if rate <= 0:
        logger.warning(f"{env_name} must be positive, using default {default}")
        return Decimal(default)
    return rate


def get_in_clinic_rate() -> Decimal:
    """
    Flat income for one IN_CLINIC visit.

    Environment Variables:
        IN_CLINIC_RATE: Default 15000
    """
    return _get_rate("IN_CLINIC_RATE", "15000")


def get_online_rate() -> Decimal:
    """
    Flat income for one ONLINE session.

    Environment Variables:
        ONLINE_RATE: Default 20000
    """
    return _get_rate("ONLINE_RATE", "20000")


IN_CLINIC_RATE = get_in_clinic_rate()
ONLINE_RATE = get_online_rate()


def log_clinic_config():
    """
    Log the active clinic configuration.

    Should be called during application startup to provide visibility
    into the scheduling and ledger rules being applied.
    """
    logger.info(
        "Clinic configuration initialized",
        extra={
            "context": {
                "timezone": str(APP_TZ),
                "open_days": sorted(WEEKDAY_NAMES[d] for d in CLINIC_OPEN_DAYS),
                "free_return_window_days": FREE_RETURN_WINDOW_DAYS,
                "in_clinic_rate": str(IN_CLINIC_RATE),
                "online_rate": str(ONLINE_RATE),
            }
        },
    )
