"""
Settings Store — key/value attendance rules with in-code defaults.

Reads never fail: a missing key or an unreachable datastore yields the
caller's default. Writes validate every value first and then upsert all
keys in one transaction.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from facecheck.core.config import settings as app_settings
from facecheck.db.session import safe_rollback
from facecheck.models.setting import Setting

logger = logging.getLogger(__name__)

WORK_START_TIME = "work_start_time"
LATE_THRESHOLD_MINUTES = "late_threshold_minutes"
CONFIDENCE_THRESHOLD = "confidence_threshold"
TIMEZONE_OFFSET = "timezone_offset"

DEFAULTS: dict[str, str] = {
    WORK_START_TIME: "09:00",
    LATE_THRESHOLD_MINUTES: "15",
    CONFIDENCE_THRESHOLD: "0.5",
    TIMEZONE_OFFSET: "+00:00",
}

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_OFFSET_RE = re.compile(r"^[+-]([01]\d|2[0-3]):([0-5]\d)$")


# ── Validation ──────────────────────────────────────────────────────
def _validate_work_start(value: str) -> str:
    if not _HHMM_RE.match(value):
        raise ValueError("work_start_time must be HH:MM (24h)")
    return value


def _validate_late_threshold(value: str) -> str:
    try:
        minutes = int(value)
    except ValueError:
        raise ValueError("late_threshold_minutes must be an integer") from None
    if minutes < 0:
        raise ValueError("late_threshold_minutes must not be negative")
    return str(minutes)


def _validate_confidence(value: str) -> str:
    try:
        threshold = float(value)
    except ValueError:
        raise ValueError("confidence_threshold must be a number") from None
    if not 0.0 <= threshold <= 1.0:
        raise ValueError("confidence_threshold must be between 0 and 1")
    return value


def _validate_offset(value: str) -> str:
    if not _OFFSET_RE.match(value):
        raise ValueError("timezone_offset must look like +05:00 or -03:30")
    return value


_VALIDATORS: dict[str, Callable[[str], str]] = {
    WORK_START_TIME: _validate_work_start,
    LATE_THRESHOLD_MINUTES: _validate_late_threshold,
    CONFIDENCE_THRESHOLD: _validate_confidence,
    TIMEZONE_OFFSET: _validate_offset,
}


def validate_settings(updates: Mapping[str, object]) -> dict[str, str]:
    """Return the updates as validated strings; raise ValueError on the first bad entry."""
    cleaned: dict[str, str] = {}
    for key, raw in updates.items():
        validator = _VALIDATORS.get(key)
        if validator is None:
            raise ValueError(f"Unknown setting: {key}")
        if isinstance(raw, bool) or raw is None:
            raise ValueError(f"{key} must be a string or number")
        cleaned[key] = validator(str(raw).strip())
    return cleaned


# ── Reads ───────────────────────────────────────────────────────────
async def get(db: AsyncSession, key: str, default: str | None = None) -> str:
    """Read one setting, falling back to *default* (or the built-in default)."""
    fallback = default if default is not None else DEFAULTS.get(key, "")
    try:
        result = await asyncio.wait_for(
            db.execute(select(Setting.value).where(Setting.key == key)),
            timeout=app_settings.DB_QUERY_TIMEOUT_SECONDS,
        )
        value = result.scalar_one_or_none()
    except (SQLAlchemyError, asyncio.TimeoutError, OSError) as exc:
        logger.warning("Could not read setting %s (using %r): %s", key, fallback, exc)
        await safe_rollback(db)
        return fallback
    return fallback if value is None else value


async def get_all(db: AsyncSession) -> dict[str, str]:
    """Return every stored setting laid over the defaults."""
    result = await db.execute(select(Setting))
    stored = {row.key: row.value for row in result.scalars().all()}
    return {**DEFAULTS, **stored}


async def get_float(db: AsyncSession, key: str, default: float) -> float:
    raw = await get(db, key, str(default))
    try:
        return float(raw)
    except ValueError:
        logger.warning("Setting %s has non-numeric value %r; using %s", key, raw, default)
        return default


async def get_int(db: AsyncSession, key: str, default: int) -> int:
    raw = await get(db, key, str(default))
    try:
        return int(raw)
    except ValueError:
        logger.warning("Setting %s has non-integer value %r; using %s", key, raw, default)
        return default


# ── Writes ──────────────────────────────────────────────────────────
async def set_all(db: AsyncSession, updates: Mapping[str, object]) -> dict[str, str]:
    """Validate and upsert *updates*; return the full settings map afterwards."""
    cleaned = validate_settings(updates)
    if cleaned:
        result = await db.execute(select(Setting).where(Setting.key.in_(cleaned)))
        existing = {row.key: row for row in result.scalars().all()}
        for key, value in cleaned.items():
            row = existing.get(key)
            if row is None:
                db.add(Setting(key=key, value=value))
            else:
                row.value = value
        await db.commit()
        logger.info("Settings updated: %s", cleaned)
    return await get_all(db)

