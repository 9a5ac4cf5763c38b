import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from slotkeeper.core import config
from slotkeeper.models.organization import Organization

logger = logging.getLogger(__name__)


def get_timezone(name: str | None) -> ZoneInfo:
    """Return the zone for ``name``, falling back to the configured default."""
    if not name:
        return ZoneInfo(config.DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning('Unknown timezone %r, using %s', name, config.DEFAULT_TIMEZONE)
        return ZoneInfo(config.DEFAULT_TIMEZONE)


def organization_timezone(db: Session, organization_id: int | None) -> ZoneInfo:
    if organization_id is None:
        return get_timezone(None)
    organization = db.get(Organization, organization_id)
    return get_timezone(organization.timezone if organization else None)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way out; stored instants are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def localize(value: datetime, tz: ZoneInfo) -> datetime:
    """Interpret naive ``value`` as wall-clock time in ``tz``; convert aware values."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def local_instant(day: date, wall_time: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, wall_time, tzinfo=tz)


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC instants of ``[startOfDay, startOfNextDay)`` for ``day`` in ``tz``."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return as_utc(start), as_utc(end)
