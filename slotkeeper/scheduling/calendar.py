import logging
from datetime import time

from sqlalchemy.orm import Session

from slotkeeper.models.availability import AvailabilityWindow
from slotkeeper.scheduling.errors import InvalidTimeRange, OverlappingWindow, RecordNotFound

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')


def validate_window_bounds(weekday: int, start_time: time, end_time: time) -> None:
    if weekday not in range(7):
        raise InvalidTimeRange('Weekday must be between 0 (Monday) and 6 (Sunday).')
    if start_time >= end_time:
        raise InvalidTimeRange('Start time must be before end time.')


class AvailabilityCalendar:
    """Recurring weekly working hours of professionals.

    Active windows of one professional never overlap on the same weekday;
    every write checks this before it reaches the session.
    """

    def __init__(self, db: Session):
        self.db = db

    def windows_for(self, professional_id: int, weekday: int) -> list[AvailabilityWindow]:
        return (
            self.db.query(AvailabilityWindow)
            .filter(
                AvailabilityWindow.professional_id == professional_id,
                AvailabilityWindow.weekday == weekday,
                AvailabilityWindow.active.is_(True),
            )
            .order_by(AvailabilityWindow.start_time.asc())
            .all()
        )

    def all_windows(self, professional_id: int) -> list[AvailabilityWindow]:
        return (
            self.db.query(AvailabilityWindow)
            .filter(AvailabilityWindow.professional_id == professional_id)
            .order_by(AvailabilityWindow.weekday.asc(), AvailabilityWindow.start_time.asc())
            .all()
        )

    def get(self, window_id: int) -> AvailabilityWindow:
        window = self.db.get(AvailabilityWindow, window_id)
        if window is None:
            raise RecordNotFound('Availability window not found.')
        return window

    def contains(self, professional_id: int, weekday: int, start_time: time, end_time: time) -> bool:
        """Whether ``[start_time, end_time)`` lies inside a single active window."""
        return any(
            window.start_time <= start_time and end_time <= window.end_time
            for window in self.windows_for(professional_id, weekday)
        )

    def add(
        self,
        professional_id: int,
        weekday: int,
        start_time: time,
        end_time: time,
        organization_id: int | None = None,
    ) -> AvailabilityWindow:
        validate_window_bounds(weekday, start_time, end_time)
        self._ensure_no_overlap(professional_id, weekday, start_time, end_time)

        window = AvailabilityWindow(
            organization_id=organization_id,
            professional_id=professional_id,
            weekday=weekday,
            start_time=start_time,
            end_time=end_time,
            active=True,
        )
        self.db.add(window)
        self.db.commit()
        self.db.refresh(window)
        logger.info(
            'Added availability window %s for professional %s on %s %s-%s',
            window.id, professional_id, WEEKDAY_NAMES[weekday], start_time, end_time,
        )
        return window

    def update(
        self,
        window_id: int,
        *,
        weekday: int | None = None,
        start_time: time | None = None,
        end_time: time | None = None,
        active: bool | None = None,
    ) -> AvailabilityWindow:
        window = self.get(window_id)

        new_weekday = window.weekday if weekday is None else weekday
        new_start = window.start_time if start_time is None else start_time
        new_end = window.end_time if end_time is None else end_time
        new_active = window.active if active is None else active

        validate_window_bounds(new_weekday, new_start, new_end)
        if new_active:
            self._ensure_no_overlap(window.professional_id, new_weekday, new_start, new_end, exclude_id=window.id)

        window.weekday = new_weekday
        window.start_time = new_start
        window.end_time = new_end
        window.active = new_active
        self.db.commit()
        self.db.refresh(window)
        return window

    def remove(self, window_id: int) -> AvailabilityWindow:
        """Soft-disable a window; existing appointments keep their history."""
        window = self.get(window_id)
        window.active = False
        self.db.commit()
        self.db.refresh(window)
        logger.info('Deactivated availability window %s', window_id)
        return window

    def _ensure_no_overlap(
        self,
        professional_id: int,
        weekday: int,
        start_time: time,
        end_time: time,
        exclude_id: int | None = None,
    ) -> None:
        for existing in self.windows_for(professional_id, weekday):
            if existing.id == exclude_id:
                continue
            if start_time < existing.end_time and end_time > existing.start_time:
                raise OverlappingWindow(
                    f'Window overlaps {WEEKDAY_NAMES[weekday]} '
                    f'{existing.start_time:%H:%M}-{existing.end_time:%H:%M}.',
                    conflicting_window_id=existing.id,
                )
