"""Errors raised by the scheduling core.

Input errors are raised before storage is touched and are correctable by the
caller. ``StorageUnavailable`` is the only infrastructure fault. Losing a slot
to another booking is not an error; it is reported as a rejected
``BookingOutcome``.
"""


class SchedulingError(Exception):
    """Base class for scheduling errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidDuration(SchedulingError):
    pass


class InvalidDateRange(SchedulingError):
    pass


class InvalidTimeRange(InvalidDateRange):
    pass


class OverlappingWindow(SchedulingError):
    def __init__(self, message: str, conflicting_window_id: int | None = None):
        super().__init__(message)
        self.conflicting_window_id = conflicting_window_id


class InvalidStatusTransition(SchedulingError):
    pass


class RecordNotFound(SchedulingError):
    pass


class ServiceUnavailable(RecordNotFound):
    pass


class StorageUnavailable(SchedulingError):
    pass
