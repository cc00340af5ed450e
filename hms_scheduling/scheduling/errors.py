"""Errors raised by the availability engine and its store collaborators."""


class SchedulingError(Exception):
    """Base class for scheduling failures surfaced to callers."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DataUnavailable(SchedulingError):
    """The schedule or appointment store could not be reached."""


class SlotUnavailable(SchedulingError):
    """The requested slot is on leave, already booked, or not in the template."""


class UnknownSlot(SlotUnavailable):
    """The requested time does not match any template slot."""


class PastDate(SchedulingError):
    """The requested slot does not start strictly after the current time."""


class InvalidSchedule(SchedulingError):
    """Stored leave or appointment data could not be interpreted."""


class OutsideBookingWindow(SchedulingError):
    """The requested date is beyond the furthest bookable day."""


class AppointmentNotFound(SchedulingError):
    """No appointment exists with the given id."""


class InvalidStatusTransition(SchedulingError):
    """The appointment cannot move from its current status to the requested one."""
