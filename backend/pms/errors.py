"""Error taxonomy shared by every engine service.

Each class carries the HTTP status the API layer answers with, so routers
never have to translate service failures by hand.
"""

from datetime import date


class PMSError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


# ─── Caller mistakes (never retried) ───


class InvalidInput(PMSError):
    status_code = 400


class InvalidRange(InvalidInput):
    def __init__(self, start: date, end: date, label: str = "range"):
        super().__init__(f"Invalid {label}: end date {end} is before start date {start}")
        self.start = start
        self.end = end


# ─── Expected absences ───


class NotFound(PMSError):
    status_code = 404


class RateNotFound(NotFound):
    def __init__(self, room_type_id: int, rate_plan_id: int, on: date):
        super().__init__(
            f"No rate for room type {room_type_id} on plan {rate_plan_id} covering {on}"
        )
        self.room_type_id = room_type_id
        self.rate_plan_id = rate_plan_id
        self.date = on


class AdjustmentNotFound(NotFound):
    def __init__(self, base_room_type_id: int, derived_room_type_id: int, rate_plan_id: int | None):
        super().__init__(
            f"No rate adjustment from room type {base_room_type_id} "
            f"to {derived_room_type_id} (plan {rate_plan_id})"
        )
        self.base_room_type_id = base_room_type_id
        self.derived_room_type_id = derived_room_type_id
        self.rate_plan_id = rate_plan_id


class NoInventoryRow(NotFound):
    def __init__(self, room_type_id: int, on: date):
        super().__init__(f"No inventory row for room type {room_type_id} on {on}")
        self.room_type_id = room_type_id
        self.date = on


# ─── Lost races / state conflicts (retry with different parameters) ───


class Conflict(PMSError):
    status_code = 409


class InsufficientAvailability(Conflict):
    def __init__(self, room_type_id: int, on: date, remaining: int, requested: int, percent: int):
        super().__init__(
            f"Insufficient availability for room type {room_type_id} on {on}: "
            f"{remaining} slot(s) remaining, {requested} requested (overbooking {percent}%)"
        )
        self.room_type_id = room_type_id
        self.date = on
        self.remaining = remaining
        self.requested = requested
        self.percent = percent


class AlreadyAudited(Conflict):
    def __init__(self, business_date: date):
        super().__init__(f"Night audit for {business_date} has already completed")
        self.business_date = business_date


class BusinessDateMismatch(Conflict):
    def __init__(self, requested: date, current: date):
        super().__init__(
            f"Night audit requested for {requested} but the current business date is {current}"
        )
        self.requested = requested
        self.current = current


# ─── Programming / data errors (fatal, never silently repaired) ───


class InvariantViolation(PMSError):
    status_code = 500


class OverlappingRateRange(InvariantViolation):
    def __init__(self, room_type_id: int, rate_plan_id: int, on: date | None = None):
        where = f" on {on}" if on else ""
        super().__init__(
            f"Overlapping rate ranges for room type {room_type_id} on plan {rate_plan_id}{where}"
        )
        self.room_type_id = room_type_id
        self.rate_plan_id = rate_plan_id
        self.date = on


class ChainedDerivation(InvariantViolation):
    def __init__(self, room_type_id: int, detail: str):
        super().__init__(f"Chained rate derivation through room type {room_type_id}: {detail}")
        self.room_type_id = room_type_id


# ─── Storage unreachable (retryable with backoff) ───


class Unavailable(PMSError):
    status_code = 503


class NotInitialized(Unavailable):
    pass


# ─── Orchestration ───


class NightAuditFailed(PMSError):
    status_code = 500

    def __init__(self, business_date: date, stopped_at: str, steps_completed: list[str], cause: Exception):
        super().__init__(
            f"Night audit for {business_date} stopped at {stopped_at}: {cause}"
        )
        self.business_date = business_date
        self.stopped_at = stopped_at
        self.steps_completed = steps_completed
        self.cause = cause
