"""Validation guards consumed from the surrounding system.

Both are pure: the caller passes the business date or role explicitly, so the
guards never reach for process-wide state.
"""

from datetime import date

from pms.errors import InvalidInput

OPERATIONAL_ROLES = {"housekeeping", "maintenance", "admin", "manager"}


def assert_not_past_date(target_date: date, business_date: date, label: str = "Date") -> date:
    """Reject dates earlier than the current business date."""
    if target_date < business_date:
        raise InvalidInput(
            f"{label} ({target_date}) cannot be before the current business date ({business_date})"
        )
    return business_date


def assert_operational_role(role: str, department: str) -> None:
    if department not in ("housekeeping", "maintenance"):
        raise InvalidInput(f"Unknown department '{department}'")
    if role not in OPERATIONAL_ROLES:
        raise InvalidInput(f"User with role '{role}' cannot be assigned to {department} tasks")
    # housekeeping staff can't take maintenance work and vice versa
    if role in ("housekeeping", "maintenance") and role != department:
        raise InvalidInput(f"User with role '{role}' cannot be assigned to {department} tasks")
