"""
Time-window and quota arithmetic.

Everything here is pure: callers pass ``now`` and the counts they read from
the database, so the rules can be exercised without a session.
"""
import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

UNLIMITED = -1

RESOURCE_TYPES = ("employees", "visitors", "appointments", "spot_passes")

# Plan column holding the base limit for each resource type
PLAN_LIMIT_FIELDS = {
    "employees": "employee_limit",
    "visitors": "visitor_limit",
    "appointments": "appointment_limit",
    "spot_passes": "spot_pass_limit",
}

RESOURCE_LABELS = {
    "employees": "employees",
    "visitors": "visitors",
    "appointments": "appointments",
    "spot_passes": "spot passes",
}

MODULE_FIELDS = {
    "visitor_invite": "module_visitor_invite",
    "message": "module_message",
}


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999999)


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def calculate_end_date(start: datetime, plan_type: str, trial_days: Optional[int] = None) -> datetime:
    """Raw segment end for a plan type, before the end-of-previous-day adjustment."""
    if plan_type == "weekly":
        return start + timedelta(days=7)
    if plan_type == "monthly":
        return add_months(start, 1)
    if plan_type == "quarterly":
        return add_months(start, 3)
    if plan_type == "yearly":
        return add_months(start, 12)
    if plan_type == "free":
        return start + timedelta(days=trial_days if trial_days is not None else 3)
    raise ValueError(f"Unknown plan type: {plan_type}")


def segment_end(start: datetime, plan_type: str, trial_days: Optional[int] = None) -> datetime:
    """
    Last instant of a segment: end of the day before the raw end date.
    Free trials are not day-aligned and run exactly ``trial_days`` from start.
    """
    if plan_type == "free":
        return calculate_end_date(start, plan_type, trial_days)
    return end_of_day(calculate_end_date(start, plan_type, trial_days) - timedelta(days=1))


def next_segment_start(previous_end: datetime) -> datetime:
    """A chained segment starts one microsecond after the previous one ends."""
    return previous_end + timedelta(microseconds=1)


def calendar_month_window(now: datetime) -> Tuple[datetime, datetime]:
    last_day = calendar.monthrange(now.year, now.month)[1]
    return (
        start_of_day(now.replace(day=1)),
        end_of_day(now.replace(day=last_day)),
    )


def _anniversary_window(anchor: datetime, months: int) -> Tuple[datetime, datetime]:
    start = start_of_day(add_months(anchor, months))
    end = end_of_day(add_months(anchor, months + 1) - timedelta(days=1))
    return start, end


def quota_window(now: datetime, subscription_start: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Usage window containing ``now``.

    Without a subscription this is the calendar month. With one, windows are
    anchored to the subscription's day-of-month and run until the end of the
    day before the next anchor, so consecutive windows never overlap or leave
    gaps even for anchors on the 29th to 31st.
    """
    if subscription_start is None:
        return calendar_month_window(now)

    months = (now.year - subscription_start.year) * 12 + (now.month - subscription_start.month)
    if now.day < subscription_start.day:
        months -= 1
    months = max(months, 0)

    start, end = _anniversary_window(subscription_start, months)
    # Clamped anchors can leave ``now`` one window off; walk to the right one.
    while now < start and months > 0:
        months -= 1
        start, end = _anniversary_window(subscription_start, months)
    while now > end:
        months += 1
        start, end = _anniversary_window(subscription_start, months)
    return start, end


@dataclass
class LimitInfo:
    base_limit: int
    extra: int
    total: int
    current: int
    remaining: int
    reached: bool
    can_create: bool
    is_expired: bool = False

    def as_dict(self) -> Dict[str, object]:
        return {
            "base_limit": self.base_limit,
            "extra": self.extra,
            "total": self.total,
            "current": self.current,
            "remaining": self.remaining,
            "reached": self.reached,
            "can_create": self.can_create,
            "is_expired": self.is_expired,
        }


def build_limit_info(base_limit: int, extra: int, current: int, is_expired: bool) -> LimitInfo:
    """
    Combine a plan limit, valid add-on quantity and current usage.

    An unlimited base (-1) stays unlimited whatever add-ons exist and is
    never reached unless the subscription itself has expired.
    """
    if base_limit == UNLIMITED:
        total = UNLIMITED
        remaining = UNLIMITED
        over = False
    else:
        total = base_limit + extra
        remaining = max(total - current, 0)
        over = current >= total
    reached = is_expired or over
    return LimitInfo(
        base_limit=base_limit,
        extra=extra,
        total=total,
        current=current,
        remaining=remaining,
        reached=reached,
        can_create=not is_expired and not reached,
        is_expired=is_expired,
    )


def plan_limit(plan, resource_type: str) -> int:
    if plan is None:
        return 0
    value = getattr(plan, PLAN_LIMIT_FIELDS[resource_type])
    return UNLIMITED if value is None else int(value)
