"""Deadline Rules: date arithmetic for gating, auto-closure and staleness.

Invariants:
    - A deadline is a calendar date read as 00:00 UTC of that day; new
      applications are rejected once `now` is past that instant, so the
      deadline day itself is already closed to submissions
    - Auto-closure is date-based: a posting closes once its deadline date is
      strictly before today's UTC date
    - A null deadline never expires
    - "today" is always derived from an injected `now`, never read here
"""

from datetime import date, datetime, time, timedelta, timezone

STALE_APPLICATION_DAYS = 7


def utc_today(now: datetime) -> date:
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(timezone.utc).date()


def deadline_instant(deadline: date) -> datetime:
    return datetime.combine(deadline, time.min, tzinfo=timezone.utc)


def is_deadline_passed(deadline: date | None, now: datetime) -> bool:
    """True once `now` is past midnight UTC at the start of the deadline date."""
    if deadline is None:
        return False
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return deadline_instant(deadline) < now


def stale_cutoff(now: datetime, days: int = STALE_APPLICATION_DAYS) -> datetime:
    """Applications applied before this instant are considered stale."""
    return now - timedelta(days=days)


def days_from_today(now: datetime, days: int) -> date:
    return utc_today(now) + timedelta(days=days)
