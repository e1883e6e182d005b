"""Quiet-hours window evaluation."""

from datetime import datetime, time


def parse_clock(value: str) -> time:
    """Parse "HH:MM" (or a bare hour) into a time."""
    hour, _, minute = value.strip().partition(":")
    return time(int(hour), int(minute or 0))


def is_quiet(current: time, start: time, end: time) -> bool:
    """Whether ``current`` falls inside the window [start, end).

    A window whose start is after its end crosses midnight (23:00-07:00).
    A window with start == end is empty.
    """
    current = current.replace(second=0, microsecond=0, tzinfo=None)
    if start <= end:
        return start <= current < end
    return current >= start or current < end


class QuietHours:
    """The configured quiet-hours window."""

    def __init__(self, enabled: bool, start: str | time, end: str | time):
        self.enabled = enabled
        self.start = parse_clock(start) if isinstance(start, str) else start
        self.end = parse_clock(end) if isinstance(end, str) else end

    def is_active(self, now: datetime | time) -> bool:
        if not self.enabled:
            return False
        current = now.time() if isinstance(now, datetime) else now
        return is_quiet(current, self.start, self.end)
