"""Time source for expiry and overdue checks.

Services take an optional ``clock`` argument; callers that don't pass one
get the system clock. Tests pass a ``FixedClock``.
"""
from datetime import datetime, time

from django.utils import timezone


class SystemClock:
    def now(self):
        return timezone.now()

    def today(self):
        return timezone.localdate(self.now())


class FixedClock(SystemClock):
    """Clock pinned to a given moment; accepts a date or an aware datetime"""

    def __init__(self, moment):
        if not isinstance(moment, datetime):
            moment = timezone.make_aware(datetime.combine(moment, time(12, 0)))
        self.moment = moment

    def now(self):
        return self.moment

    def advance(self, delta):
        self.moment = self.moment + delta
        return self


default_clock = SystemClock()


def resolve(clock):
    return clock if clock is not None else default_clock
