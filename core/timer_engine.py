# -*- coding: utf-8 -*-

import asyncio
import datetime as dt
import re
from dataclasses import dataclass
from typing import Optional

from domain.errors import DurationError

_UNITS = {
    "ns": dt.timedelta(microseconds=1) / 1000,
    "us": dt.timedelta(microseconds=1),
    "µs": dt.timedelta(microseconds=1),
    "μs": dt.timedelta(microseconds=1),
    "ms": dt.timedelta(milliseconds=1),
    "s": dt.timedelta(seconds=1),
    "m": dt.timedelta(minutes=1),
    "h": dt.timedelta(hours=1),
}

# longest units first so "ms" wins over "m"
_TERM_RE = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

DURATION_HINT = "use format like 2h, 30m, 1h30m"


def parse_duration(expr: str) -> dt.timedelta:
    """
    Parse "1h30m", "90s", "1.5h", "250ms" ...
    Raises DurationError on anything else.
    """
    raw = (expr or "").strip()
    if not raw:
        raise DurationError(f"invalid duration format: empty ({DURATION_HINT})")

    sign = 1
    body = raw
    if body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]

    if body == "0":
        return dt.timedelta(0)

    total = dt.timedelta(0)
    pos = 0
    while pos < len(body):
        m = _TERM_RE.match(body, pos)
        if not m:
            raise DurationError(
                f"invalid duration format: {raw!r} ({DURATION_HINT})"
            )
        total += _UNITS[m.group(2)] * float(m.group(1))
        pos = m.end()

    if pos == 0:
        raise DurationError(f"invalid duration format: {raw!r} ({DURATION_HINT})")

    return total * sign


@dataclass(frozen=True)
class EndTimer:
    """
    One-shot deadline for a session.
    """

    duration: dt.timedelta
    deadline: dt.datetime

    def remaining(self, now: Optional[dt.datetime] = None) -> dt.timedelta:
        left = self.deadline - (now or dt.datetime.now())
        return left if left > dt.timedelta(0) else dt.timedelta(0)

    def expired(self, now: Optional[dt.datetime] = None) -> bool:
        return self.remaining(now) == dt.timedelta(0)

    async def wait(self) -> None:
        # re-check after waking: the wall clock may drift from the loop clock
        while True:
            left = self.remaining().total_seconds()
            if left <= 0:
                return
            await asyncio.sleep(left)


def set_end_timer(
    expr: Optional[str], now: Optional[dt.datetime] = None
) -> Optional[EndTimer]:
    """
    Empty expression -> no timer.
    Bad or non-positive expression -> DurationError (fatal for startup).
    """
    if expr is None or not expr.strip():
        return None

    duration = parse_duration(expr)
    if duration <= dt.timedelta(0):
        raise DurationError(
            f"session duration must be positive: {expr!r} ({DURATION_HINT})"
        )

    start = now or dt.datetime.now()
    return EndTimer(duration=duration, deadline=start + duration)
