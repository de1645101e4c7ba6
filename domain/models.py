# -*- coding: utf-8 -*-

import datetime as dt
import time
from dataclasses import dataclass, field
from typing import Optional


def _now() -> dt.datetime:
    return dt.datetime.now()


def format_hms(total_sec: int) -> str:
    total_sec = max(0, int(total_sec))
    h, rem = divmod(total_sec, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


@dataclass
class Session:
    """
    One tracked interval of work.
    Start time and labels are fixed at creation; only stop() mutates it.
    """

    start_time: dt.datetime
    project_name: str
    task: str = ""
    notes: str = ""
    id: Optional[int] = None  # storage id, once persisted
    _end_time: Optional[dt.datetime] = field(default=None, repr=False)
    # wall clock and monotonic reading taken together at creation
    _wall_anchor: dt.datetime = field(
        default_factory=_now, init=False, repr=False, compare=False
    )
    _mono_anchor: float = field(
        default_factory=time.monotonic, init=False, repr=False, compare=False
    )

    @property
    def end_time(self) -> Optional[dt.datetime]:
        return self._end_time

    @property
    def is_active(self) -> bool:
        return self._end_time is None

    def _clock(self) -> dt.datetime:
        # monotonic elapsed time on top of the creation anchor, immune to clock steps
        return self._wall_anchor + dt.timedelta(seconds=time.monotonic() - self._mono_anchor)

    def stop(self, now: Optional[dt.datetime] = None) -> None:
        # end time is set once, later calls keep the first one
        if self._end_time is not None:
            return
        end = now or self._clock()
        if end < self.start_time:
            end = self.start_time
        self._end_time = end

    def current_duration(self, now: Optional[dt.datetime] = None) -> dt.timedelta:
        end = self._end_time if self._end_time is not None else (now or self._clock())
        delta = end - self.start_time
        if delta < dt.timedelta(0):
            return dt.timedelta(0)
        return delta

    def duration_sec(self, now: Optional[dt.datetime] = None) -> int:
        return int(self.current_duration(now).total_seconds())

    def formatted_duration(self, now: Optional[dt.datetime] = None) -> str:
        return format_hms(self.duration_sec(now))


@dataclass(frozen=True)
class StoredSession:
    id: int
    project_name: str
    task: str
    notes: str
    start_ts: int
    end_ts: Optional[int]
    duration_sec: Optional[int]
    synced: bool

    def to_session(self) -> Session:
        s = Session(
            start_time=dt.datetime.fromtimestamp(self.start_ts),
            project_name=self.project_name,
            task=self.task,
            notes=self.notes,
            id=self.id,
        )
        if self.end_ts is not None:
            s.stop(dt.datetime.fromtimestamp(self.end_ts))
        return s
