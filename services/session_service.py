# -*- coding: utf-8 -*-

import asyncio
import logging
import signal
from enum import Enum
from typing import Callable, Optional

from core.timer_engine import EndTimer
from domain.errors import StorageError
from domain.models import Session
from services.sync_service import SyncService
from sinks.sheets_sink import SheetsSink
from storage.repos import SessionRepo

logger = logging.getLogger(__name__)

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class StopReason(str, Enum):
    SIGNAL = "signal"
    TIMER = "timer"


def install_signal_handlers(
    loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event
) -> Callable[[], None]:
    """
    SIGINT/SIGTERM set stop_event. Returns a function that restores the
    previous handlers.
    """
    # (signal, on_loop, previous python-level handler)
    installed = []
    for sig in STOP_SIGNALS:
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append((sig, True, None))
        except (NotImplementedError, RuntimeError):
            # no loop support (e.g. Windows): plain handler, hop onto the loop
            prev = signal.signal(
                sig, lambda *_: loop.call_soon_threadsafe(stop_event.set)
            )
            installed.append((sig, False, prev))

    def restore() -> None:
        for sig, on_loop, prev in installed:
            if on_loop:
                loop.remove_signal_handler(sig)
            else:
                # None means the old handler was not set from Python
                signal.signal(sig, prev if prev is not None else signal.SIG_DFL)

    return restore


class SessionRunner:
    """
    Drives one session:
    - initial sync right away
    - then waits for the first of: stop event, end timer, sync tick
    - stop() the session and run one final sync
    Single task: owns the session and the sync state, no locking.
    """

    def __init__(
        self,
        sync_service: SyncService,
        tick_interval: float,
        session_repo: Optional[SessionRepo] = None,
    ):
        if tick_interval <= 0:
            raise ValueError("Sync interval must be positive.")
        self.sync_service = sync_service
        self.tick_interval = float(tick_interval)
        self.session_repo = session_repo

        self.ticks = 0

        self._on_tick: Optional[Callable[[Session], None]] = None
        self._on_stop: Optional[Callable[[Session, StopReason], None]] = None

    # ----- Callbacks -----
    def set_on_tick(self, fn: Callable[[Session], None]) -> None:
        self._on_tick = fn

    def set_on_stop(self, fn: Callable[[Session, StopReason], None]) -> None:
        self._on_stop = fn

    def _emit_tick(self, session: Session) -> None:
        if self._on_tick:
            self._on_tick(session)

    def _emit_stop(self, session: Session, reason: StopReason) -> None:
        if self._on_stop:
            self._on_stop(session, reason)

    # ----- Public API -----
    async def run(
        self,
        session: Session,
        end_timer: Optional[EndTimer] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> StopReason:
        if stop_event is None:
            stop_event = asyncio.Event()

        self._store_start(session)
        self.sync_service.save_session(session)

        reason = await self._wait_loop(session, end_timer, stop_event)

        # stop before the final sync so the last row has the real end time
        session.stop()
        self._store_end(session)
        results = self.sync_service.save_session(session)
        if results.get(SheetsSink.name):
            self._mark_synced(session)

        logger.info(
            "session for %s ended by %s after %s",
            session.project_name,
            reason.value,
            session.formatted_duration(),
        )
        self._emit_stop(session, reason)
        return reason

    # ----- Event loop internals -----
    async def _wait_loop(
        self,
        session: Session,
        end_timer: Optional[EndTimer],
        stop_event: asyncio.Event,
    ) -> StopReason:
        loop = asyncio.get_running_loop()
        stop_task = asyncio.ensure_future(stop_event.wait())
        timer_task = asyncio.ensure_future(end_timer.wait()) if end_timer else None
        next_tick = loop.time() + self.tick_interval
        tick_task = None

        try:
            while True:
                tick_task = asyncio.ensure_future(
                    asyncio.sleep(max(0.0, next_tick - loop.time()))
                )
                waiting = {stop_task, tick_task}
                if timer_task is not None:
                    waiting.add(timer_task)

                done, _ = await asyncio.wait(
                    waiting, return_when=asyncio.FIRST_COMPLETED
                )

                # both ready at once: stop wins, order is otherwise unspecified
                if stop_task in done:
                    return StopReason.SIGNAL
                if timer_task is not None and timer_task in done:
                    return StopReason.TIMER

                self.ticks += 1
                self.sync_service.save_session(session)
                self._emit_tick(session)

                # slow syncs drop ticks instead of bunching them up
                next_tick += self.tick_interval
                if next_tick < loop.time():
                    next_tick = loop.time() + self.tick_interval
        finally:
            for task in (stop_task, timer_task, tick_task):
                if task is not None and not task.done():
                    task.cancel()

    # ----- Session logging internals -----
    def _store_start(self, session: Session) -> None:
        if self.session_repo is None:
            return
        try:
            # a crashed or killed run leaves its row open; close it like a stop
            for stale in self.session_repo.stop_active(now=session.start_time):
                logger.warning(
                    "stopped previous session %d for %s, left running since %s",
                    stale.id,
                    stale.project_name,
                    stale.to_session().start_time.strftime("%Y-%m-%d %H:%M:%S"),
                )
            self.session_repo.start_session(session)
        except StorageError as e:
            logger.warning("could not record session start: %s", e)

    def _store_end(self, session: Session) -> None:
        if self.session_repo is None or session.id is None:
            return
        try:
            self.session_repo.end_session(session)
        except StorageError as e:
            logger.warning("could not record session end: %s", e)

    def _mark_synced(self, session: Session) -> None:
        # the live sheet row is final, keep `sync` from appending it again
        if self.session_repo is None or session.id is None:
            return
        try:
            self.session_repo.mark_synced([session.id])
        except StorageError as e:
            logger.warning("could not mark session as synced: %s", e)
