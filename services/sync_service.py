# -*- coding: utf-8 -*-

import logging
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from domain.models import Session

logger = logging.getLogger(__name__)


class Sink(Protocol):
    name: str

    def init_row(self, session: Session) -> Any: ...

    def sync_row(self, state: Any, session: Session) -> None: ...


class SyncService:
    """
    Mirrors one live session into every enabled sink.
    - first call per sink: init_row, keep the returned state
    - later calls: sync_row with that state
    A failing sink is logged and retried on the next call; it never
    blocks the other sinks and never raises to the caller.
    """

    def __init__(self, sinks: Iterable[Sink]):
        self.sinks = list(sinks)
        self._states: Dict[str, Any] = {}

        self._on_row_created: Optional[Callable[[str, Any], None]] = None
        self._on_error: Optional[Callable[[str, Exception], None]] = None

    # ----- Callbacks -----
    def set_on_row_created(self, fn: Callable[[str, Any], None]) -> None:
        self._on_row_created = fn

    def set_on_error(self, fn: Callable[[str, Exception], None]) -> None:
        self._on_error = fn

    # ----- Public API -----
    def is_initialized(self, name: str) -> bool:
        return name in self._states

    def state_for(self, name: str) -> Optional[Any]:
        return self._states.get(name)

    def save_session(self, session: Session) -> Dict[str, bool]:
        results: Dict[str, bool] = {}
        for sink in self.sinks:
            results[sink.name] = self._save_one(sink, session)
        return results

    # ----- Internals -----
    def _save_one(self, sink: Sink, session: Session) -> bool:
        state = self._states.get(sink.name)
        try:
            if state is None:
                new_state = sink.init_row(session)
                self._states[sink.name] = new_state
                logger.info("%s: row created (%s)", sink.name, new_state)
                if self._on_row_created:
                    self._on_row_created(sink.name, new_state)
            else:
                sink.sync_row(state, session)
                logger.debug("%s: row synced", sink.name)
        except Exception as e:
            # sinks fail independently
            logger.warning("%s: sync failed: %s", sink.name, e)
            if self._on_error:
                self._on_error(sink.name, e)
            return False
        return True
