# -*- coding: utf-8 -*-

import asyncio
import logging
from typing import Callable, List, Optional, Protocol, Sequence

from domain.errors import RetryExhaustedError, ValidationError
from domain.models import Session, StoredSession

logger = logging.getLogger(__name__)


class UnsyncedStore(Protocol):
    def list_unsynced(self) -> List[StoredSession]: ...

    def mark_synced(self, session_ids: Sequence[int]) -> int: ...


SessionWriter = Callable[[List[Session]], None]


async def sync_unsynced_sessions(
    repo: UnsyncedStore,
    writer: SessionWriter,
    attempts: int = 3,
    delay: float = 5.0,
) -> int:
    """
    Push every ended, unsynced session in one batch.
    Retries with a fixed delay; cancelling the task while it waits
    raises CancelledError and marks nothing.
    Returns the number of sessions marked synced.
    """
    if attempts < 1:
        raise ValidationError("retry attempts must be at least 1")

    stored = repo.list_unsynced()
    if not stored:
        return 0
    sessions = [s.to_session() for s in stored]

    last_error: Optional[Exception] = None
    for attempt in range(attempts):
        if attempt > 0:
            await asyncio.sleep(delay)
        try:
            writer(sessions)
        except Exception as e:
            last_error = e
            logger.warning(
                "batch sync attempt %d/%d failed: %s", attempt + 1, attempts, e
            )
            continue
        marked = repo.mark_synced([s.id for s in stored])
        logger.info("synced %d session(s)", marked)
        return marked

    raise RetryExhaustedError(attempts, last_error)


async def run_auto_sync(
    repo: UnsyncedStore,
    writer: SessionWriter,
    interval: float,
    attempts: int = 3,
    delay: float = 5.0,
) -> None:
    """
    Runs sync_unsynced_sessions right away, then every `interval` seconds
    until cancelled.
    """
    while True:
        try:
            await sync_unsynced_sessions(repo, writer, attempts=attempts, delay=delay)
        except RetryExhaustedError as e:
            logger.warning("auto sync round failed: %s", e)
        await asyncio.sleep(interval)
