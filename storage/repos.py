# storage/repos.py
#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import datetime as dt
import sqlite3
from typing import List, Optional, Sequence

from domain.errors import StorageError
from domain.models import Session, StoredSession
from storage.db import Database

_COLUMNS = "id, project_name, task, notes, start_ts, end_ts, duration_sec, synced"


def _to_stored(r: sqlite3.Row) -> StoredSession:
    d = dict(r)
    d["synced"] = bool(d["synced"])
    return StoredSession(**d)


class SessionRepo:
    def __init__(self, db: Database):
        self.db = db

    def start_session(self, session: Session) -> StoredSession:
        try:
            cur = self.db.conn.execute(
                """
                INSERT INTO sessions(project_name, task, notes, start_ts)
                VALUES(?,?,?,?)
                """,
                (
                    session.project_name,
                    session.task or "",
                    session.notes or "",
                    int(session.start_time.timestamp()),
                ),
            )
            self.db.conn.commit()
        except sqlite3.Error as e:
            raise StorageError("failed to create session", cause=e) from e
        session.id = cur.lastrowid
        return self.get(session.id)

    def end_session(self, session: Session) -> None:
        if session.id is None:
            raise StorageError("session was never stored")
        if session.end_time is None:
            raise StorageError("session is still running")
        try:
            self.db.conn.execute(
                "UPDATE sessions SET end_ts=?, duration_sec=? WHERE id=?",
                (int(session.end_time.timestamp()), session.duration_sec(), session.id),
            )
            self.db.conn.commit()
        except sqlite3.Error as e:
            raise StorageError("failed to end session", cause=e) from e

    def get(self, session_id: int) -> Optional[StoredSession]:
        r = self.db.conn.execute(
            f"SELECT {_COLUMNS} FROM sessions WHERE id=?",
            (session_id,),
        ).fetchone()
        return _to_stored(r) if r else None

    def get_active(self) -> Optional[StoredSession]:
        try:
            r = self.db.conn.execute(
                f"""
                SELECT {_COLUMNS} FROM sessions
                WHERE end_ts IS NULL
                ORDER BY start_ts DESC, id DESC
                LIMIT 1
                """
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError("failed to look up the active session", cause=e) from e
        return _to_stored(r) if r else None

    def stop_active(self, now: Optional[dt.datetime] = None) -> List[StoredSession]:
        """
        Ends every session still marked running. Returns them as stored.
        """
        stopped = []
        while True:
            active = self.get_active()
            if active is None:
                return stopped
            session = active.to_session()
            session.stop(now)
            self.end_session(session)
            stopped.append(self.get(session.id))

    def list_unsynced(self) -> List[StoredSession]:
        # running sessions are pushed by the live sync, not here
        rows = self.db.conn.execute(
            f"""
            SELECT {_COLUMNS} FROM sessions
            WHERE synced = 0 AND end_ts IS NOT NULL
            ORDER BY start_ts ASC, id ASC
            """
        ).fetchall()
        return [_to_stored(r) for r in rows]

    def mark_synced(self, session_ids: Sequence[int]) -> int:
        """
        Marks all ids in one transaction. Returns rows changed.
        """
        ids = list(session_ids)
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        try:
            with self.db.conn:
                cur = self.db.conn.execute(
                    f"UPDATE sessions SET synced=1 WHERE synced=0 AND id IN ({placeholders})",
                    ids,
                )
        except sqlite3.Error as e:
            raise StorageError("failed to mark sessions as synced", cause=e) from e
        return cur.rowcount
