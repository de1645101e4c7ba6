#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
import sqlite3

from domain.errors import StorageError


class Database:
    def __init__(self, db_path: str = "sessions.db"):
        self.db_path = db_path
        try:
            if db_path != ":memory:":
                os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
            self.conn = sqlite3.connect(self.db_path)
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"failed to open database {db_path}", cause=e) from e
        self.conn.row_factory = sqlite3.Row

    def _cols(self, table: str):
        return [
            r["name"]
            for r in self.conn.execute(f"PRAGMA table_info({table});").fetchall()
        ]

    def init_schema(self):
        try:
            self._create_tables()
        except sqlite3.Error as e:
            raise StorageError(f"failed to prepare database {self.db_path}", cause=e) from e

    def _create_tables(self):
        cur = self.conn.cursor()

        cur.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                project_name TEXT NOT NULL DEFAULT '',
                task TEXT NOT NULL DEFAULT '',
                notes TEXT NOT NULL DEFAULT '',
                start_ts INTEGER NOT NULL,
                end_ts INTEGER,
                duration_sec INTEGER,
                synced INTEGER NOT NULL DEFAULT 0
            );
        """)

        # older files: add missing columns, never drop or rename
        cols = self._cols("sessions")
        if "task" not in cols:
            cur.execute("ALTER TABLE sessions ADD COLUMN task TEXT NOT NULL DEFAULT '';")
        if "synced" not in cols:
            cur.execute(
                "ALTER TABLE sessions ADD COLUMN synced INTEGER NOT NULL DEFAULT 0;"
            )

        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_sessions_start ON sessions(start_ts);"
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_sessions_synced ON sessions(synced);"
        )

        self.conn.commit()

    def close(self):
        self.conn.close()
