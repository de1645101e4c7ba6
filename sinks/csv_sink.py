# -*- coding: utf-8 -*-

import csv
import io
import logging
import os
from dataclasses import dataclass
from typing import List

from domain.errors import SyncError
from domain.models import Session
from sinks.rows import HEADERS, session_to_csv_row

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CsvSyncState:
    file_path: str
    row_offset: int  # byte offset where this session's row starts


def _encode_row(row: List[str]) -> bytes:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerow(row)
    return buf.getvalue().encode("utf-8")


def init_csv_row(file_path: str, session: Session) -> CsvSyncState:
    """
    Append the first row for an in-progress session.
    Writes the header first when the file is empty.
    """
    parent = os.path.dirname(os.path.abspath(file_path))
    try:
        os.makedirs(parent, exist_ok=True)
    except OSError as e:
        raise SyncError(f"failed to create directory {parent}", cause=e) from e

    try:
        with open(file_path, "a+b") as f:
            size = f.seek(0, os.SEEK_END)
            if size == 0:
                f.write(_encode_row(HEADERS))
            else:
                f.seek(size - 1)
                if f.read(1) != b"\n":
                    # hand-edited file without a trailing newline
                    f.write(b"\n")
            row_offset = f.tell()
            f.write(_encode_row(session_to_csv_row(session)))
            f.flush()
    except OSError as e:
        raise SyncError(f"failed to write CSV file {file_path}", cause=e) from e

    logger.debug("csv row for %s starts at byte %d", file_path, row_offset)
    return CsvSyncState(file_path=file_path, row_offset=row_offset)


def sync_csv_row(state: CsvSyncState, session: Session) -> None:
    """
    Rewrite this session's row in place: truncate to row_offset, write again.
    Only safe while the row is the last one in the file.
    """
    data = _encode_row(session_to_csv_row(session))
    try:
        with open(state.file_path, "r+b") as f:
            size = f.seek(0, os.SEEK_END)
            if size < state.row_offset:
                # truncate() would pad with NUL bytes here
                raise SyncError(
                    f"CSV file {state.file_path} is shorter ({size} bytes) than the "
                    f"session row offset ({state.row_offset}); was it rewritten by "
                    f"another program?"
                )
            f.truncate(state.row_offset)
            f.seek(state.row_offset)
            f.write(data)
            f.flush()
    except OSError as e:
        raise SyncError(f"failed to rewrite CSV file {state.file_path}", cause=e) from e


class CsvSink:
    name = "csv"

    def __init__(self, file_path: str):
        self.file_path = file_path

    def init_row(self, session: Session) -> CsvSyncState:
        return init_csv_row(self.file_path, session)

    def sync_row(self, state: CsvSyncState, session: Session) -> None:
        sync_csv_row(state, session)
