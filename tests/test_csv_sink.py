import csv
import datetime as dt
import os

import pytest

from domain.errors import SyncError
from domain.models import Session
from sinks.csv_sink import CsvSink, CsvSyncState, _encode_row, init_csv_row, sync_csv_row
from sinks.rows import HEADERS, IN_PROGRESS, session_to_csv_row


def _read_rows(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


def test_init_on_empty_file_writes_header_and_one_row(tmp_path, session):
    path = tmp_path / "log.csv"
    state = init_csv_row(str(path), session)

    rows = _read_rows(path)
    assert rows[0] == HEADERS
    assert len(rows) == 2
    assert rows[1][0] == "Bookshelf"
    assert rows[1][1] == "sanding"
    assert rows[1][4] == IN_PROGRESS
    assert rows[1][6] == "coat 2"
    # row starts right after the header line
    assert state.row_offset == len(",".join(HEADERS) + "\n")


def test_init_creates_parent_directories(tmp_path, session):
    path = tmp_path / "a" / "b" / "log.csv"
    init_csv_row(str(path), session)
    assert path.exists()


def test_init_on_existing_file_does_not_repeat_header(tmp_path, session):
    path = tmp_path / "log.csv"
    first = init_csv_row(str(path), session)
    session.stop()
    sync_csv_row(first, session)

    other = Session(start_time=dt.datetime.now(), project_name="Chair")
    size_before = os.path.getsize(path)
    state = init_csv_row(str(path), other)

    rows = _read_rows(path)
    assert [r for r in rows if r == HEADERS] == [HEADERS]
    assert len(rows) == 3
    assert rows[2][0] == "Chair"
    assert state.row_offset == size_before


def test_init_adds_missing_trailing_newline(tmp_path, session):
    path = tmp_path / "log.csv"
    path.write_bytes((",".join(HEADERS) + "\nold,row,,,,,").encode("utf-8"))
    size_before = os.path.getsize(path)

    state = init_csv_row(str(path), session)

    rows = _read_rows(path)
    assert len(rows) == 3
    assert rows[1][:2] == ["old", "row"]
    assert rows[2][0] == "Bookshelf"
    assert state.row_offset == size_before + 1


def test_repeated_sync_keeps_one_row_and_exact_length(tmp_path, session):
    path = tmp_path / "log.csv"
    state = init_csv_row(str(path), session)

    for i in range(5):
        if i == 4:
            # "In Progress" becomes a clock time, so the row length changes
            session.stop(now=session.start_time + dt.timedelta(seconds=5))
        sync_csv_row(state, session)
        expected = _encode_row(session_to_csv_row(session))
        with open(path, "rb") as f:
            data = f.read()
        assert len(data) == state.row_offset + len(expected)

    assert data[state.row_offset:] == expected
    assert len(_read_rows(path)) == 2
    assert _read_rows(path)[1][4] != IN_PROGRESS


def test_sync_after_stop_writes_end_time(tmp_path):
    start = dt.datetime(2024, 5, 1, 9, 0, 0)
    s = Session(start_time=start, project_name="p", notes="with, comma")
    path = tmp_path / "log.csv"
    state = init_csv_row(str(path), s)

    s.stop(now=start + dt.timedelta(hours=1, minutes=2, seconds=3))
    sync_csv_row(state, s)

    rows = _read_rows(path)
    assert rows[1] == [
        "p",
        "",
        "2024/05/01",
        "09:00:00",
        "10:02:03",
        "01:02:03",
        "with, comma",
    ]


def test_shorter_row_truncates_leftover_bytes(tmp_path, session):
    path = tmp_path / "log.csv"
    state = init_csv_row(str(path), session)
    # pretend a longer row was written last time
    with open(path, "ab") as f:
        f.write(b"garbage that must go away\n")

    sync_csv_row(state, session)
    rows = _read_rows(path)
    assert len(rows) == 2
    assert "garbage" not in open(path, encoding="utf-8").read()


def test_sync_refuses_file_shorter_than_offset(tmp_path, session):
    path = tmp_path / "log.csv"
    state = init_csv_row(str(path), session)
    path.write_text("")  # someone else rewrote the file

    with pytest.raises(SyncError):
        sync_csv_row(state, session)
    assert path.read_bytes() == b""


def test_sync_missing_file_is_sync_error(tmp_path, session):
    state = CsvSyncState(file_path=str(tmp_path / "gone.csv"), row_offset=0)
    with pytest.raises(SyncError):
        sync_csv_row(state, session)


def test_init_on_directory_path_is_sync_error(tmp_path, session):
    with pytest.raises(SyncError):
        init_csv_row(str(tmp_path), session)


def test_sink_wraps_functions(tmp_path, session):
    sink = CsvSink(str(tmp_path / "log.csv"))
    state = sink.init_row(session)
    assert isinstance(state, CsvSyncState)
    sink.sync_row(state, session)
    assert sink.name == "csv"
    assert len(_read_rows(tmp_path / "log.csv")) == 2
