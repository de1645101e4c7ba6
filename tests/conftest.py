import datetime as dt

import pytest

from domain.models import Session
from sinks.sheets_sink import parse_row_number


class FakeSheetsClient:
    """In-memory stand-in for the Sheets values API."""

    def __init__(self, sheet_name="Time Log", rows=None):
        self.sheet_name = sheet_name
        self.rows = dict(rows or {})  # row number -> values
        self.calls = []
        self.fail_append = False
        self.append_response = None

    def _next_row(self):
        return max(self.rows, default=0) + 1

    def get_values(self, spreadsheet_id, range_):
        self.calls.append(("get", range_))
        row = parse_row_number(range_)
        return [self.rows[row]] if row in self.rows else []

    def update_values(self, spreadsheet_id, range_, rows, value_input_option="USER_ENTERED"):
        self.calls.append(("update", range_))
        first = parse_row_number(range_)
        for i, values in enumerate(rows):
            self.rows[first + i] = list(values)
        return {"updatedRange": range_}

    def append_values(self, spreadsheet_id, range_, rows, value_input_option="USER_ENTERED"):
        self.calls.append(("append", range_))
        if self.fail_append:
            raise RuntimeError("quota exceeded")
        first = self._next_row()
        for i, values in enumerate(rows):
            self.rows[first + i] = list(values)
        if self.append_response is not None:
            return self.append_response
        last = first + len(rows) - 1
        quoted = "'" + self.sheet_name.replace("'", "''") + "'"
        return {"updates": {"updatedRange": f"{quoted}!A{first}:G{last}"}}

    def ops(self, kind):
        return [r for k, r in self.calls if k == kind]


@pytest.fixture
def fake_sheets():
    return FakeSheetsClient()


@pytest.fixture
def session():
    start = dt.datetime.now() - dt.timedelta(minutes=5)
    return Session(start_time=start, project_name="Bookshelf", task="sanding", notes="coat 2")
