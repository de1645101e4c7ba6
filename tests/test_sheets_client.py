import datetime as dt

import httplib2
import pytest
from googleapiclient.errors import HttpError

from domain.errors import CredentialsError, SyncError
from domain.models import Session
from sinks.rows import HEADERS
from sinks.sheets_client import SheetsClient
from sinks.sheets_sink import SheetsParams


class _Request:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.result


class FakeValues:
    def __init__(self):
        self.calls = []
        self.error = None
        self.header = []

    def get(self, **kw):
        self.calls.append(("get", kw))
        return _Request({"values": self.header} if self.header else {}, self.error)

    def update(self, **kw):
        self.calls.append(("update", kw))
        return _Request({"updatedRange": kw["range"]}, self.error)

    def append(self, **kw):
        self.calls.append(("append", kw))
        return _Request({"updates": {"updatedRange": "'Log'!A2:G3"}}, self.error)


class FakeService:
    def __init__(self):
        self.values_api = FakeValues()

    def spreadsheets(self):
        return self

    def values(self):
        return self.values_api

    def get(self, **kw):
        return _Request({"spreadsheetId": kw["spreadsheetId"]}, self.values_api.error)


def _http_error():
    return HttpError(
        httplib2.Response({"status": "503"}),
        b'{"error": {"code": 503, "message": "unavailable"}}',
    )


def test_calls_are_forwarded():
    service = FakeService()
    client = SheetsClient(service)

    assert client.get_values("id", "'Log'!A1:G1") == []
    client.update_values("id", "'Log'!A2:G2", [["x"]])
    resp = client.append_values("id", "'Log'!A:G", [["y"]])

    calls = service.values_api.calls
    assert calls[0] == ("get", {"spreadsheetId": "id", "range": "'Log'!A1:G1"})
    assert calls[1][1]["valueInputOption"] == "USER_ENTERED"
    assert calls[1][1]["body"] == {"values": [["x"]]}
    assert calls[2][1]["insertDataOption"] == "INSERT_ROWS"
    assert resp["updates"]["updatedRange"] == "'Log'!A2:G3"


def test_http_errors_become_sync_errors():
    service = FakeService()
    service.values_api.error = _http_error()
    client = SheetsClient(service)

    with pytest.raises(SyncError):
        client.get_values("id", "'Log'!A1:G1")
    with pytest.raises(SyncError):
        client.update_values("id", "'Log'!A2:G2", [])
    with pytest.raises(SyncError):
        client.append_values("id", "'Log'!A:G", [])
    with pytest.raises(SyncError):
        client.test_connection("id")


def test_append_sessions_writes_header_then_rows():
    service = FakeService()
    client = SheetsClient(service)
    start = dt.datetime(2024, 5, 1, 9, 0, 0)
    sessions = []
    for i in range(2):
        s = Session(start_time=start + dt.timedelta(hours=i), project_name=f"p{i}")
        s.stop(now=s.start_time + dt.timedelta(minutes=30))
        sessions.append(s)

    client.append_sessions(SheetsParams("id", "Log"), sessions)

    kinds = [k for k, _ in service.values_api.calls]
    assert kinds == ["get", "update", "append"]
    assert service.values_api.calls[1][1]["body"] == {"values": [HEADERS]}
    rows = service.values_api.calls[2][1]["body"]["values"]
    assert [r[0] for r in rows] == ["p0", "p1"]


def test_append_sessions_with_nothing_does_nothing():
    service = FakeService()
    SheetsClient(service).append_sessions(SheetsParams("id", "Log"), [])
    assert service.values_api.calls == []


@pytest.mark.parametrize("raw", [b"not json", b'{"type": "service_account"}'])
def test_bad_credentials(raw):
    with pytest.raises(CredentialsError):
        SheetsClient.from_credentials(raw)
