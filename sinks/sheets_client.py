# -*- coding: utf-8 -*-

import json
import logging
from typing import Any, Dict, List, Sequence

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from domain.errors import CredentialsError, SyncError
from domain.models import Session
from sinks.rows import session_to_sheet_row
from sinks.sheets_sink import (
    VALUE_INPUT_OPTION,
    SheetsParams,
    append_range,
    ensure_headers,
)

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


class SheetsClient:
    """
    Thin wrapper over the Sheets v4 values API.
    Every API failure comes out as SyncError.
    """

    def __init__(self, service):
        self.service = service

    @classmethod
    def from_credentials(cls, raw: bytes) -> "SheetsClient":
        try:
            info = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise CredentialsError("service account credentials are not valid JSON", cause=e) from e
        try:
            creds = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        except (KeyError, ValueError) as e:
            raise CredentialsError("failed to load service account credentials", cause=e) from e
        service = build("sheets", "v4", credentials=creds, cache_discovery=False)
        return cls(service)

    def _values(self):
        return self.service.spreadsheets().values()

    def get_values(self, spreadsheet_id: str, range_: str) -> List[List[Any]]:
        try:
            resp = self._values().get(spreadsheetId=spreadsheet_id, range=range_).execute()
        except HttpError as e:
            raise SyncError(f"failed to read range {range_}", cause=e) from e
        return resp.get("values", [])

    def update_values(
        self,
        spreadsheet_id: str,
        range_: str,
        rows: List[List[Any]],
        value_input_option: str = VALUE_INPUT_OPTION,
    ) -> Dict[str, Any]:
        try:
            return self._values().update(
                spreadsheetId=spreadsheet_id,
                range=range_,
                valueInputOption=value_input_option,
                body={"values": rows},
            ).execute()
        except HttpError as e:
            raise SyncError(f"failed to update range {range_}", cause=e) from e

    def append_values(
        self,
        spreadsheet_id: str,
        range_: str,
        rows: List[List[Any]],
        value_input_option: str = VALUE_INPUT_OPTION,
    ) -> Dict[str, Any]:
        try:
            return self._values().append(
                spreadsheetId=spreadsheet_id,
                range=range_,
                valueInputOption=value_input_option,
                insertDataOption="INSERT_ROWS",
                body={"values": rows},
            ).execute()
        except HttpError as e:
            raise SyncError(f"failed to append to range {range_}", cause=e) from e

    def append_sessions(self, params: SheetsParams, sessions: Sequence[Session]) -> None:
        if not sessions:
            return
        ensure_headers(self, params)
        rows = [session_to_sheet_row(s) for s in sessions]
        self.append_values(params.spreadsheet_id, append_range(params.sheet_name), rows)
        logger.info("appended %d session(s) to sheet %s", len(rows), params.sheet_name)

    def test_connection(self, spreadsheet_id: str) -> None:
        try:
            self.service.spreadsheets().get(spreadsheetId=spreadsheet_id).execute()
        except HttpError as e:
            raise SyncError("failed to connect to Google Sheets", cause=e) from e
