# -*- coding: utf-8 -*-

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol

from domain.errors import RowNumberError
from domain.models import Session
from sinks.rows import HEADERS, session_to_sheet_row

logger = logging.getLogger(__name__)

LAST_COL = chr(ord("A") + len(HEADERS) - 1)  # "G"
VALUE_INPUT_OPTION = "USER_ENTERED"

# 'Sheet 1'!A5:G5  |  Sheet1!A5  |  'It''s'!A5:G5
_ROW_RE = re.compile(r"!\$?[A-Za-z]+\$?(\d+)")


class ValuesClient(Protocol):
    def get_values(self, spreadsheet_id: str, range_: str) -> List[List[Any]]: ...

    def update_values(
        self,
        spreadsheet_id: str,
        range_: str,
        rows: List[List[Any]],
        value_input_option: str = VALUE_INPUT_OPTION,
    ) -> Dict[str, Any]: ...

    def append_values(
        self,
        spreadsheet_id: str,
        range_: str,
        rows: List[List[Any]],
        value_input_option: str = VALUE_INPUT_OPTION,
    ) -> Dict[str, Any]: ...


@dataclass(frozen=True)
class SheetsParams:
    spreadsheet_id: str
    sheet_name: str


@dataclass(frozen=True)
class SheetSyncState:
    row_number: int  # 1-based, as assigned by the append


def quote_sheet_name(name: str) -> str:
    # always quoted; embedded quotes are doubled
    return "'" + name.replace("'", "''") + "'"


def header_range(sheet_name: str) -> str:
    return f"{quote_sheet_name(sheet_name)}!A1:{LAST_COL}1"


def append_range(sheet_name: str) -> str:
    return f"{quote_sheet_name(sheet_name)}!A:{LAST_COL}"


def row_range(sheet_name: str, row_number: int) -> str:
    return f"{quote_sheet_name(sheet_name)}!A{row_number}:{LAST_COL}{row_number}"


def parse_row_number(updated_range: str) -> int:
    """
    Row number of the first cell in an A1 range like "'Log'!A5:G5".
    Never defaults: a missing number would send the next update to row 0.
    """
    text = updated_range or ""
    # sheet names may contain "!" too, the cell part is after the last one
    idx = text.rfind("!")
    m = _ROW_RE.match(text, idx) if idx >= 0 else None
    if not m:
        raise RowNumberError(f"no row number in appended range {updated_range!r}")
    row = int(m.group(1))
    if row < 1:
        raise RowNumberError(f"invalid row number {row} in range {updated_range!r}")
    return row


def _updated_range(response: Dict[str, Any]) -> str:
    updates = (response or {}).get("updates") or {}
    return updates.get("updatedRange") or ""


def ensure_headers(client: ValuesClient, params: SheetsParams) -> bool:
    """
    Returns True if the header row had to be written.
    """
    rng = header_range(params.sheet_name)
    values = client.get_values(params.spreadsheet_id, rng)
    if values:
        return False
    client.update_values(params.spreadsheet_id, rng, [list(HEADERS)])
    logger.info("wrote header row to sheet %s", params.sheet_name)
    return True


def init_sheet_row(
    client: ValuesClient, params: SheetsParams, session: Session
) -> SheetSyncState:
    ensure_headers(client, params)
    response = client.append_values(
        params.spreadsheet_id,
        append_range(params.sheet_name),
        [session_to_sheet_row(session)],
    )
    row_number = parse_row_number(_updated_range(response))
    return SheetSyncState(row_number=row_number)


def sync_sheet_row(
    client: ValuesClient,
    params: SheetsParams,
    state: SheetSyncState,
    session: Session,
) -> None:
    client.update_values(
        params.spreadsheet_id,
        row_range(params.sheet_name, state.row_number),
        [session_to_sheet_row(session)],
    )


class SheetsSink:
    name = "google_sheets"

    def __init__(self, client: ValuesClient, params: SheetsParams):
        self.client = client
        self.params = params

    def init_row(self, session: Session) -> SheetSyncState:
        return init_sheet_row(self.client, self.params, session)

    def sync_row(self, state: SheetSyncState, session: Session) -> None:
        sync_sheet_row(self.client, self.params, state, session)
