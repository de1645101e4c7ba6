# -*- coding: utf-8 -*-

from typing import List

from domain.models import Session, format_hms

HEADERS = ["Project", "Task", "Date", "Start Time", "End Time", "Duration", "Notes"]
IN_PROGRESS = "In Progress"

DURATION_COL = HEADERS.index("Duration")

# End Time is column E, Start Time column D
DURATION_FORMULA = '=INDIRECT("E"&ROW())-INDIRECT("D"&ROW())'

TIME_FMT = "%H:%M:%S"


def session_record(session: Session, date_sep: str = "-") -> List[str]:
    end = session.end_time
    end_col = end.strftime(TIME_FMT) if end is not None else IN_PROGRESS
    return [
        session.project_name,
        session.task,
        session.start_time.strftime(f"%Y{date_sep}%m{date_sep}%d"),
        session.start_time.strftime(TIME_FMT),
        end_col,
        format_hms(session.duration_sec()),
        session.notes,
    ]


def session_to_csv_row(session: Session) -> List[str]:
    return session_record(session, date_sep="/")


def session_to_sheet_row(session: Session) -> List[str]:
    """
    Ended sessions get a formula for Duration so the sheet recomputes it
    if someone edits the start/end cells by hand.
    """
    row = session_record(session)
    if not session.is_active:
        row[DURATION_COL] = DURATION_FORMULA
    return row
