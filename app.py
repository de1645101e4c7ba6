#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import argparse
import asyncio
import datetime as dt
import logging
import sys
from typing import List, Optional

from core.config import AppConfig, load_config
from core.logging_setup import setup_logging
from core.timer_engine import EndTimer, set_end_timer
from domain.errors import TallyError, ValidationError
from domain.models import Session
from services.batch_sync import SessionWriter, run_auto_sync, sync_unsynced_sessions
from services.session_service import SessionRunner, StopReason, install_signal_handlers
from services.sync_service import Sink, SyncService
from sinks.credentials import get_credentials
from sinks.csv_sink import CsvSink
from sinks.sheets_client import SheetsClient
from sinks.sheets_sink import SheetsParams, SheetsSink
from storage.db import Database
from storage.repos import SessionRepo

logger = logging.getLogger("tallytime")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        prog="tallytime",
        description="Track time spent on a project and mirror it to CSV / Google Sheets.",
    )
    sub = ap.add_subparsers(dest="command", required=True)

    start = sub.add_parser(
        "start",
        aliases=["s"],
        help="Start a session; ends on Ctrl+C, SIGTERM or when --duration runs out.",
    )
    start.add_argument("-p", "--project", required=True, help="Project name")
    start.add_argument("-n", "--notes", default="", help="Session notes")
    start.add_argument("-t", "--task", default="", help="Task label")
    start.add_argument(
        "-d",
        "--duration",
        default="",
        help="End the session automatically after this long (e.g. 2h, 30m, 1h30m)",
    )
    start.add_argument("-c", "--config", default=None, help="Path to config yaml file")

    sync = sub.add_parser("sync", help="Push stored, not yet synced sessions to Google Sheets.")
    sync.add_argument("-c", "--config", default=None, help="Path to config yaml file")
    mode = sync.add_mutually_exclusive_group()
    mode.add_argument(
        "--check",
        action="store_true",
        help="Only check that the spreadsheet can be reached.",
    )
    mode.add_argument(
        "-w",
        "--watch",
        action="store_true",
        help="Keep running and sync every sync.interval until Ctrl+C.",
    )

    return ap.parse_args(argv)


def _sheets_client(cfg: AppConfig) -> SheetsClient:
    raw = get_credentials(cfg.google_sheets.credentials_helper or None)
    return SheetsClient.from_credentials(raw)


def _sheets_params(cfg: AppConfig) -> SheetsParams:
    return SheetsParams(
        spreadsheet_id=cfg.google_sheets.spreadsheet_id,
        sheet_name=cfg.google_sheets.sheet_name,
    )


def build_sinks(cfg: AppConfig) -> List[Sink]:
    sinks: List[Sink] = []
    if cfg.csv.enabled:
        sinks.append(CsvSink(cfg.csv.file_path))
    if cfg.google_sheets.enabled:
        sinks.append(SheetsSink(_sheets_client(cfg), _sheets_params(cfg)))
    return sinks


def _open_repo(cfg: AppConfig) -> Optional[SessionRepo]:
    if not cfg.storage.enabled:
        return None
    db = Database(db_path=cfg.storage.database_path)
    db.init_schema()
    return SessionRepo(db)


async def run_session(
    runner: SessionRunner, session: Session, end_timer: Optional[EndTimer]
) -> StopReason:
    stop_event = asyncio.Event()
    restore = install_signal_handlers(asyncio.get_running_loop(), stop_event)
    print("Session in progress, have fun! (Ctrl+C to stop)", flush=True)
    try:
        return await runner.run(session, end_timer=end_timer, stop_event=stop_event)
    finally:
        restore()


async def watch_sync(repo: SessionRepo, writer: SessionWriter, cfg: AppConfig) -> None:
    stop_event = asyncio.Event()
    restore = install_signal_handlers(asyncio.get_running_loop(), stop_event)
    print(f"Syncing every {cfg.sync_interval:g}s (Ctrl+C to stop)", flush=True)
    stop_task = asyncio.ensure_future(stop_event.wait())
    sync_task = asyncio.ensure_future(
        run_auto_sync(
            repo,
            writer,
            interval=cfg.sync_interval,
            attempts=cfg.google_sheets.retry_attempts,
            delay=cfg.google_sheets.retry_delay,
        )
    )
    try:
        done, _ = await asyncio.wait(
            {stop_task, sync_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if sync_task in done:
            # only ends on its own by raising, e.g. a storage error
            sync_task.result()
    finally:
        restore()
        for task in (stop_task, sync_task):
            if not task.done():
                task.cancel()


def cmd_start(args: argparse.Namespace) -> int:
    project = (args.project or "").strip()
    if not project:
        raise ValidationError("Project name cannot be empty.")

    started = dt.datetime.now()
    end_timer = set_end_timer(args.duration, now=started)
    cfg = load_config(args.config)
    setup_logging(cfg.logging.level, cfg.logging.output_file or None)

    sinks = build_sinks(cfg)
    repo = _open_repo(cfg)

    session = Session(
        start_time=started,
        project_name=project,
        task=args.task or "",
        notes=args.notes or "",
    )
    runner = SessionRunner(SyncService(sinks), cfg.sync_interval, session_repo=repo)

    print(f"Starting session for project: {project}")
    if end_timer is not None:
        print(
            f"Session will end automatically in {end_timer.duration} "
            f"(at {end_timer.deadline:%H:%M:%S})"
        )
    if not sinks:
        logger.info("no sync targets enabled, tracking locally only")

    try:
        reason = asyncio.run(run_session(runner, session, end_timer))
    finally:
        if repo is not None:
            repo.db.close()

    ended = "time is up" if reason is StopReason.TIMER else "stopped"
    print(f"Session {ended}. Duration: {session.formatted_duration()}")
    return 0


def cmd_sync(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    setup_logging(cfg.logging.level, cfg.logging.output_file or None)

    if not cfg.google_sheets.enabled:
        print("Google Sheets sync is disabled in the config, nothing to do.")
        return 0

    client = _sheets_client(cfg)
    params = _sheets_params(cfg)
    if args.check:
        client.test_connection(params.spreadsheet_id)
        print(f"Connected to spreadsheet {params.spreadsheet_id}.")
        return 0

    if not cfg.storage.enabled:
        raise ValidationError("storage is disabled, there are no stored sessions to sync")
    repo = _open_repo(cfg)

    def writer(sessions: List[Session]) -> None:
        client.append_sessions(params, sessions)

    try:
        if args.watch:
            asyncio.run(watch_sync(repo, writer, cfg))
            print("Stopped syncing.")
            return 0
        count = asyncio.run(
            sync_unsynced_sessions(
                repo,
                writer,
                attempts=cfg.google_sheets.retry_attempts,
                delay=cfg.google_sheets.retry_delay,
            )
        )
    finally:
        repo.db.close()

    print(f"Synced {count} session(s).")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    handler = cmd_sync if args.command == "sync" else cmd_start
    try:
        return handler(args)
    except (TallyError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
