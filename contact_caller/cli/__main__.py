from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Callable
from pathlib import Path

from dotenv import load_dotenv

from contact_caller.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from contact_caller.logging.error_log import ErrorLogBuffer
from contact_caller.logging.init import log_summary, setup_logging
from contact_caller.models.config_models import CallerConfig
from contact_caller.services.allocator import AllocationPolicy
from contact_caller.services.completion import CompletionRejectedError
from contact_caller.services.contacts import complete_contact, list_pending, probe_store
from contact_caller.services.progress import SessionProgress
from contact_caller.services.session import CallingSession, SessionState, SessionStateError
from contact_caller.services.summary import session_summary_fields
from contact_caller.sheets.normalizer import DEFAULT_ALIASES, AliasTable, SchemaError
from contact_caller.store.base import TabularStore
from contact_caller.store.errors import StoreError, TransientStoreError
from contact_caller.store.factory import credentials_configured, open_store

"""CLI entrypoint.

    contact-caller [--config PATH] [--debug] probe
    contact-caller pending [--all] [--limit N]
    contact-caller complete --row N --by NAME
    contact-caller session --by NAME
    contact-caller health

Exit codes:
    0 success
    1 fatal: config, schema, not found, permission denied, rejected request
    2 transient store failure; safe to retry after re-reading
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_RETRYABLE = 2

Handler = Callable[[argparse.Namespace, CallerConfig, TabularStore, ErrorLogBuffer], int]


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the existing environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="contact-caller", description="Shared contact sheet caller")
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("probe", help="Show store title and header row")
    sub.add_parser("health", help="Check credentials and store connectivity")

    pending = sub.add_parser("pending", help="List a random batch of pending contacts")
    pending.add_argument("--all", action="store_true", help="Return every pending contact")
    pending.add_argument("--limit", type=int, default=None, help="Batch size (default from config)")

    complete = sub.add_parser("complete", help="Mark one row completed")
    complete.add_argument("--row", type=int, required=True, help="Row address (1-based, header is row 1)")
    complete.add_argument("--by", required=True, help="Caller name")

    session = sub.add_parser("session", help="Interactive calling session")
    session.add_argument("--by", required=True, help="Caller name")
    return p.parse_args(argv)


def _aliases(cfg: CallerConfig) -> AliasTable:
    return DEFAULT_ALIASES.extended(cfg.aliases)


def _cmd_probe(args: argparse.Namespace, cfg: CallerConfig, store: TabularStore, error_log: ErrorLogBuffer) -> int:
    result = probe_store(store, aliases=_aliases(cfg))
    print(f"title={result.title}")
    print(f"headers={result.headers}")
    return EXIT_SUCCESS


def _cmd_pending(args: argparse.Namespace, cfg: CallerConfig, store: TabularStore, error_log: ErrorLogBuffer) -> int:
    if args.all:
        size = None
    else:
        size = args.limit or cfg.session.batch_size
    result = list_pending(store, batch_size=size, aliases=_aliases(cfg), timezone=cfg.timezone)
    if result.batch.is_empty:
        print(f"condition={result.condition.value} ({result.message})")
        return EXIT_SUCCESS
    for record in result.batch:
        print(f"row={record.row_address} contact={record.identifier}")
    print(f"returned={len(result.batch)} pending={result.pending_count} rows={result.total_rows}")
    return EXIT_SUCCESS


def _cmd_complete(args: argparse.Namespace, cfg: CallerConfig, store: TabularStore, error_log: ErrorLogBuffer) -> int:
    try:
        result = complete_contact(store, args.row, args.by, timezone=cfg.timezone, aliases=_aliases(cfg))
    except (StoreError, SchemaError) as e:
        error_log.record_failure(cfg.store.reference, cfg.store.sheet_name, args.row, e)
        raise
    print(f"row={result.row_address} completedBy={result.completed_by} completedAt={result.completed_at_text}")
    return EXIT_SUCCESS


def _prompt(message: str) -> str:
    try:
        return input(message)
    except EOFError:
        return "q"


def _cmd_session(args: argparse.Namespace, cfg: CallerConfig, store: TabularStore, error_log: ErrorLogBuffer) -> int:
    session = CallingSession(
        store,
        policy=AllocationPolicy(cfg.session.policy),
        batch_size=cfg.session.batch_size,
        timezone=cfg.timezone,
        aliases=_aliases(cfg),
        error_log=error_log,
        store_ref=cfg.store.reference,
        sheet_name=cfg.store.sheet_name,
    )
    batch = session.load_first_batch(args.by)
    if session.state is SessionState.SESSION_COMPLETE:
        print(f"nothing to call: {session.condition.message if session.condition else 'no pending contacts'}")
        log_summary(session_summary_fields(session.stats))
        return EXIT_SUCCESS

    exit_code = EXIT_SUCCESS
    with SessionProgress(session.stats.total, caller=session.caller or args.by) as progress:
        progress.start_batch(batch.number, len(batch))
        while session.state is SessionState.BATCH_LOADED:
            view = session.batch.records
            for idx, record in enumerate(view, start=1):
                progress.write(f"  [{idx}] row={record.row_address} contact={record.identifier}")
            answer = _prompt("number to mark completed, q to quit: ").strip().lower()
            if answer in ("q", "quit", "exit"):
                break
            if not answer.isdigit() or not 1 <= int(answer) <= len(view):
                progress.write(f"unknown choice: {answer!r}")
                continue
            record = view[int(answer) - 1]
            try:
                result = session.complete_one(record)
            except TransientStoreError as e:
                progress.write(f"not saved, try again: {e}")
                exit_code = EXIT_RETRYABLE
                continue
            exit_code = EXIT_SUCCESS
            progress.contact_done(len(session.batch))
            progress.write(f"completed row={result.row_address} at {result.completed_at_text}")
            if session.state is SessionState.BATCH_EXHAUSTED:
                batch = session.load_next_batch()
                if session.state is SessionState.SESSION_COMPLETE:
                    progress.write("All contacts completed!")
                else:
                    progress.start_batch(batch.number, len(batch))

    log_summary(session_summary_fields(session.stats))
    return exit_code


_COMMANDS: dict[str, Handler] = {
    "probe": _cmd_probe,
    "pending": _cmd_pending,
    "complete": _cmd_complete,
    "session": _cmd_session,
}


def _cmd_health(cfg: CallerConfig) -> int:
    logger = setup_logging()
    has_credentials = credentials_configured(cfg.store)
    print(f"backend={cfg.store.backend} hasCredentials={str(has_credentials).lower()}")
    try:
        with open_store(cfg.store) as store:
            title = store.title()
    except (ConfigError, StoreError) as e:
        logger.error(f"health: {e}")
        return EXIT_RETRYABLE if isinstance(e, TransientStoreError) else EXIT_FATAL
    print(f"status=OK title={title}")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    # None only: an explicit [] must not fall back to sys.argv (pytest args)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(os.getenv("CONTACT_CALLER_ENV_FILE", ".env")), override=True)
    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.command == "health":
        return _cmd_health(cfg)

    logger.info(f"store={cfg.store.reference} sheet={cfg.store.sheet_name}")
    error_log = ErrorLogBuffer(cfg.error_log_dir)
    try:
        with open_store(cfg.store) as store:
            return _COMMANDS[args.command](args, cfg, store, error_log)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL
    except CompletionRejectedError as e:
        logger.error(f"rejected: {e}")
        return EXIT_FATAL
    except SessionStateError as e:
        logger.error(f"session: {e}")
        return EXIT_FATAL
    except SchemaError as e:
        logger.error(f"schema: {e}")
        return EXIT_FATAL
    except TransientStoreError as e:
        logger.error(f"store (retryable): {e}")
        return EXIT_RETRYABLE
    except StoreError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info(f"error log written: {path}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
