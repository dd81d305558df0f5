"""
cairn.__main__ — Maintenance CLI for ``python -m cairn``
=========================================================

Commands:

    init-db   create the ``kv_entries`` table if missing
    migrate   move legacy zero-padded keys to their canonical form
    purge     delete expired entries

Run with::

    uv run python -m cairn migrate
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from cairn.config import load_config
from cairn.database.engine import create_db_engine, init_db
from cairn.database.kv import SqlKVStore
from cairn.services.migration_service import migrate_legacy_keys

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("cairn")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cairn", description="Cairn maintenance commands")
    parser.add_argument(
        "--config",
        default=os.getenv("CAIRN_CONFIG", "config.yaml"),
        help="path to config.yaml (default: %(default)s)",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="create tables if they do not exist")
    sub.add_parser("migrate", help="migrate legacy zero-padded keys")
    sub.add_parser("purge", help="delete expired entries")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run one maintenance command.  Returns the process exit code."""
    load_dotenv()
    args = _build_parser().parse_args(argv)

    try:
        engine = create_db_engine()
    except RuntimeError as exc:
        logger.critical("%s", exc)
        return 1

    if args.command == "init-db":
        init_db(engine)
        return 0

    kv = SqlKVStore(engine)
    if args.command == "migrate":
        cfg = load_config(args.config)
        migrated = asyncio.run(migrate_legacy_keys(kv, page_size=cfg.migration_page_size))
        print(f"Migrated {migrated} key(s)")
    elif args.command == "purge":
        purged = asyncio.run(kv.purge_expired())
        print(f"Purged {purged} expired entr{'y' if purged == 1 else 'ies'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
