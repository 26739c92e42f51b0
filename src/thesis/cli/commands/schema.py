"""Init command: apply schema.sql to the configured database."""

from __future__ import annotations

import argparse
import logging

import psycopg2

from ...core.config import get_config
from ...core.db import init_schema
from ...core.exceptions import DatabaseException
from ..output import output_error, output_result

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the init command on the CLI parser."""
    init_parser = subparsers.add_parser("init", help="Initialize database schema")
    init_parser.add_argument("--schema", help="Path to an alternative schema.sql")
    init_parser.set_defaults(func=cmd_init)


def cmd_init(args: argparse.Namespace) -> int:
    """Create the engine tables (idempotent)."""
    config = get_config()
    target = f"{config.db_host}:{config.db_port}/{config.db_name}"

    try:
        init_schema(args.schema)
    except (FileNotFoundError, DatabaseException, psycopg2.Error) as e:
        logger.error(f"Schema initialization failed for {target}: {e}")
        output_error(f"Init failed: {e}")
        return 1

    output_result(
        {"initialized": True, "database": target},
        [f"✅ Schema applied to {target}"],
        as_json=args.json,
    )
    return 0
