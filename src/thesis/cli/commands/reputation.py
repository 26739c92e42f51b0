"""Reputation commands: breakdown and the decay scheduler hook."""

from __future__ import annotations

import argparse
import logging

import psycopg2

from ...core.exceptions import NotFoundError, ThesisException
from ..output import output_error, output_result
from ..utils import format_age, get_engine

logger = logging.getLogger(__name__)


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the reputation commands on the CLI parser."""
    reputation_parser = subparsers.add_parser("reputation", help="Show a user's reputation breakdown")
    reputation_parser.add_argument("user_id", help="User ID")
    reputation_parser.set_defaults(func=cmd_reputation)

    decay_parser = subparsers.add_parser("decay", help="Persist inactivity decay for users (scheduler hook)")
    decay_parser.add_argument("user_ids", nargs="+", help="User IDs")
    decay_parser.set_defaults(func=cmd_decay)


def cmd_reputation(args: argparse.Namespace) -> int:
    """Show the score factor by factor, plus recent changes."""
    try:
        breakdown = get_engine().reputation.get_reputation_breakdown(args.user_id)
    except (ThesisException, psycopg2.Error) as e:
        output_error(f"Reputation lookup failed: {e}")
        return 1

    lines = [f"🏅 Reputation for {args.user_id}: {breakdown.overall}", "─" * 30]
    lines.extend(
        f"  {f.name:<22} {f.value:>6.2f} × {f.weight:.2f} → {f.contribution}" for f in breakdown.factors
    )
    if breakdown.recent_changes:
        lines.append("  Recent changes:")
        lines.extend(
            f"    {format_age(h.created_at):>4}  {h.change_amount:+.2f}  {h.reason}" for h in breakdown.recent_changes
        )

    output_result(breakdown.to_dict(), lines, as_json=args.json)
    return 0


def cmd_decay(args: argparse.Namespace) -> int:
    """Apply decay to each user; unscored users are reported and skipped."""
    reputation = get_engine().reputation
    results: dict[str, float | None] = {}
    lines = []
    failed = False

    for user_id in args.user_ids:
        try:
            score = reputation.apply_decay(user_id)
        except NotFoundError:
            results[user_id] = None
            lines.append(f"  {user_id}: unscored, skipped")
            continue
        except (ThesisException, psycopg2.Error) as e:
            logger.error(f"Decay failed for user {user_id}: {e}")
            output_error(f"Decay failed for {user_id}: {e}")
            failed = True
            continue
        results[user_id] = score
        lines.append(f"  {user_id}: {score:g}")

    output_result({"scores": results}, ["⏳ Decay applied", *lines], as_json=args.json)
    return 1 if failed else 0
