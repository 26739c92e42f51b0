"""Stats command."""

from __future__ import annotations

import argparse

import psycopg2

from ...core.exceptions import ThesisException
from ..output import output_error, output_result
from ..utils import get_engine


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the stats command on the CLI parser."""
    stats_parser = subparsers.add_parser("stats", help="Show a debate's aggregate stance statistics")
    stats_parser.add_argument("debate_id", help="Debate ID")
    stats_parser.set_defaults(func=cmd_stats)


def cmd_stats(args: argparse.Namespace) -> int:
    """Show aggregate statistics (never individual votes)."""
    try:
        stats = get_engine().guard.get_aggregate_stats(args.debate_id)
    except (ThesisException, psycopg2.Error) as e:
        output_error(f"Stats failed: {e}")
        return 1

    lines = [
        f"📊 Stance statistics for {args.debate_id}",
        "─" * 30,
        f"  Voters (pre and post): {stats.total_voters}",
        f"  Average pre-stance:    {stats.average_pre_stance}",
        f"  Average post-stance:   {stats.average_post_stance}",
        f"  Average delta:         {stats.average_delta:+}",
        f"  Minds changed:         {stats.mind_changed_count}",
    ]
    output_result(stats.to_dict(), lines, as_json=args.json)
    return 0
