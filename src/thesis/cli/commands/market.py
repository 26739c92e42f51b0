"""Market commands: price, history, spikes."""

from __future__ import annotations

import argparse

import psycopg2

from ...core.exceptions import ThesisException
from ..output import output_error, output_result
from ..utils import format_age, get_engine, price_bar


def register(subparsers: argparse._SubParsersAction) -> None:
    """Register the market commands on the CLI parser."""
    price_parser = subparsers.add_parser("price", help="Show a debate's current market price")
    price_parser.add_argument("debate_id", help="Debate ID")
    price_parser.set_defaults(func=cmd_price)

    history_parser = subparsers.add_parser("history", help="Show a debate's price history")
    history_parser.add_argument("debate_id", help="Debate ID")
    history_parser.add_argument("--limit", "-n", type=int, default=20, help="Most recent points to show")
    history_parser.set_defaults(func=cmd_history)

    spikes_parser = subparsers.add_parser("spikes", help="Show a debate's stance spikes")
    spikes_parser.add_argument("debate_id", help="Debate ID")
    spikes_parser.set_defaults(func=cmd_spikes)


def cmd_price(args: argparse.Namespace) -> int:
    """Show the current support/oppose price."""
    try:
        snapshot = get_engine().market.calculate_market_price(args.debate_id)
    except (ThesisException, psycopg2.Error) as e:
        output_error(f"Price lookup failed: {e}")
        return 1

    lines = [
        f"📈 Market for {args.debate_id}",
        "─" * 30,
        f"  Support: {snapshot.support_price:>3}  {price_bar(snapshot.support_price)}",
        f"  Oppose:  {snapshot.oppose_price:>3}",
        f"  Voters:  {snapshot.total_votes}",
        f"  Mind changes: {snapshot.mind_change_count}",
    ]
    output_result(snapshot.to_dict(), lines, as_json=args.json)
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    """Show the price time series, oldest first."""
    try:
        points = get_engine().market.get_market_history(args.debate_id)
    except (ThesisException, psycopg2.Error) as e:
        output_error(f"History lookup failed: {e}")
        return 1

    if args.limit and args.limit > 0:
        points = points[-args.limit :]

    if not points:
        lines = [f"No price history for {args.debate_id}"]
    else:
        lines = [f"📜 Price history for {args.debate_id} ({len(points)} points)"]
        for p in points:
            bar = price_bar(p.support_price)
            lines.append(f"  {format_age(p.timestamp):>4}  {p.support_price:>5.1f}  {bar}  ({p.vote_count} votes)")

    output_result(
        {"debate_id": args.debate_id, "points": [p.to_dict() for p in points]},
        lines,
        as_json=args.json,
    )
    return 0


def cmd_spikes(args: argparse.Namespace) -> int:
    """Show recorded spikes in the order they happened."""
    try:
        spikes = get_engine().market.get_spikes(args.debate_id)
    except (ThesisException, psycopg2.Error) as e:
        output_error(f"Spike lookup failed: {e}")
        return 1

    if not spikes:
        lines = [f"No spikes for {args.debate_id}"]
    else:
        lines = [f"⚡ Spikes for {args.debate_id}"]
        lines.extend(f"  {format_age(s.timestamp):>4}  {s.label}  (argument {s.argument_id})" for s in spikes)

    output_result(
        {"debate_id": args.debate_id, "spikes": [s.to_dict() for s in spikes]},
        lines,
        as_json=args.json,
    )
    return 0
