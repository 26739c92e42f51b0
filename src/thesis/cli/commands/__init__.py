"""CLI command modules for Thesis.

Each module exposes a ``register(subparsers)`` function that wires up
its argparse sub-commands and sets ``parser.set_defaults(func=handler)``.
"""

from . import market, reputation, schema, stats
from .market import cmd_history, cmd_price, cmd_spikes
from .reputation import cmd_decay, cmd_reputation
from .schema import cmd_init
from .stats import cmd_stats

# All command modules with register() functions, in registration order.
COMMAND_MODULES = [
    schema,
    market,
    stats,
    reputation,
]

__all__ = [
    "COMMAND_MODULES",
    "cmd_decay",
    "cmd_history",
    "cmd_init",
    "cmd_price",
    "cmd_reputation",
    "cmd_spikes",
    "cmd_stats",
]
