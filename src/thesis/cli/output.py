# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Thesis Contributors

"""Output formatting for CLI commands.

Commands build a JSON-safe dict plus a list of text lines; ``--json``
selects which one is printed.
"""

from __future__ import annotations

import json
import sys
from typing import Any


def output_result(data: dict[str, Any], lines: list[str], as_json: bool = False) -> None:
    """Print a command result as pretty JSON or as pre-formatted text."""
    if as_json:
        print(json.dumps(data, indent=2, default=str))
    else:
        for line in lines:
            print(line)


def output_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"Error: {message}", file=sys.stderr)
