# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Thesis Contributors

"""Thesis - opinion market and reputation engine for structured debates.

Spectators record a stance before and after reading a debate's arguments.
The engine turns those votes into:
  - a live market price (mean of each voter's latest stance)
  - spikes (large swings attributed to one argument)
  - aggregate, privacy-safe statistics
  - a decaying, diminishing-returns reputation score per user

Individual votes are only ever shown to their own author.

CLI entry point: ``thesis``
"""

__version__ = "0.1.0"

from . import (
    core as core,
)
