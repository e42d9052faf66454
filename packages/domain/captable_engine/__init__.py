"""Cap Table Engine - replay and aggregation of capitalization transactions.

This package turns an issuer's ordered transaction log into derived views:
- Per-stakeholder holdings (outstanding, as-converted, fully diluted)
- Voting power and normalized voting percentages
- Options pool, dashboard totals and a stock ledger

The engine is designed to be:
- Pure (one replay owns its state; no I/O, no shared caches)
- Total (missing references and over-cancellations are recovered locally)
- Framework-agnostic (no web or storage dependencies)
"""

from .schemas import *  # noqa: F403, F401
from .replay import (  # noqa: F401
    replay,
    check_references,
    summarize_dashboard,
    build_stock_ledger,
)

__version__ = "0.1.0"
