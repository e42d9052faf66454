"""Replay and aggregation of cap table transaction logs.

Entry points:
    replay               transaction log -> normalized AggregatedView
    check_references     optional pre-flight reference validation
    summarize_dashboard  issuer dashboard figures
    build_stock_ledger   per-movement stock ledger and class totals
"""

from .dashboard import convertible_valuation_cap, summarize_dashboard
from .engine import replay
from .ledger import build_stock_ledger
from .mechanisms import (
    extract_conversion_terms,
    extract_warrant_terms,
    format_conversion_triggers,
)
from .normalization import compute_options_pool, normalize, percent_of
from .resolver import ReferenceResolver, SecurityIndex
from .state import ReplayState
from .validation import ReferenceCheck, check_references

__all__ = [
    "replay",
    "check_references",
    "ReferenceCheck",
    "summarize_dashboard",
    "convertible_valuation_cap",
    "build_stock_ledger",
    "normalize",
    "compute_options_pool",
    "percent_of",
    "extract_conversion_terms",
    "extract_warrant_terms",
    "format_conversion_triggers",
    "ReferenceResolver",
    "SecurityIndex",
    "ReplayState",
]
