"""Security-type processors.

One module per security family. Every processor has the signature
``(state, transaction) -> state`` and only touches the holders the
transaction concerns. A missing reference makes the processor record a skip
and return the state unchanged.
"""

from typing import Callable, Dict

from ..state import ReplayState
from .convertibles import process_convertible_issuance
from .equity_compensation import (
    grant_category,
    process_equity_compensation_exercise,
    process_equity_compensation_issuance,
)
from .stocks import (
    process_stock_cancellation,
    process_stock_issuance,
    process_stock_transfer,
)
from .warrants import (
    process_warrant_cancellation,
    process_warrant_exercise,
    process_warrant_issuance,
)

Processor = Callable[[ReplayState, object], ReplayState]

PROCESSORS: Dict[str, Processor] = {
    "TX_STOCK_ISSUANCE": process_stock_issuance,
    "TX_STOCK_CANCELLATION": process_stock_cancellation,
    "TX_STOCK_TRANSFER": process_stock_transfer,
    "TX_EQUITY_COMPENSATION_ISSUANCE": process_equity_compensation_issuance,
    "TX_EQUITY_COMPENSATION_EXERCISE": process_equity_compensation_exercise,
    "TX_CONVERTIBLE_ISSUANCE": process_convertible_issuance,
    "TX_WARRANT_ISSUANCE": process_warrant_issuance,
    "TX_WARRANT_EXERCISE": process_warrant_exercise,
    "TX_WARRANT_CANCELLATION": process_warrant_cancellation,
}
"""Transaction object_type -> processor. Adjustment types have no holder effect."""

__all__ = [
    "PROCESSORS",
    "Processor",
    "grant_category",
    "process_stock_issuance",
    "process_stock_cancellation",
    "process_stock_transfer",
    "process_equity_compensation_issuance",
    "process_equity_compensation_exercise",
    "process_convertible_issuance",
    "process_warrant_issuance",
    "process_warrant_exercise",
    "process_warrant_cancellation",
]
