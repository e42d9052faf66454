"""Replay block: transaction log in, AggregatedView out."""

from typing import Any, Dict, List, Optional

from .base import Block, BlockContext
from ..config import EngineSettings
from ..exceptions import EmptyTransactionLogError
from ..replay import replay
from ..schemas import parse_transactions

REPLAY_INPUTS = ["transactions", "stakeholders", "stock_classes", "stock_plans"]


def coerce_transactions(records: List[Any]) -> List[Any]:
    """Accept typed transactions or raw log dicts (parsed on the way in)."""
    if records and all(isinstance(record, dict) for record in records):
        return parse_transactions(records)
    return list(records)


class ReplayBlock(Block):
    """Replays the issuer's log into an AggregatedView.

    Inputs (from context):
        - transactions: Ordered transaction log (typed, or raw dicts)
        - stakeholders, stock_classes, stock_plans: Reference data

    Outputs (to context):
        - aggregated_view: Normalized AggregatedView

    Unlike ``replay`` in non-strict mode, the block refuses an empty log:
    a workbook built from nothing is almost always a wiring mistake.
    """

    def __init__(self, settings: Optional[EngineSettings] = None, issuer_id: Optional[str] = None):
        self.settings = settings
        self.issuer_id = issuer_id

    def inputs(self) -> List[str]:
        return list(REPLAY_INPUTS)

    def outputs(self) -> List[str]:
        return ["aggregated_view"]

    def execute(self, context: BlockContext) -> None:
        transactions = coerce_transactions(context.get("transactions"))
        if not transactions:
            raise EmptyTransactionLogError(self.issuer_id)

        view = replay(
            transactions,
            context.get("stakeholders"),
            context.get("stock_classes"),
            context.get("stock_plans"),
            settings=self.settings,
            issuer_id=self.issuer_id,
        )
        context.set("aggregated_view", view)


def reference_inputs(context: BlockContext) -> Dict[str, Any]:
    """Read the four replay inputs, parsing raw transactions if needed."""
    return {
        "transactions": coerce_transactions(context.get("transactions")),
        "stakeholders": context.get("stakeholders"),
        "stock_classes": context.get("stock_classes"),
        "stock_plans": context.get("stock_plans"),
    }
