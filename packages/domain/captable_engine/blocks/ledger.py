"""Stock ledger block.

Output DataFrames:
- stock_ledger: One row per stock or grant movement, in date order
- stock_class_totals: One row per stock class
"""

from typing import List

import pandas as pd

from .base import Block, BlockContext
from .replay import REPLAY_INPUTS, reference_inputs
from ..replay import build_stock_ledger
from ..schemas import StockLedger

LEDGER_COLUMNS = [
    "date",
    "transaction_id",
    "display_type",
    "holder_name",
    "relationship",
    "stock_class_name",
    "certificate_id",
    "quantity",
    "price_per_share",
    "amount_paid",
    "related_security_id",
    "counterparty_id",
    "reason",
]

TOTALS_COLUMNS = [
    "stock_class_id",
    "stock_class_name",
    "type",
    "shares_authorized",
    "shares_issued",
    "shares_outstanding",
    "shares_transferred",
    "shares_cancelled",
    "options_issued",
    "options_exercised",
]


class StockLedgerBlock(Block):
    """Builds the stock ledger.

    Inputs (from context):
        - transactions, stakeholders, stock_classes, stock_plans

    Outputs (to context):
        - stock_ledger: columns LEDGER_COLUMNS
        - stock_class_totals: columns TOTALS_COLUMNS
    """

    def inputs(self) -> List[str]:
        return list(REPLAY_INPUTS)

    def outputs(self) -> List[str]:
        return ["stock_ledger", "stock_class_totals"]

    def execute(self, context: BlockContext) -> None:
        ledger = build_stock_ledger(**reference_inputs(context))
        context.set("stock_ledger", self._compute_entries(ledger))
        context.set("stock_class_totals", self._compute_totals(ledger))

    def _compute_entries(self, ledger: StockLedger) -> pd.DataFrame:
        rows = [
            {
                "date": entry.date,
                "transaction_id": entry.transaction_id,
                "display_type": entry.display_type,
                "holder_name": entry.holder_name,
                "relationship": entry.relationship,
                "stock_class_name": entry.stock_class_name,
                "certificate_id": entry.certificate_id,
                "quantity": float(entry.quantity),
                "price_per_share": float(entry.price_per_share),
                "amount_paid": float(entry.amount_paid),
                "related_security_id": entry.related_security_id,
                "counterparty_id": entry.counterparty_id,
                "reason": entry.reason,
            }
            for entry in ledger.entries
        ]
        return pd.DataFrame(rows, columns=LEDGER_COLUMNS)

    def _compute_totals(self, ledger: StockLedger) -> pd.DataFrame:
        rows = [
            {
                "stock_class_id": totals.id,
                "stock_class_name": totals.name,
                "type": totals.type,
                "shares_authorized": (
                    float(totals.shares_authorized)
                    if totals.shares_authorized is not None else None
                ),
                "shares_issued": float(totals.shares_issued),
                "shares_outstanding": float(totals.shares_outstanding),
                "shares_transferred": float(totals.shares_transferred),
                "shares_cancelled": float(totals.shares_cancelled),
                "options_issued": float(totals.options_issued),
                "options_exercised": float(totals.options_exercised),
            }
            for totals in ledger.class_totals.values()
        ]
        return pd.DataFrame(rows, columns=TOTALS_COLUMNS)
