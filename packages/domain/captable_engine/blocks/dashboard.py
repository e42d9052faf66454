"""Dashboard block: issuer-level scalars as DataFrames."""

from decimal import Decimal
from typing import List, Optional

import pandas as pd

from .base import Block, BlockContext
from .replay import REPLAY_INPUTS, reference_inputs
from ..replay import summarize_dashboard
from ..schemas import DashboardSummary


class DashboardBlock(Block):
    """Summarizes the log for the issuer dashboard.

    Inputs (from context):
        - transactions, stakeholders, stock_classes, stock_plans

    Outputs (to context):
        - dashboard: The DashboardSummary model itself
        - dashboard_summary: Single-row DataFrame with columns:
            * total_raised, latest_share_price
            * valuation_type, valuation_amount, valuation_created_at
            * num_of_stakeholders, stock_plan_amount, total_shares_authorized
        - ownership_by_relationship: DataFrame with columns:
            * relationship, shares_issued, ownership_pct
    """

    def __init__(self, issuer_initial_shares_authorized: Optional[Decimal] = None):
        self.issuer_initial_shares_authorized = issuer_initial_shares_authorized

    def inputs(self) -> List[str]:
        return list(REPLAY_INPUTS)

    def outputs(self) -> List[str]:
        return ["dashboard", "dashboard_summary", "ownership_by_relationship"]

    def execute(self, context: BlockContext) -> None:
        summary = summarize_dashboard(
            **reference_inputs(context),
            issuer_initial_shares_authorized=self.issuer_initial_shares_authorized,
        )
        context.set("dashboard", summary)
        context.set("dashboard_summary", self._compute_summary(summary))
        context.set("ownership_by_relationship", self._compute_ownership(summary))

    def _compute_summary(self, summary: DashboardSummary) -> pd.DataFrame:
        valuation = summary.valuation
        return pd.DataFrame([{
            "total_raised": float(summary.total_raised),
            "latest_share_price": (
                float(summary.latest_share_price)
                if summary.latest_share_price is not None else None
            ),
            "valuation_type": valuation.type if valuation else None,
            "valuation_amount": float(valuation.amount) if valuation else None,
            "valuation_created_at": valuation.created_at if valuation else None,
            "num_of_stakeholders": summary.num_of_stakeholders,
            "stock_plan_amount": float(summary.stock_plan_amount),
            "total_shares_authorized": (
                float(summary.total_shares_authorized)
                if summary.total_shares_authorized is not None else None
            ),
        }])

    def _compute_ownership(self, summary: DashboardSummary) -> pd.DataFrame:
        rows = [
            {
                "relationship": relationship,
                "shares_issued": float(shares),
                "ownership_pct": round(float(summary.ownership_by_relationship.get(relationship, 0)), 2),
            }
            for relationship, shares in summary.shares_issued_by_relationship.items()
        ]
        df = pd.DataFrame(rows, columns=["relationship", "shares_issued", "ownership_pct"])
        if not df.empty:
            df = df.sort_values("shares_issued", ascending=False, kind="stable").reset_index(drop=True)
        return df
