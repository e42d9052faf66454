"""Stakeholder view block.

Flattens a normalized AggregatedView into DataFrames for Excel rendering.

Output DataFrames:
- stakeholder_holdings: One row per holder, largest fully diluted first
- stakeholder_classes: One row per holder x class or grant category
- voting_rights: One row per voting holder, one percentage column per class
- convertible_records: One row per SAFE, note or other convertible
- warrant_records: One row per warrant
"""

from decimal import Decimal
from typing import List, Optional

import pandas as pd

from .base import Block, BlockContext
from ..schemas import AggregatedView, HolderState, WarrantRecord

HOLDINGS_COLUMNS = [
    "stakeholder_id",
    "stakeholder_name",
    "relationship",
    "outstanding",
    "outstanding_pct",
    "as_converted",
    "as_converted_pct",
    "fully_diluted",
    "fully_diluted_pct",
    "votes",
    "voting_pct",
]

CLASS_COLUMNS = [
    "stakeholder_id",
    "stakeholder_name",
    "class_name",
    "type",
    "outstanding",
    "as_converted",
    "fully_diluted",
    "voting_power",
]

VOTING_COLUMNS = [
    "stakeholder_id",
    "stakeholder_name",
    "votes",
    "total_pct",
    "common_pct",
    "preferred_pct",
]

CONVERTIBLE_COLUMNS = [
    "stakeholder_id",
    "stakeholder_name",
    "id",
    "custom_id",
    "convertible_type",
    "amount",
    "currency",
    "date",
    "valuation_cap",
    "discount",
    "valuation_method",
    "mfn",
    "interest_rate",
    "maturity_date",
    "has_side_letters",
    "is_outstanding",
]

WARRANT_COLUMNS = [
    "stakeholder_id",
    "stakeholder_name",
    "id",
    "custom_id",
    "date",
    "stock_class",
    "shares_issuable",
    "shares_exercised",
    "shares_cancelled",
    "shares_remaining",
    "exercise_price",
    "purchase_price",
    "expiration_date",
    "conversion_mechanism_type",
    "is_outstanding",
]


def _float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _pct(value: Decimal) -> float:
    return round(float(value), 2)


class StakeholderViewBlock(Block):
    """Converts an AggregatedView into per-holder DataFrames.

    Inputs (from context):
        - aggregated_view: Normalized AggregatedView

    Outputs (to context):
        - stakeholder_holdings: columns HOLDINGS_COLUMNS; percentages in
          points rounded to 2 dp
        - stakeholder_classes: columns CLASS_COLUMNS
        - voting_rights: columns VOTING_COLUMNS plus one ``<class> pct``
          column per class that carries votes
        - convertible_records: columns CONVERTIBLE_COLUMNS
        - warrant_records: columns WARRANT_COLUMNS

    Example:
        context.set("aggregated_view", view)
        StakeholderViewBlock().execute(context)
        context.get("stakeholder_holdings").iloc[0]["fully_diluted_pct"]
        -> 62.5
    """

    def __init__(self, view_key: str = "aggregated_view"):
        self.view_key = view_key

    def inputs(self) -> List[str]:
        return [self.view_key]

    def outputs(self) -> List[str]:
        return [
            "stakeholder_holdings",
            "stakeholder_classes",
            "voting_rights",
            "convertible_records",
            "warrant_records",
        ]

    def execute(self, context: BlockContext) -> None:
        view: AggregatedView = context.get(self.view_key)
        holders = view.sorted_holders()

        context.set("stakeholder_holdings", self._compute_holdings(holders))
        context.set("stakeholder_classes", self._compute_classes(holders))
        context.set("voting_rights", self._compute_voting(view, holders))
        context.set("convertible_records", self._compute_convertibles(holders))
        context.set("warrant_records", self._compute_warrants(holders))

    def _compute_holdings(self, holders: List[HolderState]) -> pd.DataFrame:
        rows = [
            {
                "stakeholder_id": holder.id,
                "stakeholder_name": holder.name,
                "relationship": holder.relationship,
                "outstanding": float(holder.outstanding),
                "outstanding_pct": _pct(holder.outstanding_percentage),
                "as_converted": float(holder.as_converted),
                "as_converted_pct": _pct(holder.as_converted_percentage),
                "fully_diluted": float(holder.fully_diluted),
                "fully_diluted_pct": _pct(holder.fully_diluted_percentage),
                "votes": float(holder.voting.votes),
                "voting_pct": _pct(holder.voting.percentage),
            }
            for holder in holders
        ]
        return pd.DataFrame(rows, columns=HOLDINGS_COLUMNS)

    def _compute_classes(self, holders: List[HolderState]) -> pd.DataFrame:
        rows = []
        for holder in holders:
            for holding in holder.by_class.values():
                rows.append({
                    "stakeholder_id": holder.id,
                    "stakeholder_name": holder.name,
                    "class_name": holding.class_name,
                    "type": holding.type,
                    "outstanding": float(holding.outstanding),
                    "as_converted": float(holding.as_converted),
                    "fully_diluted": float(holding.fully_diluted),
                    "voting_power": float(holding.voting_power),
                })
        return pd.DataFrame(rows, columns=CLASS_COLUMNS)

    def _compute_voting(self, view: AggregatedView, holders: List[HolderState]) -> pd.DataFrame:
        class_names = view.class_names()
        columns = VOTING_COLUMNS + [f"{name} pct" for name in class_names]

        rows = []
        for holder in holders:
            if holder.voting.votes <= 0:
                continue
            voting = holder.voting.columns
            row = {
                "stakeholder_id": holder.id,
                "stakeholder_name": holder.name,
                "votes": float(holder.voting.votes),
                "total_pct": _pct(voting.total_as_converted),
                "common_pct": _pct(voting.all_common),
                "preferred_pct": _pct(voting.all_preferred),
            }
            for name in class_names:
                row[f"{name} pct"] = _pct(voting.by_class.get(name, Decimal("0")))
            rows.append(row)

        df = pd.DataFrame(rows, columns=columns)
        if not df.empty:
            df = df.sort_values("votes", ascending=False, kind="stable").reset_index(drop=True)
        return df

    def _compute_convertibles(self, holders: List[HolderState]) -> pd.DataFrame:
        rows: List[dict] = []
        for holder in holders:
            for record in holder.convertibles.all():
                rows.append({
                    "stakeholder_id": holder.id,
                    "stakeholder_name": holder.name,
                    "id": record.id,
                    "custom_id": record.custom_id,
                    "convertible_type": record.convertible_type,
                    "amount": float(record.amount),
                    "currency": record.currency,
                    "date": record.date,
                    "valuation_cap": _float(record.valuation_cap),
                    "discount": _float(record.discount),
                    "valuation_method": record.valuation_method,
                    "mfn": record.mfn,
                    "interest_rate": _float(record.interest_rates[0].rate) if record.interest_rates else None,
                    "maturity_date": record.maturity_date,
                    "has_side_letters": record.has_side_letters,
                    "is_outstanding": record.is_outstanding,
                })
        return pd.DataFrame(rows, columns=CONVERTIBLE_COLUMNS)

    def _compute_warrants(self, holders: List[HolderState]) -> pd.DataFrame:
        rows: List[dict] = []
        for holder in holders:
            for warrant in holder.warrants:
                row: dict = {
                    "stakeholder_id": holder.id,
                    "stakeholder_name": holder.name,
                }
                row.update(self._warrant_fields(warrant))
                rows.append(row)
        return pd.DataFrame(rows, columns=WARRANT_COLUMNS)

    @staticmethod
    def _warrant_fields(warrant: WarrantRecord) -> dict:
        return {
            "id": warrant.id,
            "custom_id": warrant.custom_id,
            "date": warrant.date,
            "stock_class": warrant.stock_class,
            "shares_issuable": float(warrant.shares_issuable),
            "shares_exercised": float(warrant.shares_exercised),
            "shares_cancelled": float(warrant.shares_cancelled),
            "shares_remaining": float(warrant.shares_remaining),
            "exercise_price": _float(warrant.exercise_price),
            "purchase_price": _float(warrant.purchase_price),
            "expiration_date": warrant.expiration_date,
            "conversion_mechanism_type": warrant.conversion_mechanism_type,
            "is_outstanding": warrant.is_outstanding,
        }
