"""Percentage normalization and the options-pool summary.

Runs once, after the whole log has been folded:

    1. Accumulate global denominators: outstanding, as-converted, fully
       diluted and voting power, with voting also split into common,
       preferred and per class name.
    2. Give every holder value / denominator * 100, or 0 when the
       denominator is 0.

Percentages are Decimal points (100 = the whole). For each metric with a
nonzero total the holder percentages sum to 100 up to Decimal rounding.
"""

from decimal import Decimal
from typing import Dict, Iterable, Tuple

from ..schemas import (
    AggregatedView,
    ClassHolding,
    EquityCompensationIssuance,
    OptionsPool,
    ReplayStage,
    StockPlan,
    StockPlanPoolAdjustment,
    Totals,
    VotingColumns,
    VotingTotals,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """part as a percentage of whole; 0 when whole is 0."""
    if whole <= 0:
        return ZERO
    return part * HUNDRED / whole


def _voting_split(by_class: Dict[str, ClassHolding]) -> Tuple[Decimal, Decimal, Dict[str, Decimal]]:
    """(common, preferred, per-class) voting power from a holder's holdings."""
    common = ZERO
    preferred = ZERO
    per_class: Dict[str, Decimal] = {}
    for holding in by_class.values():
        if holding.type == "COMMON":
            common += holding.voting_power
        elif holding.type == "PREFERRED":
            preferred += holding.voting_power
        per_class[holding.class_name] = per_class.get(holding.class_name, ZERO) + holding.voting_power
    return common, preferred, per_class


def normalize(view: AggregatedView) -> AggregatedView:
    """Fill in totals and every holder percentage, then mark the view NORMALIZED.

    Args:
        view: Folded view straight from replay

    Returns:
        The same view, updated in place
    """
    holders = list(view.holders.values())

    # Pass 1: denominators
    totals = Totals(
        outstanding=sum((h.outstanding for h in holders), ZERO),
        as_converted=sum((h.as_converted for h in holders), ZERO),
        fully_diluted=sum((h.fully_diluted for h in holders), ZERO),
        voting_rights=sum((h.voting.votes for h in holders), ZERO),
    )

    voting_totals = VotingTotals()
    by_class_totals: Dict[str, Decimal] = {}
    splits = {}
    for holder in holders:
        common, preferred, per_class = _voting_split(holder.by_class)
        splits[holder.id] = (common, preferred, per_class)
        voting_totals.common += common
        voting_totals.preferred += preferred
        for name, power in per_class.items():
            by_class_totals[name] = by_class_totals.get(name, ZERO) + power
    voting_totals.by_class = by_class_totals
    voting_totals.total = sum(by_class_totals.values(), ZERO)

    # Pass 2: per-holder percentages
    for holder in holders:
        holder.outstanding_percentage = percent_of(holder.outstanding, totals.outstanding)
        holder.as_converted_percentage = percent_of(holder.as_converted, totals.as_converted)
        holder.fully_diluted_percentage = percent_of(holder.fully_diluted, totals.fully_diluted)
        holder.voting.percentage = percent_of(holder.voting.votes, totals.voting_rights)

        common, preferred, per_class = splits[holder.id]
        holder.voting.columns = VotingColumns(
            total_as_converted=percent_of(holder.voting.votes, voting_totals.total),
            all_common=percent_of(common, voting_totals.common),
            all_preferred=percent_of(preferred, voting_totals.preferred),
            by_class={
                name: percent_of(power, by_class_totals[name])
                for name, power in per_class.items()
                if power > 0 and by_class_totals[name] > 0
            },
        )

    view.totals = totals
    view.voting_totals = voting_totals
    view.stage = ReplayStage.NORMALIZED
    return view


def compute_options_pool(
    transactions: Iterable[object],
    stock_plans: Iterable[StockPlan],
) -> OptionsPool:
    """Reserved pool versus equity compensation granted.

    The latest StockPlanPoolAdjustment for a plan replaces that plan's
    initial reservation; adjustments naming an unknown plan are ignored.
    Granted is the sum of every equity compensation issuance in the log.

    Example:
        plans reserve 1,000,000; grants total 250,000
        -> OptionsPool(total_authorized=1_000_000, total_issued=250_000,
                       unallocated=750_000)
    """
    reserved: Dict[str, Decimal] = {plan.id: plan.initial_shares_reserved for plan in stock_plans}
    issued = ZERO
    for tx in transactions:
        if isinstance(tx, StockPlanPoolAdjustment):
            if tx.stock_plan_id in reserved:
                reserved[tx.stock_plan_id] = tx.shares_reserved
        elif isinstance(tx, EquityCompensationIssuance):
            issued += tx.quantity

    total_authorized = sum(reserved.values(), ZERO)
    return OptionsPool(
        total_authorized=total_authorized,
        total_issued=issued,
        unallocated=max(ZERO, total_authorized - issued),
    )

