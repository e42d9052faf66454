"""Dashboard summary: a light fold over the log, separate from replay.

Only INVESTOR stakeholders count toward ``total_raised``. Valuations come
from two sources and the most recently created one wins:

    STOCK        cumulative shares issued x the issuance's share price
    CONVERTIBLE  valuation cap of a SAFE, note or warrant conversion right
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..logging_config import get_logger
from ..schemas import (
    CapTableTransaction,
    ConvertibleIssuance,
    DashboardSummary,
    IssuerAuthorizedSharesAdjustment,
    Stakeholder,
    StockCancellation,
    StockClass,
    StockIssuance,
    StockPlan,
    Valuation,
    WarrantIssuance,
    to_decimal,
)
from .normalization import compute_options_pool, percent_of
from .resolver import ReferenceResolver, SecurityIndex

logger = get_logger(__name__)

ZERO = Decimal("0")

CAP_MECHANISMS = ("SAFE_CONVERSION", "CONVERTIBLE_NOTE_CONVERSION", "WARRANT_CONVERSION")


def convertible_valuation_cap(triggers: Optional[List[Dict[str, Any]]]) -> Optional[Decimal]:
    """Valuation cap from a CONVERTIBLE_CONVERSION_RIGHT trigger (last one wins)."""
    cap = None
    for trigger in triggers or []:
        if not isinstance(trigger, dict):
            continue
        right = trigger.get("conversion_right") or {}
        mechanism = right.get("conversion_mechanism") or {}
        if right.get("type") != "CONVERTIBLE_CONVERSION_RIGHT":
            continue
        if mechanism.get("type") not in CAP_MECHANISMS:
            continue
        found = to_decimal(mechanism.get("conversion_valuation_cap"))
        if found is not None:
            cap = found
    return cap


class _DashboardFold:
    """Running totals while folding the log."""

    def __init__(self):
        self.total_raised = ZERO
        self.latest_share_price: Optional[Decimal] = None
        self.shares_issued = ZERO
        self.by_relationship: Dict[str, Decimal] = {}
        self.stock_valuation: Optional[Valuation] = None
        self.convertible_valuation: Optional[Valuation] = None
        self.authorized: Optional[Decimal] = None

    def add_shares(self, relationship: str, quantity: Decimal) -> None:
        self.shares_issued += quantity
        self.by_relationship[relationship] = self.by_relationship.get(relationship, ZERO) + quantity

    def stock_issuance(self, tx: StockIssuance, stakeholder: Stakeholder) -> None:
        price = tx.share_price.amount if tx.share_price else None
        self.add_shares(stakeholder.relationship, tx.quantity)
        if price is None:
            return
        if stakeholder.is_investor:
            self.total_raised += tx.quantity * price
        self.latest_share_price = price
        self.stock_valuation = Valuation(
            type="STOCK",
            amount=self.shares_issued * price,
            created_at=tx.recorded_at,
        )

    def stock_cancellation(self, tx: StockCancellation, stakeholder: Stakeholder) -> None:
        quantity = min(tx.quantity, self.by_relationship.get(stakeholder.relationship, ZERO))
        self.add_shares(stakeholder.relationship, -quantity)
        if self.latest_share_price is None:
            return
        if stakeholder.is_investor:
            self.total_raised -= quantity * self.latest_share_price
        self.stock_valuation = Valuation(
            type="STOCK",
            amount=self.shares_issued * self.latest_share_price,
            created_at=tx.recorded_at,
        )

    def investment(self, tx: CapTableTransaction, stakeholder: Stakeholder) -> None:
        """Convertible investment amount or warrant purchase price."""
        if isinstance(tx, WarrantIssuance):
            amount = tx.purchase_price.amount if tx.purchase_price else ZERO
            triggers = tx.exercise_triggers
        else:
            amount = tx.investment_amount.amount
            triggers = tx.conversion_triggers

        self.by_relationship.setdefault(stakeholder.relationship, ZERO)
        if stakeholder.is_investor:
            self.total_raised += amount

        cap = convertible_valuation_cap(triggers)
        if cap is not None:
            self.convertible_valuation = Valuation(
                type="CONVERTIBLE",
                amount=cap,
                created_at=tx.recorded_at,
            )

    def latest_valuation(self) -> Optional[Valuation]:
        candidates = [v for v in (self.stock_valuation, self.convertible_valuation) if v is not None]
        if not candidates:
            return None
        # max keeps the first on ties, so STOCK wins a tie
        return max(candidates, key=lambda v: v.created_at)


def summarize_dashboard(
    transactions: Sequence[CapTableTransaction],
    stakeholders: Iterable[Stakeholder],
    stock_classes: Iterable[StockClass],
    stock_plans: Iterable[StockPlan],
    issuer_initial_shares_authorized: Optional[Decimal] = None,
) -> DashboardSummary:
    """Compute the issuer dashboard figures.

    Args:
        transactions: Ordered transaction log
        stakeholders: Issuer's stakeholders
        stock_classes: Issuer's stock classes (unknown classes are skipped)
        stock_plans: Issuer's stock plans
        issuer_initial_shares_authorized: Used when the log has no issuer
            authorized-shares adjustment

    Returns:
        DashboardSummary

    Example:
        One INVESTOR buys 1,000 common at $1.00
        -> total_raised == Decimal("1000.00"), latest_share_price == Decimal("1.00")
    """
    transactions = list(transactions)
    stakeholders = list(stakeholders)
    stock_plans = list(stock_plans)
    resolver = ReferenceResolver(stakeholders, stock_classes, stock_plans)
    securities = SecurityIndex()
    fold = _DashboardFold()

    for tx in transactions:
        if isinstance(tx, StockIssuance):
            stakeholder = resolver.resolve_stakeholder(tx.stakeholder_id)
            if stakeholder is None or resolver.resolve_stock_class(tx.stock_class_id) is None:
                continue
            fold.stock_issuance(tx, stakeholder)
            securities.register(tx)
        elif isinstance(tx, StockCancellation):
            issuance = securities.lookup(tx.security_id_ref, StockIssuance)
            stakeholder = resolver.resolve_stakeholder(issuance.stakeholder_id) if issuance else None
            if stakeholder is None:
                continue
            fold.stock_cancellation(tx, stakeholder)
        elif isinstance(tx, (ConvertibleIssuance, WarrantIssuance)):
            stakeholder = resolver.resolve_stakeholder(tx.stakeholder_id)
            if stakeholder is None:
                continue
            fold.investment(tx, stakeholder)
        elif isinstance(tx, IssuerAuthorizedSharesAdjustment):
            fold.authorized = tx.new_shares_authorized

    summary = DashboardSummary(
        total_raised=fold.total_raised,
        latest_share_price=fold.latest_share_price,
        valuation=fold.latest_valuation(),
        shares_issued_by_relationship=fold.by_relationship,
        ownership_by_relationship={
            relationship: percent_of(shares, fold.shares_issued)
            for relationship, shares in fold.by_relationship.items()
        },
        num_of_stakeholders=len(stakeholders),
        stock_plan_amount=compute_options_pool(transactions, stock_plans).total_authorized,
        total_shares_authorized=(
            fold.authorized if fold.authorized is not None else issuer_initial_shares_authorized
        ),
    )
    logger.debug(
        "dashboard_summarized",
        total_raised=str(summary.total_raised),
        stakeholders=summary.num_of_stakeholders,
    )
    return summary
