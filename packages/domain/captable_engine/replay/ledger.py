"""Stock ledger: every stock and grant movement, plus per-class totals.

A separate fold from replay, used for the ledger tab of an export. The same
skip-on-missing-reference rule applies: a movement whose stakeholder, class
or referenced issuance cannot be resolved produces no entry.
"""

from decimal import Decimal
from typing import Dict, Iterable, Optional, Sequence

from ..logging_config import get_logger
from ..schemas import (
    CapTableTransaction,
    EquityCompensationExercise,
    EquityCompensationIssuance,
    LedgerEntry,
    Stakeholder,
    StockCancellation,
    StockClass,
    StockClassAuthorizedSharesAdjustment,
    StockClassTotals,
    StockIssuance,
    StockLedger,
    StockPlan,
    StockTransfer,
)
from .resolver import ReferenceResolver, SecurityIndex

logger = get_logger(__name__)

ZERO = Decimal("0")

DISPLAY_TYPES = {
    "TX_STOCK_ISSUANCE": "Stock Issuance",
    "TX_STOCK_CANCELLATION": "Stock Cancellation",
    "TX_STOCK_TRANSFER": "Stock Transfer",
    "TX_EQUITY_COMPENSATION_ISSUANCE": "Equity Compensation Issuance",
    "TX_EQUITY_COMPENSATION_EXERCISE": "Equity Compensation Exercise",
}


class _LedgerFold:
    def __init__(self, resolver: ReferenceResolver):
        self.resolver = resolver
        self.securities = SecurityIndex()
        self.entries = []
        self.totals: Dict[str, StockClassTotals] = {
            stock_class.id: StockClassTotals(
                id=stock_class.id,
                name=stock_class.name,
                type=stock_class.class_type,
                shares_authorized=stock_class.initial_shares_authorized,
            )
            for stock_class in resolver.stock_classes
        }

    def class_totals(self, stock_class: StockClass) -> StockClassTotals:
        return self.totals[stock_class.id]

    def entry(
        self,
        tx: CapTableTransaction,
        holder: Optional[Stakeholder],
        stock_class: Optional[StockClass],
        quantity: Decimal,
        price: Optional[Decimal] = None,
        amount_paid: Optional[Decimal] = None,
        **extra,
    ) -> None:
        price = price or ZERO
        self.entries.append(LedgerEntry(
            transaction_id=tx.id,
            transaction_type=tx.object_type,
            display_type=DISPLAY_TYPES[tx.object_type],
            date=tx.date,
            security_id=tx.security_id,
            holder_id=holder.id if holder else None,
            holder_name=holder.legal_name if holder else "Unknown",
            relationship=holder.relationship if holder else "Unknown",
            stock_class_id=stock_class.id if stock_class else None,
            stock_class_name=stock_class.name if stock_class else "Unknown",
            stock_class_type=stock_class.class_type if stock_class else "Unknown",
            quantity=quantity,
            price_per_share=price,
            amount_paid=amount_paid if amount_paid is not None else quantity * price,
            **extra,
        ))

    # -------------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------------

    def stock_issuance(self, tx: StockIssuance) -> None:
        stakeholder = self.resolver.resolve_stakeholder(tx.stakeholder_id)
        stock_class = self.resolver.resolve_stock_class(tx.stock_class_id)
        if stakeholder is None or stock_class is None:
            return
        totals = self.class_totals(stock_class)
        totals.shares_issued += tx.quantity
        totals.shares_outstanding += tx.quantity
        self.entry(
            tx, stakeholder, stock_class, tx.quantity,
            price=tx.share_price.amount if tx.share_price else None,
            certificate_id=tx.custom_id or "N/A",
            stock_plan_id=tx.stock_plan_id,
        )
        self.securities.register(tx)

    def stock_cancellation(self, tx: StockCancellation) -> None:
        issuance = self.securities.lookup(tx.security_id_ref, StockIssuance)
        if issuance is None:
            return
        stock_class = self.resolver.resolve_stock_class(issuance.stock_class_id)
        totals = self.class_totals(stock_class)
        quantity = min(tx.quantity, totals.shares_outstanding)
        totals.shares_cancelled += quantity
        totals.shares_outstanding -= quantity
        self.entry(
            tx, self.resolver.resolve_stakeholder(issuance.stakeholder_id), stock_class, quantity,
            price=issuance.share_price.amount if issuance.share_price else None,
            related_security_id=issuance.security_id,
            certificate_id=issuance.custom_id or "N/A",
            reason=tx.reason,
        )

    def stock_transfer(self, tx: StockTransfer) -> None:
        issuance = self.securities.lookup(tx.security_id_ref, StockIssuance)
        source = self.resolver.resolve_stakeholder(tx.from_stakeholder_id)
        destination = self.resolver.resolve_stakeholder(tx.to_stakeholder_id)
        if issuance is None or source is None or destination is None:
            return
        stock_class = self.resolver.resolve_stock_class(issuance.stock_class_id)
        self.class_totals(stock_class).shares_transferred += tx.quantity
        paid = tx.consideration.amount if tx.consideration else None
        self.entry(
            tx, source, stock_class, tx.quantity,
            price=paid / tx.quantity if paid is not None and tx.quantity else None,
            amount_paid=paid,
            related_security_id=issuance.security_id,
            counterparty_id=destination.id,
        )

    # -------------------------------------------------------------------------
    # Equity compensation
    # -------------------------------------------------------------------------

    def _grant_class(self, tx: EquityCompensationIssuance) -> Optional[StockClass]:
        stock_class = self.resolver.resolve_stock_class(tx.stock_class_id)
        if stock_class is None:
            plan = self.resolver.resolve_stock_plan(tx.stock_plan_id)
            if plan is not None and plan.stock_class_ids:
                stock_class = self.resolver.resolve_stock_class(plan.stock_class_ids[0])
        return stock_class

    def equity_compensation_issuance(self, tx: EquityCompensationIssuance) -> None:
        stakeholder = self.resolver.resolve_stakeholder(tx.stakeholder_id)
        if stakeholder is None:
            return
        stock_class = self._grant_class(tx)
        if stock_class is not None:
            self.class_totals(stock_class).options_issued += tx.quantity
        self.entry(
            tx, stakeholder, stock_class, tx.quantity,
            price=tx.exercise_price.amount if tx.exercise_price else None,
            amount_paid=ZERO,
            stock_plan_id=tx.stock_plan_id,
        )
        self.securities.register(tx)

    def equity_compensation_exercise(self, tx: EquityCompensationExercise) -> None:
        grant = self.securities.lookup(tx.security_id_ref, EquityCompensationIssuance)
        if grant is None:
            return
        stock_class = self._grant_class(grant)
        if stock_class is not None:
            self.class_totals(stock_class).options_exercised += tx.quantity
        price = grant.exercise_price.amount if grant.exercise_price else None
        self.entry(
            tx, self.resolver.resolve_stakeholder(grant.stakeholder_id), stock_class, tx.quantity,
            price=price,
            amount_paid=tx.consideration.amount if tx.consideration else None,
            related_security_id=grant.security_id,
            stock_plan_id=grant.stock_plan_id,
        )

    def class_adjustment(self, tx: StockClassAuthorizedSharesAdjustment) -> None:
        stock_class = self.resolver.resolve_stock_class(tx.stock_class_id)
        if stock_class is not None:
            self.class_totals(stock_class).shares_authorized = tx.new_shares_authorized


def build_stock_ledger(
    transactions: Sequence[CapTableTransaction],
    stakeholders: Iterable[Stakeholder],
    stock_classes: Iterable[StockClass],
    stock_plans: Iterable[StockPlan],
) -> StockLedger:
    """Build the stock ledger for an issuer.

    Returns:
        StockLedger with entries sorted by date (stable, so same-day entries
        keep log order) and totals for every known stock class
    """
    fold = _LedgerFold(ReferenceResolver(stakeholders, stock_classes, stock_plans))
    handlers = {
        StockIssuance: fold.stock_issuance,
        StockCancellation: fold.stock_cancellation,
        StockTransfer: fold.stock_transfer,
        EquityCompensationIssuance: fold.equity_compensation_issuance,
        EquityCompensationExercise: fold.equity_compensation_exercise,
        StockClassAuthorizedSharesAdjustment: fold.class_adjustment,
    }
    for tx in transactions:
        handler = handlers.get(type(tx))
        if handler is not None:
            handler(tx)

    entries = sorted(fold.entries, key=lambda entry: entry.date)
    logger.debug("stock_ledger_built", entries=len(entries), classes=len(fold.totals))
    return StockLedger(entries=entries, class_totals=fold.totals)
