"""Warrant processor: issuances, exercises and cancellations.

A warrant with a resolvable share count adds to fully diluted under a
"{class} Warrants" category and is listed in the holder's ``warrants``.
Exercise and cancellation retire shares from that category, floored at 0.

Untargeted warrants (no stock class on the transaction or in any trigger)
follow ``EngineSettings.warrant_classification``.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from ...config import WarrantClassification
from ...logging_config import get_logger
from ...schemas import (
    ConvertibleRecord,
    StockClass,
    WarrantCancellation,
    WarrantExercise,
    WarrantIssuance,
    WarrantRecord,
    to_decimal,
)
from ..mechanisms import extract_warrant_terms, names_target_class
from ..state import ReplayState
from .convertibles import add_convertible, format_exemptions

logger = get_logger(__name__)


def _is_untargeted(tx: WarrantIssuance) -> bool:
    return tx.stock_class_id is None and not names_target_class(tx.exercise_triggers)


def _stock_class_label(stock_class: Optional[StockClass], target_id: Optional[str]) -> Optional[str]:
    if stock_class is not None:
        return stock_class.name
    if target_id:
        return f"Stock Class (ID: {target_id})"
    return None


def _vested_amount(vestings: List[Dict[str, Any]]) -> Decimal:
    return sum(
        (to_decimal(vesting.get("amount"), Decimal("0")) for vesting in vestings),
        Decimal("0"),
    )


def _as_convertible(tx: WarrantIssuance, currency: str) -> ConvertibleRecord:
    """Record an untargeted warrant alongside the holder's other convertibles."""
    price = tx.purchase_price
    return ConvertibleRecord(
        id=tx.id,
        custom_id=tx.custom_id or tx.id[:8],
        convertible_type="WARRANT",
        amount=price.amount if price else Decimal("0"),
        currency=price.currency if price else currency,
        date=tx.date,
        board_approval_date=tx.board_approval_date,
        consideration_text=tx.consideration_text or "",
        exemptions=format_exemptions(tx.security_law_exemptions),
        comments=tx.comments,
        conversion_triggers=tx.exercise_triggers,
    )


def process_warrant_issuance(state: ReplayState, tx: WarrantIssuance) -> ReplayState:
    stakeholder = state.resolver.resolve_stakeholder(tx.stakeholder_id)
    if stakeholder is None:
        state.skip(tx, "stakeholder", tx.stakeholder_id)
        return state

    rule = state.settings.warrant_classification
    if rule == WarrantClassification.UNTARGETED_AS_CONVERTIBLE and _is_untargeted(tx):
        holder = state.holder_for(stakeholder)
        add_convertible(holder, _as_convertible(tx, state.settings.default_currency))
        state.securities.register(tx)
        state.applied(tx)
        return state

    terms = extract_warrant_terms(tx.exercise_triggers, tx.quantity)
    if terms.share_count is None:
        logger.info(
            "warrant_without_share_count",
            transaction_id=tx.id,
            stakeholder_id=tx.stakeholder_id,
        )
        state.skip(tx, "share_count")
        return state

    target_id = tx.stock_class_id or terms.converts_to_stock_class_id
    stock_class = state.resolver.resolve_stock_class(target_id)
    class_name = stock_class.name if stock_class else "Unknown"
    category = f"{class_name} Warrants"

    holder = state.holder_for(stakeholder)
    holding = holder.class_holding(category, "WARRANT", stock_class.id if stock_class else None)
    state.add_fully_diluted(holder, holding, terms.share_count)
    if holding.issued_date is None:
        holding.issued_date = tx.date

    basis = f"Warrant to Purchase Stock, dated {tx.date.isoformat()}"
    if tx.consideration_text:
        basis += f" ({tx.consideration_text})"

    exercise_price = tx.exercise_price
    holder.warrants.append(WarrantRecord(
        id=tx.id,
        custom_id=tx.custom_id or tx.id[:8],
        security_id=tx.security_id,
        date=tx.date,
        board_approval_date=tx.board_approval_date,
        shares_issuable=terms.share_count,
        shares_remaining=terms.share_count,
        exercise_price=exercise_price.amount if exercise_price else None,
        purchase_price=tx.purchase_price.amount if tx.purchase_price else None,
        currency=exercise_price.currency if exercise_price else state.settings.default_currency,
        expiration_date=tx.warrant_expiration_date,
        stock_class=_stock_class_label(stock_class, target_id),
        stock_class_id=target_id,
        category=category,
        trigger_type=terms.trigger_type,
        trigger_description=terms.trigger_description,
        trigger_condition=terms.trigger_condition,
        conversion_mechanism_type=terms.mechanism_type,
        conversion_discount=terms.discount,
        conversion_valuation_cap=terms.valuation_amount,
        vesting_terms_id=tx.vesting_terms_id,
        vestings=tx.vestings,
        vested_amount=_vested_amount(tx.vestings),
        exemptions=format_exemptions(tx.security_law_exemptions),
        comments=tx.comments,
        basis_of_issuance=basis,
        quantity_source=tx.quantity_source,
    ))

    state.securities.register(tx)
    state.applied(tx)
    return state


def _retire(
    state: ReplayState,
    tx: Union[WarrantExercise, WarrantCancellation],
) -> Optional[WarrantRecord]:
    """Find the warrant a transaction refers to and retire up to its remaining shares."""
    issuance = state.securities.lookup(tx.security_id_ref, WarrantIssuance)
    if issuance is None:
        state.skip(tx, "warrant_issuance", tx.security_id_ref)
        return None
    holder = state.existing_holder(issuance.stakeholder_id)
    warrant = holder.find_warrant(issuance.id) if holder else None
    if warrant is None:
        state.skip(tx, "warrant", issuance.id)
        return None

    holding = holder.by_class.get(warrant.category)
    if holding is not None:
        state.remove_fully_diluted(holder, holding, min(tx.quantity, warrant.shares_remaining))
    state.applied(tx)
    return warrant


def process_warrant_exercise(state: ReplayState, tx: WarrantExercise) -> ReplayState:
    warrant = _retire(state, tx)
    if warrant is not None:
        warrant.record_exercise(tx.quantity, tx.date)
    return state


def process_warrant_cancellation(state: ReplayState, tx: WarrantCancellation) -> ReplayState:
    warrant = _retire(state, tx)
    if warrant is not None:
        warrant.record_cancellation(tx.quantity, tx.date, tx.reason)
    return state
