"""Stock processor: issuances, cancellations and transfers.

Stock is the only family that moves ``outstanding``. Each share of a class
contributes:

    outstanding    +1
    fully_diluted  +1
    as_converted   +numerator/denominator for ratio-converting preferred, else +1
    voting_power   +votes_per_share
"""

from decimal import Decimal

from ...logging_config import get_logger
from ...schemas import (
    ClassHolding,
    HolderState,
    StockCancellation,
    StockClass,
    StockIssuance,
    StockTransfer,
)
from ..state import ReplayState

logger = get_logger(__name__)

ZERO = Decimal("0")


# =============================================================================
# Share arithmetic
# =============================================================================

def credit_shares(
    holder: HolderState,
    stock_class: StockClass,
    quantity: Decimal,
    **flags,
) -> ClassHolding:
    """Add shares of a class to a holder and return the class holding."""
    holding = holder.class_holding(
        stock_class.name,
        stock_class.class_type,
        stock_class.id,
        **flags,
    )
    as_converted = stock_class.as_converted(quantity)
    votes = stock_class.voting_power(quantity)

    holding.outstanding += quantity
    holding.fully_diluted += quantity
    holding.as_converted += as_converted
    holding.voting_power += votes

    holder.outstanding += quantity
    holder.fully_diluted += quantity
    holder.as_converted += as_converted
    holder.voting.votes += votes
    return holding


def debit_shares(
    holder: HolderState,
    holding: ClassHolding,
    stock_class: StockClass,
    quantity: Decimal,
) -> None:
    """Remove shares of a class from a holder.

    ``quantity`` must already be clamped to ``holding.outstanding``. The
    derived figures are floored at zero so ratio rounding can never push
    them negative.
    """
    as_converted = stock_class.as_converted(quantity)
    votes = stock_class.voting_power(quantity)

    holding.outstanding -= quantity
    holding.fully_diluted = max(ZERO, holding.fully_diluted - quantity)
    holding.as_converted = max(ZERO, holding.as_converted - as_converted)
    holding.voting_power = max(ZERO, holding.voting_power - votes)

    holder.outstanding = max(ZERO, holder.outstanding - quantity)
    holder.fully_diluted = max(ZERO, holder.fully_diluted - quantity)
    holder.as_converted = max(ZERO, holder.as_converted - as_converted)
    holder.voting.votes = max(ZERO, holder.voting.votes - votes)


# =============================================================================
# Processors
# =============================================================================

def process_stock_issuance(state: ReplayState, tx: StockIssuance) -> ReplayState:
    """Credit the issued shares to the stakeholder's class holding."""
    stakeholder = state.resolver.resolve_stakeholder(tx.stakeholder_id)
    if stakeholder is None:
        state.skip(tx, "stakeholder", tx.stakeholder_id)
        return state
    stock_class = state.resolver.resolve_stock_class(tx.stock_class_id)
    if stock_class is None:
        state.skip(tx, "stock_class", tx.stock_class_id)
        return state

    holder = state.holder_for(stakeholder)
    holding = credit_shares(
        holder,
        stock_class,
        tx.quantity,
        is_founder_preferred=(
            stock_class.class_type == "PREFERRED" and tx.issuance_type == "FOUNDERS_STOCK"
        ),
    )
    if holding.issued_date is None:
        holding.issued_date = tx.date
    if tx.share_price is not None:
        holding.price_per_share = tx.share_price.amount

    state.securities.register(tx)
    state.applied(tx)
    return state


def process_stock_cancellation(state: ReplayState, tx: StockCancellation) -> ReplayState:
    """Cancel shares of an earlier issuance, clamped to what is outstanding."""
    issuance = state.securities.lookup(tx.security_id_ref, StockIssuance)
    if issuance is None:
        state.skip(tx, "stock_issuance", tx.security_id_ref)
        return state
    stock_class = state.resolver.resolve_stock_class(issuance.stock_class_id)
    holder = state.existing_holder(issuance.stakeholder_id)
    holding = holder.by_class.get(stock_class.name) if holder and stock_class else None
    if holding is None:
        state.skip(tx, "class_holding", issuance.stakeholder_id)
        return state

    quantity = tx.quantity
    if quantity > holding.outstanding:
        logger.warning(
            "stock_cancellation_clamped",
            transaction_id=tx.id,
            requested=str(quantity),
            available=str(holding.outstanding),
            holder=holder.id,
            stock_class=stock_class.name,
        )
        quantity = holding.outstanding

    debit_shares(holder, holding, stock_class, quantity)
    holding.cancellation_date = tx.date
    holding.cancellation_reason = tx.reason

    state.applied(tx)
    return state


def process_stock_transfer(state: ReplayState, tx: StockTransfer) -> ReplayState:
    """Move shares of the referenced issuance's class between holders.

    Total outstanding is unchanged. A transfer larger than the source's
    outstanding is clamped like a cancellation.
    """
    issuance = state.securities.lookup(tx.security_id_ref, StockIssuance)
    if issuance is None:
        state.skip(tx, "stock_issuance", tx.security_id_ref)
        return state
    stock_class = state.resolver.resolve_stock_class(issuance.stock_class_id)
    if stock_class is None:
        state.skip(tx, "stock_class", issuance.stock_class_id)
        return state
    destination = state.resolver.resolve_stakeholder(tx.to_stakeholder_id)
    if destination is None:
        state.skip(tx, "stakeholder", tx.to_stakeholder_id)
        return state
    source = state.existing_holder(tx.from_stakeholder_id)
    holding = source.by_class.get(stock_class.name) if source else None
    if holding is None:
        state.skip(tx, "class_holding", tx.from_stakeholder_id)
        return state

    quantity = min(tx.quantity, holding.outstanding)
    if quantity < tx.quantity:
        logger.warning(
            "stock_transfer_clamped",
            transaction_id=tx.id,
            requested=str(tx.quantity),
            available=str(holding.outstanding),
            holder=source.id,
            stock_class=stock_class.name,
        )

    debit_shares(source, holding, stock_class, quantity)
    received = credit_shares(state.holder_for(destination), stock_class, quantity)
    if received.issued_date is None:
        received.issued_date = tx.date

    state.applied(tx)
    return state
