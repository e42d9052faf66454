"""Equity compensation processor: grants and exercises.

Grants count toward fully diluted only. An exercise retires the exercised
quantity from the grant's category; the resulting shares arrive as their
own StockIssuance, so exercising and then issuing never double counts.
"""

from typing import Optional

from ...schemas import (
    EquityCompensationExercise,
    EquityCompensationIssuance,
    EquityGrant,
    StockClass,
)
from ..state import ReplayState


def grant_category(class_name: str, is_option: bool, is_plan_award: bool) -> str:
    """by_class key for a grant.

    Example:
        grant_category("Common", True, True)   -> "Common Options"
        grant_category("Common", True, False)  -> "Common Non-Plan Awards"
        grant_category("Common", False, True)  -> "Common Equity Compensation"
    """
    if is_option and is_plan_award:
        return f"{class_name} Options"
    if not is_plan_award:
        return f"{class_name} Non-Plan Awards"
    return f"{class_name} Equity Compensation"


def _grant_stock_class(state: ReplayState, tx: EquityCompensationIssuance) -> Optional[StockClass]:
    stock_class = state.resolver.resolve_stock_class(tx.stock_class_id)
    if stock_class is not None:
        return stock_class
    plan = state.resolver.resolve_stock_plan(tx.stock_plan_id)
    if plan is not None and plan.stock_class_ids:
        return state.resolver.resolve_stock_class(plan.stock_class_ids[0])
    return None


def process_equity_compensation_issuance(
    state: ReplayState, tx: EquityCompensationIssuance
) -> ReplayState:
    """Add the grant to fully diluted and list it under the holder's plans.

    The stock class is optional: without one (directly or through the plan)
    the category is named after "Unknown".
    """
    stakeholder = state.resolver.resolve_stakeholder(tx.stakeholder_id)
    if stakeholder is None:
        state.skip(tx, "stakeholder", tx.stakeholder_id)
        return state

    stock_class = _grant_stock_class(state, tx)
    class_name = stock_class.name if stock_class else "Unknown"
    category = grant_category(class_name, tx.is_option, tx.is_plan_award)

    holder = state.holder_for(stakeholder)
    holding = holder.class_holding(
        category,
        "EQUITY_COMPENSATION",
        stock_class.id if stock_class else None,
        is_option=tx.is_option,
        is_plan_award=tx.is_plan_award,
    )
    state.add_fully_diluted(holder, holding, tx.quantity)
    if holding.issued_date is None:
        holding.issued_date = tx.date

    grant = EquityGrant(
        id=tx.id,
        security_id=tx.security_id,
        date=tx.date,
        category=category,
        compensation_type=tx.compensation_type,
        quantity=tx.quantity,
        exercise_price=tx.exercise_price.amount if tx.exercise_price else None,
        currency=tx.exercise_price.currency if tx.exercise_price else state.settings.default_currency,
        vesting_terms_id=tx.vesting_terms_id,
        vesting_schedule=tx.vesting_schedule,
        expiration_date=tx.expiration_date,
        stock_plan_id=tx.stock_plan_id,
    )
    if tx.is_plan_award:
        holder.plans.stock_plan.append(grant)
    else:
        holder.plans.non_plan.append(grant)

    state.securities.register(tx)
    state.applied(tx)
    return state


def process_equity_compensation_exercise(
    state: ReplayState, tx: EquityCompensationExercise
) -> ReplayState:
    """Retire exercised quantity from the grant's category, up to what the grant has left."""
    issuance = state.securities.lookup(tx.security_id_ref, EquityCompensationIssuance)
    if issuance is None:
        state.skip(tx, "equity_compensation_issuance", tx.security_id_ref)
        return state
    holder = state.existing_holder(issuance.stakeholder_id)
    grant = holder.find_grant(issuance.id) if holder else None
    if grant is None:
        state.skip(tx, "grant", issuance.id)
        return state

    retired = min(tx.quantity, grant.remaining)
    grant.exercised_quantity += tx.quantity
    holding = holder.by_class.get(grant.category)
    if holding is not None:
        state.remove_fully_diluted(holder, holding, retired)

    state.applied(tx)
    return state
