"""Tests for the equity compensation processor.

Tests cover:
- Category naming: Options, Non-Plan Awards, Equity Compensation
- Grants touching fully diluted only
- Grant records under plans.stock_plan / plans.non_plan
- Exercise retiring fully diluted, up to the grant's remaining quantity
- Plan stock class fallback and unknown references
"""

from datetime import date
from decimal import Decimal

import pytest

from captable_engine.config import EngineSettings
from captable_engine.replay import ReferenceResolver, ReplayState
from captable_engine.replay.processors import (
    grant_category,
    process_equity_compensation_exercise,
    process_equity_compensation_issuance,
)
from captable_engine.schemas import (
    EquityCompensationExercise,
    EquityCompensationIssuance,
    Monetary,
    Stakeholder,
    StockClass,
    StockPlan,
)


# =============================================================================
# Builders
# =============================================================================

COMMON = StockClass(id="common", name="Common", class_type="COMMON")
PLAN = StockPlan(
    id="plan",
    plan_name="2024 Equity Incentive Plan",
    initial_shares_reserved=Decimal("10000"),
    stock_class_ids=["common"],
)
EMPLOYEE = Stakeholder(id="carol", legal_name="Carol Engineer", relationship="EMPLOYEE")


def make_state() -> ReplayState:
    state = ReplayState(ReferenceResolver([EMPLOYEE], [COMMON], [PLAN]), EngineSettings())
    state.begin()
    return state


def grant(security_id: str, quantity: str, **extra) -> EquityCompensationIssuance:
    fields = {
        "stock_class_id": "common",
        "stock_plan_id": "plan",
        "compensation_type": "OPTION_ISO",
    }
    fields.update(extra)
    return EquityCompensationIssuance(
        id=f"tx-{security_id}",
        security_id=security_id,
        date=date(2024, 2, 1),
        stakeholder_id="carol",
        quantity=Decimal(quantity),
        **fields,
    )


def exercise(security_id_ref: str, quantity: str) -> EquityCompensationExercise:
    return EquityCompensationExercise(
        id=f"ex-{security_id_ref}-{quantity}",
        date=date(2025, 2, 1),
        security_id_ref=security_id_ref,
        quantity=Decimal(quantity),
    )


# =============================================================================
# Categories
# =============================================================================

@pytest.mark.parametrize(
    "is_option, is_plan_award, expected",
    [
        (True, True, "Common Options"),
        (True, False, "Common Non-Plan Awards"),
        (False, False, "Common Non-Plan Awards"),
        (False, True, "Common Equity Compensation"),
    ],
)
def test_grant_category(is_option, is_plan_award, expected):
    assert grant_category("Common", is_option, is_plan_award) == expected


# =============================================================================
# Issuance
# =============================================================================

def test_plan_option_grant():
    state = process_equity_compensation_issuance(
        make_state(),
        grant("g1", "500", exercise_price=Monetary(amount=Decimal("0.25"))),
    )

    holder = state.holders["carol"]
    holding = holder.by_class["Common Options"]
    assert holding.fully_diluted == Decimal("500")
    assert holding.outstanding == Decimal("0")
    assert holding.is_option and holding.is_plan_award
    assert holder.fully_diluted == Decimal("500")
    assert holder.outstanding == Decimal("0")
    assert holder.voting.votes == Decimal("0")

    recorded = holder.plans.stock_plan[0]
    assert recorded.exercise_price == Decimal("0.25")
    assert recorded.category == "Common Options"
    assert holder.plans.non_plan == []


def test_non_plan_award():
    state = process_equity_compensation_issuance(
        make_state(),
        grant("g1", "200", stock_plan_id=None, compensation_type="RSU"),
    )
    holder = state.holders["carol"]
    assert "Common Non-Plan Awards" in holder.by_class
    assert holder.plans.non_plan[0].compensation_type == "RSU"


def test_plan_award_that_is_not_an_option():
    state = process_equity_compensation_issuance(make_state(), grant("g1", "200", compensation_type="RSA"))
    assert "Common Equity Compensation" in state.holders["carol"].by_class


def test_class_falls_back_to_plan_class():
    state = process_equity_compensation_issuance(make_state(), grant("g1", "300", stock_class_id=None))
    holding = state.holders["carol"].by_class["Common Options"]
    assert holding.stock_class_id == "common"


def test_grant_without_any_class_is_unknown():
    state = process_equity_compensation_issuance(
        make_state(),
        grant("g1", "300", stock_class_id=None, stock_plan_id=None),
    )
    assert "Unknown Non-Plan Awards" in state.holders["carol"].by_class


def test_grant_to_unknown_stakeholder_skipped():
    state = make_state()
    tx = grant("g1", "300").model_copy(update={"stakeholder_id": "nobody"})
    process_equity_compensation_issuance(state, tx)
    assert state.holders == {}
    assert state.skipped == 1


# =============================================================================
# Exercise
# =============================================================================

def test_partial_exercise():
    state = make_state()
    process_equity_compensation_issuance(state, grant("g1", "500"))
    process_equity_compensation_exercise(state, exercise("g1", "200"))

    holder = state.holders["carol"]
    assert holder.by_class["Common Options"].fully_diluted == Decimal("300")
    assert holder.fully_diluted == Decimal("300")
    assert holder.plans.stock_plan[0].exercised_quantity == Decimal("200")
    assert holder.plans.stock_plan[0].remaining == Decimal("300")
    assert holder.outstanding == Decimal("0")


def test_over_exercise_floors_at_zero():
    state = make_state()
    process_equity_compensation_issuance(state, grant("g1", "500"))
    process_equity_compensation_exercise(state, exercise("g1", "800"))

    holder = state.holders["carol"]
    assert holder.by_class["Common Options"].fully_diluted == Decimal("0")
    assert holder.fully_diluted == Decimal("0")


def test_exercise_only_touches_its_own_category():
    state = make_state()
    process_equity_compensation_issuance(state, grant("g1", "500"))
    process_equity_compensation_issuance(state, grant("g2", "100", stock_plan_id=None))
    process_equity_compensation_exercise(state, exercise("g1", "500"))

    holder = state.holders["carol"]
    assert holder.by_class["Common Options"].fully_diluted == Decimal("0")
    assert holder.by_class["Common Non-Plan Awards"].fully_diluted == Decimal("100")
    assert holder.fully_diluted == Decimal("100")


def test_over_exercise_leaves_sibling_grants():
    state = make_state()
    process_equity_compensation_issuance(state, grant("g1", "100"))
    process_equity_compensation_issuance(state, grant("g2", "100"))
    process_equity_compensation_exercise(state, exercise("g1", "150"))

    holder = state.holders["carol"]
    assert holder.by_class["Common Options"].fully_diluted == Decimal("100")
    assert holder.fully_diluted == Decimal("100")
    assert holder.find_grant("tx-g1").remaining == Decimal("0")
    assert holder.find_grant("tx-g2").remaining == Decimal("100")


def test_exercise_of_unknown_grant_skipped():
    state = make_state()
    process_equity_compensation_issuance(state, grant("g1", "500"))
    process_equity_compensation_exercise(state, exercise("g9", "100"))

    assert state.holders["carol"].fully_diluted == Decimal("500")
    assert state.skipped == 1
