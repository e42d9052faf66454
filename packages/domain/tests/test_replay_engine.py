"""End-to-end tests for replay.

Tests cover:
- Idempotent replay
- Conservation of issued shares per class
- The clamp law on over-cancellation
- Percentage closure for every metric
- Ratio conversion
- Exercise followed by the resulting stock issuance (no double count)
- The single-investor and cancellation scenarios
- Strict mode, empty logs and the options pool
- Non-finite trigger amounts recovered without aborting the replay
"""

from datetime import date
from decimal import Decimal

import pytest

from captable_engine import replay
from captable_engine.config import EngineSettings
from captable_engine.exceptions import EmptyTransactionLogError, UnresolvedReferenceError
from captable_engine.replay import summarize_dashboard
from captable_engine.schemas import (
    ConversionMechanism,
    ConversionRatio,
    ConvertibleIssuance,
    EquityCompensationExercise,
    EquityCompensationIssuance,
    Monetary,
    ReplayStage,
    Stakeholder,
    StockCancellation,
    StockClass,
    StockClassConversionRight,
    StockIssuance,
    StockPlan,
    StockPlanPoolAdjustment,
    StockTransfer,
    WarrantIssuance,
)


# =============================================================================
# Builders
# =============================================================================

TOLERANCE = Decimal("0.000001")


def build_common() -> StockClass:
    return StockClass(id="common", name="Common", class_type="COMMON")


def build_preferred(numerator: str = "1", denominator: str = "1", votes: str = "1") -> StockClass:
    return StockClass(
        id="series_a",
        name="Series A Preferred",
        class_type="PREFERRED",
        votes_per_share=Decimal(votes),
        conversion_rights=[
            StockClassConversionRight(
                conversion_mechanism=ConversionMechanism(
                    type="RATIO_CONVERSION",
                    ratio=ConversionRatio(numerator=Decimal(numerator), denominator=Decimal(denominator)),
                ),
                converts_to_stock_class_id="common",
            )
        ],
    )


def build_stakeholders():
    return [
        Stakeholder(id="alice", legal_name="Alice Founder", relationship="FOUNDER"),
        Stakeholder(id="bob", legal_name="Bob Capital", relationship="INVESTOR"),
        Stakeholder(id="carol", legal_name="Carol Engineer", relationship="EMPLOYEE"),
    ]


def build_plan() -> StockPlan:
    return StockPlan(
        id="plan",
        plan_name="2024 Plan",
        initial_shares_reserved=Decimal("2000"),
        stock_class_ids=["common"],
    )


def issue(security_id, stakeholder_id, stock_class_id, quantity, price=None, on=date(2024, 1, 1)):
    return StockIssuance(
        id=f"tx-{security_id}",
        security_id=security_id,
        date=on,
        stakeholder_id=stakeholder_id,
        stock_class_id=stock_class_id,
        quantity=Decimal(quantity),
        share_price=Monetary(amount=Decimal(price)) if price else None,
    )


def build_company_log():
    """Founder common, investor preferred, an employee grant, a SAFE and a warrant."""
    return [
        issue("s1", "alice", "common", "8000", price="0.001"),
        issue("s2", "bob", "series_a", "2000", price="1.00", on=date(2024, 3, 1)),
        EquityCompensationIssuance(
            id="tx-g1",
            security_id="g1",
            date=date(2024, 4, 1),
            stakeholder_id="carol",
            stock_plan_id="plan",
            quantity=Decimal("1000"),
        ),
        ConvertibleIssuance(
            id="tx-c1",
            security_id="c1",
            date=date(2024, 5, 1),
            stakeholder_id="bob",
            investment_amount=Monetary(amount=Decimal("100000")),
        ),
        WarrantIssuance(
            id="tx-w1",
            security_id="w1",
            date=date(2024, 6, 1),
            stakeholder_id="bob",
            stock_class_id="common",
            quantity=Decimal("500"),
        ),
    ]


def replay_company(transactions=None, preferred=None, settings=None):
    return replay(
        build_company_log() if transactions is None else transactions,
        build_stakeholders(),
        [build_common(), preferred or build_preferred()],
        [build_plan()],
        settings=settings,
    )


def assert_closes(percentages):
    assert abs(sum(percentages, Decimal("0")) - Decimal("100")) < TOLERANCE


# =============================================================================
# Testable Properties
# =============================================================================

def test_replay_is_idempotent():
    first = replay_company()
    second = replay_company()
    assert first == second
    assert first.model_dump() == second.model_dump()


def test_conservation_per_class():
    log = [
        issue("s1", "alice", "common", "8000"),
        issue("s2", "carol", "common", "1500"),
        issue("s3", "bob", "series_a", "2000"),
        StockTransfer(
            id="tx-t1", date=date(2024, 2, 1), from_stakeholder_id="alice",
            to_stakeholder_id="carol", security_id_ref="s1", quantity=Decimal("500"),
        ),
    ]
    view = replay_company(log)

    for class_name, issued in (("Common", Decimal("9500")), ("Series A Preferred", Decimal("2000"))):
        held = sum(
            (h.by_class[class_name].outstanding for h in view.holders.values() if class_name in h.by_class),
            Decimal("0"),
        )
        assert held == issued


def test_clamp_law():
    log = [
        issue("s1", "alice", "common", "300"),
        StockCancellation(id="tx-x", date=date(2024, 2, 1), security_id_ref="s1", quantity=Decimal("1000")),
    ]
    view = replay_company(log)

    holder = view.holders["alice"]
    assert holder.outstanding == Decimal("0")
    assert holder.by_class["Common"].outstanding == Decimal("0")
    assert view.totals.outstanding == Decimal("0")


def test_percentage_closure():
    view = replay_company()
    holders = list(view.holders.values())

    assert_closes([h.outstanding_percentage for h in holders])
    assert_closes([h.as_converted_percentage for h in holders])
    assert_closes([h.fully_diluted_percentage for h in holders])
    assert_closes([h.voting.percentage for h in holders])
    assert_closes([h.voting.columns.all_common for h in holders])
    assert_closes([h.voting.columns.all_preferred for h in holders])


def test_percentages_zero_when_totals_zero():
    log = [
        EquityCompensationIssuance(
            id="tx-g1", security_id="g1", date=date(2024, 1, 1),
            stakeholder_id="carol", stock_plan_id="plan", quantity=Decimal("100"),
        ),
    ]
    view = replay_company(log)

    carol = view.holders["carol"]
    assert view.totals.outstanding == Decimal("0")
    assert carol.outstanding_percentage == Decimal("0")
    assert carol.as_converted_percentage == Decimal("0")
    assert carol.voting.percentage == Decimal("0")
    assert carol.fully_diluted_percentage == Decimal("100")


@pytest.mark.parametrize(
    "numerator, denominator, expected",
    [("1", "1", "1000"), ("2", "1", "2000"), ("1", "2", "500")],
)
def test_ratio_conversion(numerator, denominator, expected):
    view = replay_company(
        [issue("s1", "bob", "series_a", "1000")],
        preferred=build_preferred(numerator, denominator),
    )
    bob = view.holders["bob"]
    assert bob.outstanding == Decimal("1000")
    assert bob.as_converted == Decimal(expected)


def test_exercise_then_issuance_does_not_double_count():
    log = [
        EquityCompensationIssuance(
            id="tx-g1", security_id="g1", date=date(2024, 1, 1),
            stakeholder_id="carol", stock_plan_id="plan", quantity=Decimal("500"),
        ),
        EquityCompensationExercise(
            id="tx-e1", date=date(2025, 1, 1), security_id_ref="g1",
            quantity=Decimal("500"), resulting_security_ids=["s9"],
        ),
        issue("s9", "carol", "common", "500", on=date(2025, 1, 1)),
    ]
    view = replay_company(log)

    carol = view.holders["carol"]
    assert carol.fully_diluted == Decimal("500")
    assert carol.outstanding == Decimal("500")
    assert carol.by_class["Common Options"].fully_diluted == Decimal("0")
    assert view.totals.fully_diluted == Decimal("500")


def test_single_investor_scenario():
    stakeholders = [Stakeholder(id="inv", legal_name="Investor LP", relationship="INVESTOR")]
    log = [issue("s1", "inv", "common", "1000", price="1.00")]

    view = replay(log, stakeholders, [build_common()], [])
    dashboard = summarize_dashboard(log, stakeholders, [build_common()], [])

    holder = view.holders["inv"]
    assert holder.outstanding == Decimal("1000")
    assert holder.outstanding_percentage == Decimal("100")
    assert holder.fully_diluted_percentage == Decimal("100")
    assert dashboard.total_raised == Decimal("1000.00")


def test_cancellation_scenario():
    stakeholders = [Stakeholder(id="inv", legal_name="Investor LP", relationship="INVESTOR")]
    log = [
        issue("s1", "inv", "common", "1000", price="1.00"),
        StockCancellation(id="tx-c", date=date(2024, 2, 1), security_id_ref="s1", quantity=Decimal("400")),
    ]

    view = replay(log, stakeholders, [build_common()], [])

    holder = view.holders["inv"]
    assert holder.outstanding == Decimal("600")
    assert holder.voting.votes == Decimal("600")
    assert holder.by_class["Common"].voting_power == Decimal("600")


# =============================================================================
# View Shape
# =============================================================================

def test_view_is_normalized_with_counts():
    log = build_company_log() + [
        StockCancellation(id="tx-bad", date=date(2024, 7, 1), security_id_ref="missing", quantity=Decimal("1")),
    ]
    view = replay_company(log)

    assert view.stage == ReplayStage.NORMALIZED
    assert view.is_normalized
    assert view.processed_count == 5
    assert view.skipped_count == 1


def test_non_finite_trigger_amounts_do_not_abort_replay():
    log = [
        ConvertibleIssuance(
            id="tx-c9", security_id="c9", date=date(2024, 7, 1), stakeholder_id="bob",
            investment_amount=Monetary(amount=Decimal("50000")),
            conversion_triggers=[{"conversion_right": {
                "type": "CONVERTIBLE_CONVERSION_RIGHT",
                "conversion_mechanism": {"type": "SAFE_CONVERSION", "conversion_valuation_cap": {"amount": "NaN"}},
            }}],
        ),
        WarrantIssuance(
            id="tx-w9", security_id="w9", date=date(2024, 7, 1), stakeholder_id="bob",
            stock_class_id="common",
            exercise_triggers=[{"conversion_right": {
                "converts_to_stock_class_id": "common",
                "conversion_mechanism": {"type": "FIXED_AMOUNT_CONVERSION", "converts_to_quantity": "NaN"},
            }}],
        ),
    ]
    view = replay_company(log)

    bob = view.holders["bob"]
    assert bob.convertibles.safes[0].valuation_cap is None
    assert bob.warrants == []
    assert bob.fully_diluted == Decimal("0")
    assert view.processed_count == 1
    assert view.skipped_count == 1


def test_totals_and_voting_totals():
    view = replay_company(preferred=build_preferred(votes="2"))

    assert view.totals.outstanding == Decimal("10000")
    assert view.totals.fully_diluted == Decimal("11500")
    assert view.voting_totals.common == Decimal("8000")
    assert view.voting_totals.preferred == Decimal("4000")
    assert view.voting_totals.total == Decimal("12000")
    assert view.class_names() == ["Common", "Series A Preferred"]


def test_sorted_holders_by_fully_diluted():
    view = replay_company()
    assert [h.id for h in view.sorted_holders()] == ["alice", "bob", "carol"]


def test_holder_totals_equal_sum_of_classes():
    view = replay_company()
    for holder in view.holders.values():
        assert holder.fully_diluted == sum((c.fully_diluted for c in holder.by_class.values()), Decimal("0"))
        assert holder.outstanding == sum((c.outstanding for c in holder.by_class.values()), Decimal("0"))


def test_stakeholders_without_transactions_are_absent():
    view = replay_company([issue("s1", "alice", "common", "100")])
    assert list(view.holders) == ["alice"]


def test_accepts_generators():
    view = replay(
        (tx for tx in build_company_log()),
        (s for s in build_stakeholders()),
        (c for c in [build_common(), build_preferred()]),
        (p for p in [build_plan()]),
    )
    assert view.options_pool.total_issued == Decimal("1000")
    assert view.totals.outstanding == Decimal("10000")


# =============================================================================
# Options Pool
# =============================================================================

def test_options_pool():
    view = replay_company()
    assert view.options_pool.total_authorized == Decimal("2000")
    assert view.options_pool.total_issued == Decimal("1000")
    assert view.options_pool.unallocated == Decimal("1000")


def test_options_pool_uses_latest_adjustment():
    log = build_company_log() + [
        StockPlanPoolAdjustment(id="adj-1", date=date(2024, 8, 1), stock_plan_id="plan", shares_reserved=Decimal("3000")),
        StockPlanPoolAdjustment(id="adj-2", date=date(2024, 9, 1), stock_plan_id="plan", shares_reserved=Decimal("5000")),
    ]
    view = replay_company(log)
    assert view.options_pool.total_authorized == Decimal("5000")
    assert view.options_pool.unallocated == Decimal("4000")


def test_options_pool_unallocated_floors_at_zero():
    log = [
        EquityCompensationIssuance(
            id="tx-g1", security_id="g1", date=date(2024, 1, 1),
            stakeholder_id="carol", stock_plan_id="plan", quantity=Decimal("5000"),
        ),
    ]
    assert replay_company(log).options_pool.unallocated == Decimal("0")


# =============================================================================
# Empty Logs And Strict Mode
# =============================================================================

def test_empty_log_returns_empty_normalized_view():
    view = replay([], build_stakeholders(), [build_common()], [])
    assert view.holders == {}
    assert view.totals.outstanding == Decimal("0")
    assert view.is_normalized


def test_strict_mode_rejects_empty_log():
    with pytest.raises(EmptyTransactionLogError):
        replay([], build_stakeholders(), [build_common()], [], settings=EngineSettings(strict_references=True))


def test_strict_mode_rejects_unresolved_references():
    log = [
        issue("s1", "alice", "common", "100"),
        StockCancellation(id="tx-bad", date=date(2024, 2, 1), security_id_ref="s404", quantity=Decimal("1")),
        issue("s2", "zed", "common", "100"),
    ]

    with pytest.raises(UnresolvedReferenceError) as exc_info:
        replay_company(log, settings=EngineSettings(strict_references=True))

    error = exc_info.value
    assert [check.transaction_id for check in error.failures] == ["tx-bad", "tx-s2"]
    assert len(error.to_dict()["context"]["errors"]) == 2


def test_strict_mode_passes_clean_log():
    view = replay_company(settings=EngineSettings(strict_references=True))
    assert view.skipped_count == 0
