"""Tests for the stock processor.

Tests cover:
- Issuance into outstanding, as-converted, fully diluted and voting power
- Ratio conversion for preferred classes
- Cancellation: symmetric decrement and the clamp law
- Transfer between holders within one class
- Missing references skipping the transaction
"""

from datetime import date
from decimal import Decimal

from structlog.testing import capture_logs

from captable_engine.config import EngineSettings
from captable_engine.replay import ReferenceResolver, ReplayState
from captable_engine.replay.processors import (
    process_stock_cancellation,
    process_stock_issuance,
    process_stock_transfer,
)
from captable_engine.schemas import (
    ConversionMechanism,
    ConversionRatio,
    Monetary,
    Stakeholder,
    StockCancellation,
    StockClass,
    StockClassConversionRight,
    StockIssuance,
    StockTransfer,
)


# =============================================================================
# Builders
# =============================================================================

COMMON = StockClass(id="common", name="Common", class_type="COMMON")

SERIES_A = StockClass(
    id="series_a",
    name="Series A Preferred",
    class_type="PREFERRED",
    votes_per_share=Decimal("2"),
    conversion_rights=[
        StockClassConversionRight(
            conversion_mechanism=ConversionMechanism(
                type="RATIO_CONVERSION",
                ratio=ConversionRatio(numerator=Decimal("2"), denominator=Decimal("1")),
            )
        )
    ],
)

STAKEHOLDERS = [
    Stakeholder(id="alice", legal_name="Alice Founder", relationship="FOUNDER"),
    Stakeholder(id="bob", legal_name="Bob Capital", relationship="INVESTOR"),
]


def make_state() -> ReplayState:
    resolver = ReferenceResolver(STAKEHOLDERS, [COMMON, SERIES_A], [])
    state = ReplayState(resolver, EngineSettings())
    state.begin()
    return state


def issue(security_id: str, stakeholder_id: str, stock_class_id: str, quantity: str, **extra) -> StockIssuance:
    return StockIssuance(
        id=f"tx-{security_id}",
        security_id=security_id,
        date=extra.pop("on", date(2024, 1, 1)),
        stakeholder_id=stakeholder_id,
        stock_class_id=stock_class_id,
        quantity=Decimal(quantity),
        **extra,
    )


def cancel(security_id_ref: str, quantity: str, reason: str = "Repurchase") -> StockCancellation:
    return StockCancellation(
        id=f"cancel-{security_id_ref}",
        date=date(2024, 6, 1),
        security_id_ref=security_id_ref,
        quantity=Decimal(quantity),
        reason=reason,
    )


# =============================================================================
# Issuance
# =============================================================================

def test_common_issuance():
    state = process_stock_issuance(
        make_state(),
        issue("s1", "alice", "common", "1000", share_price=Monetary(amount=Decimal("0.01"))),
    )

    holder = state.holders["alice"]
    holding = holder.by_class["Common"]
    assert holder.outstanding == Decimal("1000")
    assert holder.as_converted == Decimal("1000")
    assert holder.fully_diluted == Decimal("1000")
    assert holder.voting.votes == Decimal("1000")
    assert holding.price_per_share == Decimal("0.01")
    assert holding.issued_date == date(2024, 1, 1)
    assert state.processed == 1


def test_preferred_issuance_uses_ratio_and_votes():
    state = process_stock_issuance(make_state(), issue("s1", "bob", "series_a", "1000"))

    holding = state.holders["bob"].by_class["Series A Preferred"]
    assert holding.outstanding == Decimal("1000")
    assert holding.as_converted == Decimal("2000")
    assert holding.voting_power == Decimal("2000")
    assert holding.type == "PREFERRED"


def test_founder_preferred_flag():
    state = process_stock_issuance(
        make_state(),
        issue("s1", "alice", "series_a", "100", issuance_type="FOUNDERS_STOCK"),
    )
    assert state.holders["alice"].by_class["Series A Preferred"].is_founder_preferred


def test_issuances_accumulate_in_one_class_holding():
    state = make_state()
    process_stock_issuance(state, issue("s1", "alice", "common", "1000"))
    process_stock_issuance(state, issue("s2", "alice", "common", "500", on=date(2024, 2, 1)))

    holding = state.holders["alice"].by_class["Common"]
    assert holding.outstanding == Decimal("1500")
    assert holding.issued_date == date(2024, 1, 1)


def test_issuance_unknown_stakeholder_skipped():
    state = process_stock_issuance(make_state(), issue("s1", "mallory", "common", "1000"))
    assert state.holders == {}
    assert state.skipped == 1
    assert state.processed == 0


def test_issuance_unknown_class_skipped():
    state = process_stock_issuance(make_state(), issue("s1", "alice", "series_z", "1000"))
    assert state.holders == {}
    assert state.skipped == 1


def test_skip_is_logged_at_debug():
    with capture_logs() as logs:
        process_stock_issuance(make_state(), issue("s1", "mallory", "common", "1"))

    skipped = [entry for entry in logs if entry["event"] == "transaction_skipped"]
    assert skipped[0]["log_level"] == "debug"
    assert skipped[0]["missing"] == "stakeholder"
    assert skipped[0]["ref"] == "mallory"


# =============================================================================
# Cancellation
# =============================================================================

def test_cancellation_decrements_symmetrically():
    state = make_state()
    process_stock_issuance(state, issue("s1", "bob", "series_a", "1000"))
    process_stock_cancellation(state, cancel("s1", "400"))

    holder = state.holders["bob"]
    holding = holder.by_class["Series A Preferred"]
    assert holding.outstanding == Decimal("600")
    assert holding.as_converted == Decimal("1200")
    assert holding.fully_diluted == Decimal("600")
    assert holding.voting_power == Decimal("1200")
    assert holder.voting.votes == Decimal("1200")
    assert holding.cancellation_date == date(2024, 6, 1)
    assert holding.cancellation_reason == "Repurchase"


def test_over_cancellation_clamps_to_zero():
    state = make_state()
    process_stock_issuance(state, issue("s1", "alice", "common", "300"))

    with capture_logs() as logs:
        process_stock_cancellation(state, cancel("s1", "500"))

    holder = state.holders["alice"]
    assert holder.outstanding == Decimal("0")
    assert holder.by_class["Common"].outstanding == Decimal("0")
    assert holder.voting.votes == Decimal("0")

    clamped = [entry for entry in logs if entry["event"] == "stock_cancellation_clamped"]
    assert clamped[0]["log_level"] == "warning"
    assert clamped[0]["requested"] == "500"
    assert clamped[0]["available"] == "300"


def test_cancellation_of_unknown_security_skipped():
    state = make_state()
    process_stock_issuance(state, issue("s1", "alice", "common", "300"))
    process_stock_cancellation(state, cancel("nope", "100"))

    assert state.holders["alice"].outstanding == Decimal("300")
    assert state.skipped == 1


def test_cancellation_before_issuance_does_not_resolve():
    state = make_state()
    process_stock_cancellation(state, cancel("s1", "100"))
    process_stock_issuance(state, issue("s1", "alice", "common", "300"))

    assert state.holders["alice"].outstanding == Decimal("300")
    assert state.skipped == 1


# =============================================================================
# Transfer
# =============================================================================

def transfer(quantity: str, security_id_ref: str = "s1") -> StockTransfer:
    return StockTransfer(
        id="xfer-1",
        date=date(2024, 3, 1),
        from_stakeholder_id="alice",
        to_stakeholder_id="bob",
        security_id_ref=security_id_ref,
        quantity=Decimal(quantity),
    )


def test_transfer_preserves_total_outstanding():
    state = make_state()
    process_stock_issuance(state, issue("s1", "alice", "common", "1000"))
    process_stock_transfer(state, transfer("250"))

    alice = state.holders["alice"]
    bob = state.holders["bob"]
    assert alice.outstanding == Decimal("750")
    assert bob.outstanding == Decimal("250")
    assert bob.by_class["Common"].issued_date == date(2024, 3, 1)
    assert alice.outstanding + bob.outstanding == Decimal("1000")


def test_transfer_is_clamped_to_source_holding():
    state = make_state()
    process_stock_issuance(state, issue("s1", "alice", "common", "100"))

    with capture_logs() as logs:
        process_stock_transfer(state, transfer("400"))

    assert state.holders["alice"].outstanding == Decimal("0")
    assert state.holders["bob"].outstanding == Decimal("100")
    assert any(entry["event"] == "stock_transfer_clamped" for entry in logs)


def test_transfer_of_unknown_security_skipped():
    state = make_state()
    process_stock_issuance(state, issue("s1", "alice", "common", "100"))
    process_stock_transfer(state, transfer("50", security_id_ref="missing"))

    assert "bob" not in state.holders
    assert state.skipped == 1
