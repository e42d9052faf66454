"""Tests for the dashboard summary.

Tests cover:
- total_raised counting INVESTOR stakeholders only
- Latest share price and cumulative stock valuation
- Valuation selection by created_at (STOCK wins a tie)
- Cancellations reducing shares and investor proceeds
- Ownership by relationship, stock plan amount, authorized shares
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from captable_engine import summarize_dashboard
from captable_engine.replay import convertible_valuation_cap
from captable_engine.schemas import (
    ConvertibleIssuance,
    IssuerAuthorizedSharesAdjustment,
    Monetary,
    Stakeholder,
    StockCancellation,
    StockClass,
    StockIssuance,
    StockPlan,
    StockPlanPoolAdjustment,
    WarrantIssuance,
)


# =============================================================================
# Builders
# =============================================================================

STAKEHOLDERS = [
    Stakeholder(id="founder", legal_name="Alice Founder", relationship="FOUNDER"),
    Stakeholder(id="fund", legal_name="Seed Fund LP", relationship="INVESTOR"),
    Stakeholder(id="angel", legal_name="Dana Angel", relationship="INVESTOR"),
]
CLASSES = [StockClass(id="common", name="Common", class_type="COMMON")]
PLANS = [StockPlan(id="plan", plan_name="2024 Plan", initial_shares_reserved=Decimal("1500"))]


def at(day: int) -> datetime:
    return datetime(2024, 1, day, tzinfo=timezone.utc)


def issue(security_id, stakeholder_id, quantity, price=None, created=None, stock_class_id="common"):
    return StockIssuance(
        id=f"tx-{security_id}",
        security_id=security_id,
        date=date(2024, 1, 1),
        created_at=created,
        stakeholder_id=stakeholder_id,
        stock_class_id=stock_class_id,
        quantity=Decimal(quantity),
        share_price=Monetary(amount=Decimal(price)) if price else None,
    )


def safe_trigger(cap: str) -> dict:
    return {
        "type": "ELECTIVE_AT_WILL",
        "conversion_right": {
            "type": "CONVERTIBLE_CONVERSION_RIGHT",
            "conversion_mechanism": {
                "type": "SAFE_CONVERSION",
                "conversion_valuation_cap": {"amount": cap, "currency": "USD"},
            },
        },
    }


def safe(security_id, stakeholder_id, amount, cap=None, created=None):
    return ConvertibleIssuance(
        id=f"tx-{security_id}",
        security_id=security_id,
        date=date(2024, 1, 1),
        created_at=created,
        stakeholder_id=stakeholder_id,
        investment_amount=Monetary(amount=Decimal(amount)),
        conversion_triggers=[safe_trigger(cap)] if cap else [],
    )


def summarize(log, **kwargs):
    return summarize_dashboard(log, STAKEHOLDERS, CLASSES, PLANS, **kwargs)


# =============================================================================
# Total Raised
# =============================================================================

def test_total_raised_counts_investors_only():
    log = [
        issue("s1", "founder", "8000", price="0.001"),
        issue("s2", "fund", "1000", price="2.00"),
        safe("c1", "angel", "25000"),
        WarrantIssuance(
            id="tx-w1", security_id="w1", date=date(2024, 2, 1), stakeholder_id="fund",
            purchase_price=Monetary(amount=Decimal("500")), quantity=Decimal("100"),
        ),
    ]
    assert summarize(log).total_raised == Decimal("27500")


def test_founder_convertible_not_counted():
    assert summarize([safe("c1", "founder", "10000")]).total_raised == Decimal("0")


def test_unknown_stakeholder_and_class_ignored():
    log = [
        issue("s1", "ghost", "1000", price="1.00"),
        issue("s2", "fund", "1000", price="1.00", stock_class_id="series_z"),
    ]
    summary = summarize(log)
    assert summary.total_raised == Decimal("0")
    assert summary.latest_share_price is None
    assert summary.shares_issued_by_relationship == {}


# =============================================================================
# Share Price And Valuation
# =============================================================================

def test_latest_share_price_and_stock_valuation():
    log = [
        issue("s1", "founder", "8000", price="0.10", created=at(1)),
        issue("s2", "fund", "2000", price="1.50", created=at(2)),
        issue("s3", "founder", "500", created=at(3)),
    ]
    summary = summarize(log)

    assert summary.latest_share_price == Decimal("1.50")
    assert summary.valuation.type == "STOCK"
    assert summary.valuation.amount == Decimal("15000")
    assert summary.valuation.created_at == at(2)


def test_newer_convertible_cap_wins():
    log = [
        issue("s1", "fund", "1000", price="1.00", created=at(1)),
        safe("c1", "angel", "50000", cap="8000000", created=at(5)),
    ]
    valuation = summarize(log).valuation
    assert valuation.type == "CONVERTIBLE"
    assert valuation.amount == Decimal("8000000")


def test_newer_stock_issuance_wins():
    log = [
        safe("c1", "angel", "50000", cap="8000000", created=at(1)),
        issue("s1", "fund", "1000", price="3.00", created=at(5)),
    ]
    valuation = summarize(log).valuation
    assert valuation.type == "STOCK"
    assert valuation.amount == Decimal("3000")


def test_valuation_tie_goes_to_stock():
    log = [
        safe("c1", "angel", "50000", cap="8000000", created=at(4)),
        issue("s1", "fund", "1000", price="3.00", created=at(4)),
    ]
    assert summarize(log).valuation.type == "STOCK"


def test_no_valuation_without_prices_or_caps():
    summary = summarize([issue("s1", "founder", "1000"), safe("c1", "angel", "100")])
    assert summary.valuation is None


def test_non_finite_cap_is_ignored():
    log = [
        issue("s1", "fund", "1000", price="3.00", created=at(1)),
        safe("c1", "angel", "50000", cap="NaN", created=at(5)),
    ]
    assert convertible_valuation_cap([safe_trigger("NaN")]) is None
    assert summarize(log).valuation.type == "STOCK"


def test_convertible_valuation_cap_needs_convertible_right():
    assert convertible_valuation_cap([safe_trigger("5000000")]) == Decimal("5000000")
    assert convertible_valuation_cap([
        {"conversion_right": {
            "type": "WARRANT_CONVERSION_RIGHT",
            "conversion_mechanism": {"type": "SAFE_CONVERSION", "conversion_valuation_cap": "1"},
        }},
    ]) is None
    assert convertible_valuation_cap(None) is None


# =============================================================================
# Cancellations
# =============================================================================

def test_investor_cancellation_reduces_raised_and_valuation():
    log = [
        issue("s1", "fund", "1000", price="1.00", created=at(1)),
        StockCancellation(
            id="x1", date=date(2024, 1, 2), created_at=at(2),
            security_id_ref="s1", quantity=Decimal("400"),
        ),
    ]
    summary = summarize(log)

    assert summary.total_raised == Decimal("600")
    assert summary.shares_issued_by_relationship == {"INVESTOR": Decimal("600")}
    assert summary.valuation.amount == Decimal("600")
    assert summary.valuation.created_at == at(2)


def test_cancellation_of_unknown_security_ignored():
    log = [
        issue("s1", "fund", "1000", price="1.00"),
        StockCancellation(id="x1", date=date(2024, 1, 2), security_id_ref="s9", quantity=Decimal("400")),
    ]
    assert summarize(log).total_raised == Decimal("1000")


# =============================================================================
# Ownership And Issuer Figures
# =============================================================================

def test_ownership_by_relationship():
    log = [
        issue("s1", "founder", "7500"),
        issue("s2", "fund", "1500"),
        issue("s3", "angel", "1000"),
    ]
    summary = summarize(log)

    assert summary.shares_issued_by_relationship == {
        "FOUNDER": Decimal("7500"),
        "INVESTOR": Decimal("2500"),
    }
    assert summary.ownership_by_relationship == {
        "FOUNDER": Decimal("75"),
        "INVESTOR": Decimal("25"),
    }


def test_stakeholder_count_and_plan_amount():
    log = [StockPlanPoolAdjustment(id="a1", date=date(2024, 3, 1), stock_plan_id="plan", shares_reserved=Decimal("2500"))]
    summary = summarize(log)
    assert summary.num_of_stakeholders == 3
    assert summary.stock_plan_amount == Decimal("2500")


def test_plan_amount_ignores_unknown_plan():
    log = [StockPlanPoolAdjustment(id="a1", date=date(2024, 3, 1), stock_plan_id="other-plan", shares_reserved=Decimal("50000"))]
    assert summarize(log).stock_plan_amount == Decimal("1500")


def test_total_shares_authorized():
    assert summarize([]).total_shares_authorized is None
    assert summarize([], issuer_initial_shares_authorized=Decimal("10000000")).total_shares_authorized == Decimal("10000000")

    adjusted = summarize(
        [IssuerAuthorizedSharesAdjustment(id="i1", date=date(2024, 5, 1), new_shares_authorized=Decimal("15000000"))],
        issuer_initial_shares_authorized=Decimal("10000000"),
    )
    assert adjusted.total_shares_authorized == Decimal("15000000")
