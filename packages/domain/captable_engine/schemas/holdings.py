"""Derived per-stakeholder state produced by replay.

Nothing in this module is persisted. A replay builds a fresh HolderState for
every stakeholder it touches and hands the whole map back inside an
AggregatedView.

Share accounting per holder:
    outstanding    shares actually issued and not cancelled
    as_converted   outstanding with preferred expressed in common terms
    fully_diluted  outstanding plus unexercised grants and warrants

The holder totals always equal the sum over ``by_class``.
"""

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import Field

from .base import (
    DomainModel,
    SecurityId,
    StakeholderId,
    StockClassId,
    StockPlanId,
    ShareCount,
    VoteCount,
    Percentage,
)
from .terms import InterestRate


# =============================================================================
# Class Holding
# =============================================================================

class ClassHolding(DomainModel):
    """A holder's position in one stock class or grant category.

    Keys in ``HolderState.by_class`` are display names: the stock class name
    for stock ("Series A Preferred"), or a derived category for grants
    ("Common Options", "Common Warrants").

    Example:
        ClassHolding(class_name="Common", type="COMMON",
                     outstanding=Decimal("1000"), as_converted=Decimal("1000"),
                     fully_diluted=Decimal("1000"), voting_power=Decimal("1000"))
    """

    class_name: str
    type: str = Field(
        description="COMMON, PREFERRED, EQUITY_COMPENSATION or WARRANT"
    )

    stock_class_id: Optional[StockClassId] = None

    outstanding: ShareCount = Decimal("0")
    as_converted: ShareCount = Decimal("0")
    fully_diluted: ShareCount = Decimal("0")
    voting_power: VoteCount = Decimal("0")

    # Category flags
    is_founder_preferred: bool = False
    is_option: bool = False
    is_plan_award: bool = False

    # Provenance, for audit display
    issued_date: Optional[dt.date] = None
    price_per_share: Optional[Decimal] = None
    cancellation_reason: Optional[str] = None
    cancellation_date: Optional[dt.date] = None

    @property
    def is_stock(self) -> bool:
        return self.type in ("COMMON", "PREFERRED")


# =============================================================================
# Voting
# =============================================================================

class VotingColumns(DomainModel):
    """Voting percentages per column of the voting-rights table.

    Each column is the holder's share of the votes in that column, in points.
    A column whose global total is zero stays at 0.
    """

    total_as_converted: Percentage = Decimal("0")
    all_common: Percentage = Decimal("0")
    all_preferred: Percentage = Decimal("0")
    by_class: Dict[str, Percentage] = Field(default_factory=dict)


class VotingRights(DomainModel):
    """Raw votes plus the normalized percentages."""

    votes: VoteCount = Decimal("0")
    percentage: Percentage = Decimal("0")
    columns: VotingColumns = Field(default_factory=VotingColumns)


# =============================================================================
# Equity Compensation Grants
# =============================================================================

class EquityGrant(DomainModel):
    """An option or award as listed under a holder's plans."""

    id: str
    security_id: Optional[SecurityId] = None
    date: dt.date

    category: str = Field(
        description="by_class key this grant counts under"
    )

    compensation_type: str
    quantity: ShareCount
    exercised_quantity: ShareCount = Decimal("0")

    exercise_price: Optional[Decimal] = None
    currency: str = "USD"
    vesting_terms_id: Optional[str] = None
    vesting_schedule: List[Dict[str, Any]] = Field(default_factory=list)
    expiration_date: Optional[dt.date] = None
    stock_plan_id: Optional[StockPlanId] = None

    @property
    def remaining(self) -> Decimal:
        return max(Decimal("0"), self.quantity - self.exercised_quantity)


class PlanHoldings(DomainModel):
    """Grants split by whether they were issued from a stock plan."""

    stock_plan: List[EquityGrant] = Field(default_factory=list)
    non_plan: List[EquityGrant] = Field(default_factory=list)


# =============================================================================
# Convertibles
# =============================================================================

class ConvertibleRecord(DomainModel):
    """A SAFE, note or other convertible as shown on the holder's view.

    Convertibles carry no shares until conversion, so a record is purely
    descriptive. ``is_outstanding`` is always True here since the engine does
    not model conversions.
    """

    id: str
    custom_id: str
    convertible_type: str
    amount: Decimal
    currency: str = "USD"
    date: dt.date
    board_approval_date: Optional[dt.date] = None

    # Conversion economics
    valuation_cap: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    valuation_method: str = "POST_MONEY"
    mfn: bool = False

    # Note-specific
    interest_rates: List[InterestRate] = Field(default_factory=list)
    maturity_date: Optional[dt.date] = None
    interest_calculation_method: Optional[str] = None

    # Terms and paperwork
    consideration_text: str = ""
    pro_rata: Optional[Any] = None
    seniority: Optional[int] = None
    exemptions: List[Dict[str, str]] = Field(default_factory=list)
    has_side_letters: bool = False
    comments: List[str] = Field(default_factory=list)
    conversion_triggers: List[Dict[str, Any]] = Field(default_factory=list)

    is_outstanding: bool = True

    def principal_and_interest(self, as_of: Optional[dt.date] = None) -> Optional[Decimal]:
        """Principal plus simple interest at the first scheduled rate.

        Interest runs from the issue date to the maturity date. Without a
        maturity date it runs to ``as_of`` (default today). Compounding is
        not modelled.

        Returns:
            Amount owed, or None when there is no interest schedule

        Example:
            $100,000 at 8% for one 365-day year -> $108,000
        """
        if not self.interest_rates or not self.amount:
            return None
        end = self.maturity_date or as_of or dt.date.today()
        years = Decimal((end - self.date).days) / Decimal("365")
        rate = self.interest_rates[0].rate
        return self.amount * (Decimal("1") + rate * years)


class ConvertibleHoldings(DomainModel):
    """Convertibles bucketed by instrument type."""

    safes: List[ConvertibleRecord] = Field(default_factory=list)
    notes: List[ConvertibleRecord] = Field(default_factory=list)
    other: List[ConvertibleRecord] = Field(default_factory=list)

    def all(self) -> List[ConvertibleRecord]:
        return [*self.safes, *self.notes, *self.other]


# =============================================================================
# Warrants
# =============================================================================

class WarrantRecord(DomainModel):
    """A warrant as shown on the holder's view.

    Exercise and cancellation keep:
        shares_remaining = max(0, shares_issuable - shares_exercised - shares_cancelled)
    and mark the warrant not outstanding once nothing remains.
    """

    id: str
    custom_id: str
    security_id: Optional[SecurityId] = None
    date: dt.date
    board_approval_date: Optional[dt.date] = None

    # Shares
    shares_issuable: ShareCount
    shares_remaining: ShareCount
    shares_exercised: ShareCount = Decimal("0")
    shares_cancelled: ShareCount = Decimal("0")

    # Pricing
    exercise_price: Optional[Decimal] = None
    purchase_price: Optional[Decimal] = None
    currency: str = "USD"

    # Dates
    expiration_date: Optional[dt.date] = None
    exercise_date: Optional[dt.date] = None
    cancellation_date: Optional[dt.date] = None
    basis_for_cancellation: Optional[str] = None

    # Target class
    stock_class: Optional[str] = Field(
        default=None,
        description="Display label of the class the warrant converts into"
    )
    stock_class_id: Optional[StockClassId] = None
    category: str = Field(
        default="Unknown Warrants",
        description="by_class key this warrant counts under"
    )

    # Trigger and mechanism
    trigger_type: Optional[str] = None
    trigger_description: Optional[str] = None
    trigger_condition: Optional[str] = None
    conversion_mechanism_type: Optional[str] = None
    conversion_discount: Optional[Decimal] = None
    conversion_valuation_cap: Optional[Decimal] = None

    # Vesting and paperwork
    vesting_terms_id: Optional[str] = None
    vestings: List[Dict[str, Any]] = Field(default_factory=list)
    vested_amount: ShareCount = Decimal("0")
    exemptions: List[Dict[str, str]] = Field(default_factory=list)
    comments: List[str] = Field(default_factory=list)

    is_outstanding: bool = True
    basis_of_issuance: str = ""
    quantity_source: Optional[str] = None

    def _refresh_remaining(self) -> None:
        self.shares_remaining = max(
            Decimal("0"),
            self.shares_issuable - self.shares_exercised - self.shares_cancelled,
        )
        if self.shares_remaining == 0:
            self.is_outstanding = False

    def record_exercise(self, quantity: Decimal, on: dt.date) -> None:
        self.shares_exercised += quantity
        self.exercise_date = on
        self._refresh_remaining()

    def record_cancellation(self, quantity: Decimal, on: dt.date, reason: Optional[str] = None) -> None:
        self.shares_cancelled += quantity
        self.cancellation_date = on
        self.basis_for_cancellation = reason or "Cancelled"
        self._refresh_remaining()


# =============================================================================
# Holder State
# =============================================================================

class HolderState(DomainModel):
    """Everything replay derives for one stakeholder.

    Percentages stay at 0 until the normalization pass has run over the
    whole view.
    """

    id: StakeholderId
    name: str
    relationship: str = "OTHER"

    outstanding: ShareCount = Decimal("0")
    as_converted: ShareCount = Decimal("0")
    fully_diluted: ShareCount = Decimal("0")

    outstanding_percentage: Percentage = Decimal("0")
    as_converted_percentage: Percentage = Decimal("0")
    fully_diluted_percentage: Percentage = Decimal("0")

    by_class: Dict[str, ClassHolding] = Field(default_factory=dict)
    voting: VotingRights = Field(default_factory=VotingRights)

    convertibles: ConvertibleHoldings = Field(default_factory=ConvertibleHoldings)
    warrants: List[WarrantRecord] = Field(default_factory=list)
    plans: PlanHoldings = Field(default_factory=PlanHoldings)

    def class_holding(
        self,
        class_name: str,
        holding_type: str,
        stock_class_id: Optional[StockClassId] = None,
        **flags: Any,
    ) -> ClassHolding:
        """Get the holding for a class or category, creating it if needed."""
        holding = self.by_class.get(class_name)
        if holding is None:
            holding = ClassHolding(
                class_name=class_name,
                type=holding_type,
                stock_class_id=stock_class_id,
                **flags,
            )
            self.by_class[class_name] = holding
        return holding

    def find_warrant(self, warrant_id: str) -> Optional[WarrantRecord]:
        return next((w for w in self.warrants if w.id == warrant_id), None)

    def find_grant(self, grant_id: str) -> Optional[EquityGrant]:
        for grant in [*self.plans.stock_plan, *self.plans.non_plan]:
            if grant.id == grant_id:
                return grant
        return None
