"""Reference entities: stakeholders, stock classes and stock plans.

These are the non-transaction records a replay needs. Transactions point at
them by id; the replay engine indexes them once per invocation and never
mutates them.
"""

from typing import Optional, Literal, List
from decimal import Decimal
from pydantic import Field

from .base import (
    DomainModel,
    StakeholderId,
    StockClassId,
    StockPlanId,
    ShareCount,
    Monetary,
)


# =============================================================================
# Conversion Rights
# =============================================================================

class ConversionRatio(DomainModel):
    """Ratio used when one share of a class converts to common.

    Example:
        numerator=2, denominator=1 means 1 preferred share converts into
        2 common shares (as-converted = shares * 2).
    """

    numerator: Decimal = Field(
        gt=0,
        description="Common shares received"
    )

    denominator: Decimal = Field(
        gt=0,
        description="Shares of this class surrendered"
    )

    def convert(self, shares: Decimal) -> Decimal:
        """Express shares of this class in common-equivalent terms."""
        return shares * self.numerator / self.denominator


class ConversionMechanism(DomainModel):
    """How a stock class converts.

    Only RATIO_CONVERSION affects the as-converted figures; other mechanism
    types are kept for display.
    """

    type: str = Field(
        description="Mechanism type (e.g. 'RATIO_CONVERSION')"
    )

    ratio: Optional[ConversionRatio] = Field(
        default=None,
        description="Conversion ratio for RATIO_CONVERSION"
    )


class StockClassConversionRight(DomainModel):
    """A conversion right attached to a stock class."""

    type: str = Field(
        default="STOCK_CLASS_CONVERSION_RIGHT",
        description="Conversion right type"
    )

    conversion_mechanism: Optional[ConversionMechanism] = Field(
        default=None,
        description="Mechanism applied on conversion"
    )

    converts_to_stock_class_id: Optional[StockClassId] = Field(
        default=None,
        description="Target class (usually common)"
    )


# =============================================================================
# Stock Class
# =============================================================================

class StockClass(DomainModel):
    """A class of shares with voting and conversion rights.

    Examples:
        - Common Stock: COMMON, 1 vote per share
        - Series A Preferred: PREFERRED, 1 vote per share, converts 1:1
        - Founder Preferred: PREFERRED, 10 votes per share

    As-converted accounting:
        Only the FIRST conversion right is consulted, and only when it is a
        RATIO_CONVERSION. Everything else converts 1:1.
    """

    id: StockClassId
    name: str = Field(description="Human-readable name (e.g., 'Series A Preferred')")

    class_type: Literal["COMMON", "PREFERRED"] = Field(
        description="Fundamental class type"
    )

    votes_per_share: Decimal = Field(
        default=Decimal("1"),
        ge=0,
        description="Votes carried by one share"
    )

    conversion_rights: List[StockClassConversionRight] = Field(
        default_factory=list,
        description="Conversion rights (preferred into common)"
    )

    initial_shares_authorized: Optional[ShareCount] = Field(
        default=None,
        description="Shares authorized for this class at creation"
    )

    price_per_share: Optional[Monetary] = Field(
        default=None,
        description="Original issue price, if recorded"
    )

    @property
    def conversion_ratio(self) -> Optional[ConversionRatio]:
        """Ratio used for as-converted figures, or None for 1:1."""
        if self.class_type != "PREFERRED" or not self.conversion_rights:
            return None
        mechanism = self.conversion_rights[0].conversion_mechanism
        if mechanism is None or mechanism.type != "RATIO_CONVERSION":
            return None
        return mechanism.ratio

    def as_converted(self, shares: Decimal) -> Decimal:
        """Common-equivalent share count for shares of this class."""
        ratio = self.conversion_ratio
        if ratio is None:
            return shares
        return ratio.convert(shares)

    def voting_power(self, shares: Decimal) -> Decimal:
        """Votes carried by shares of this class."""
        return shares * self.votes_per_share


# =============================================================================
# Stakeholder
# =============================================================================

class Stakeholder(DomainModel):
    """Anyone who can hold a security of the issuer.

    The relationship drives dashboard rules: only INVESTOR stakeholders
    count toward the amount raised.
    """

    id: StakeholderId
    legal_name: str = Field(description="Legal name shown in views")

    relationship: str = Field(
        default="OTHER",
        description="Current relationship (FOUNDER, INVESTOR, EMPLOYEE, ADVISOR, ...)"
    )

    @property
    def is_investor(self) -> bool:
        return self.relationship == "INVESTOR"


# =============================================================================
# Stock Plan
# =============================================================================

class StockPlan(DomainModel):
    """An equity incentive plan reserving shares for grants."""

    id: StockPlanId
    plan_name: str = Field(default="", description="Plan name")

    initial_shares_reserved: ShareCount = Field(
        default=Decimal("0"),
        description="Shares reserved when the plan was adopted"
    )

    stock_class_ids: List[StockClassId] = Field(
        default_factory=list,
        description="Classes that grants under this plan settle in"
    )

    @property
    def display_name(self) -> str:
        return self.plan_name or self.id
