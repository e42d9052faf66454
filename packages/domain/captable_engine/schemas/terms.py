"""Normalized conversion and exercise terms.

Convertible and warrant transactions carry their economics inside nested
trigger records whose shape changed over time. The extractor in
``captable_engine.replay.mechanisms`` reads those records once and produces
the flat models below, so nothing downstream branches on shape.
"""

import datetime as dt
from decimal import Decimal
from typing import List, Optional
from pydantic import Field

from .base import DomainModel, StockClassId, ShareCount


# =============================================================================
# Interest
# =============================================================================

class InterestRate(DomainModel):
    """One entry of a convertible note's interest schedule.

    Example:
        InterestRate(rate=Decimal("0.08"), accrual_start_date=date(2024, 1, 1))
    """

    rate: Decimal = Field(
        description="Annual rate as a fraction (0.08 = 8%)"
    )

    accrual_start_date: Optional[dt.date] = None
    accrual_end_date: Optional[dt.date] = None


# =============================================================================
# Convertible Terms
# =============================================================================

class ConversionTerms(DomainModel):
    """Flat view of a convertible's conversion triggers.

    Every field is optional: a trigger list that omits a field leaves it at
    its default rather than failing the transaction. When several triggers
    set the same field the last one wins.
    """

    valuation_cap: Optional[Decimal] = Field(
        default=None,
        description="Valuation cap amount"
    )

    discount: Optional[Decimal] = Field(
        default=None,
        description="Discount as a fraction (0.2 = 20%)"
    )

    conversion_timing: Optional[str] = Field(
        default=None,
        description="PRE_MONEY or POST_MONEY"
    )

    mfn: bool = Field(
        default=False,
        description="Most-favored-nation clause"
    )

    interest_rate_schedule: List[InterestRate] = Field(default_factory=list)

    maturity_date: Optional[dt.date] = None

    interest_calculation_method: Optional[str] = Field(
        default=None,
        description="Day count, accrual period and compounding joined for display"
    )

    converts_to_stock_class_id: Optional[StockClassId] = None


# =============================================================================
# Warrant Terms
# =============================================================================

class WarrantTerms(DomainModel):
    """Flat view of a warrant's first exercise trigger.

    Mechanism types:
        FIXED_AMOUNT_CONVERSION     share count comes from the mechanism
        VALUATION_BASED_CONVERSION  valuation amount; shares from quantity
        PPS_BASED_CONVERSION        optional discount; shares from quantity
    """

    share_count: Optional[ShareCount] = Field(
        default=None,
        description="Resolved share count, None when it cannot be determined"
    )

    mechanism_type: Optional[str] = None
    trigger_type: Optional[str] = None
    trigger_description: Optional[str] = None
    trigger_condition: Optional[str] = None

    valuation_amount: Optional[Decimal] = None

    discount: Optional[Decimal] = Field(
        default=None,
        description="Discount amount for PPS-based conversion"
    )

    has_discount: bool = False

    converts_to_stock_class_id: Optional[StockClassId] = None
