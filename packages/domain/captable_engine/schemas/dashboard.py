"""Issuer-level dashboard figures."""

import datetime as dt
from decimal import Decimal
from typing import Dict, Literal, Optional
from pydantic import Field

from .base import DomainModel, MoneyAmount, ShareCount, Percentage


class Valuation(DomainModel):
    """A valuation implied by one transaction.

    STOCK valuations are cumulative shares issued times that issuance's
    price. CONVERTIBLE valuations are the valuation cap of a SAFE, note or
    warrant conversion right.
    """

    type: Literal["STOCK", "CONVERTIBLE"]
    amount: Decimal
    created_at: dt.datetime


class DashboardSummary(DomainModel):
    """Scalars shown on the issuer dashboard.

    ``total_raised`` counts INVESTOR stakeholders only: convertible
    investments, warrant purchase prices and stock proceeds, less investor
    cancellations valued at the latest share price. It can go negative when
    cancellations are valued above the original price.
    """

    total_raised: Decimal = Decimal("0")
    latest_share_price: Optional[MoneyAmount] = None
    valuation: Optional[Valuation] = None

    shares_issued_by_relationship: Dict[str, Decimal] = Field(
        default_factory=dict,
        description="Net shares issued per stakeholder relationship"
    )

    ownership_by_relationship: Dict[str, Percentage] = Field(
        default_factory=dict,
        description="Percent of all issued shares per relationship"
    )

    num_of_stakeholders: int = 0
    stock_plan_amount: ShareCount = Decimal("0")
    total_shares_authorized: Optional[ShareCount] = None
