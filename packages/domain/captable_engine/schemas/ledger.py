"""Stock ledger: one row per stock or grant movement, plus class totals."""

import datetime as dt
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import Field

from .base import DomainModel, SecurityId, StockClassId, ShareCount


# =============================================================================
# Ledger Entry
# =============================================================================

class LedgerEntry(DomainModel):
    """A single movement recorded in the stock ledger.

    ``quantity`` is always positive; the direction is implied by
    ``transaction_type``.
    """

    transaction_id: str
    transaction_type: str
    display_type: str
    date: dt.date

    security_id: Optional[SecurityId] = None
    related_security_id: Optional[SecurityId] = Field(
        default=None,
        description="Issuance a cancellation, transfer or exercise points at"
    )
    certificate_id: str = "N/A"

    holder_id: Optional[str] = None
    holder_name: str = "Unknown"
    relationship: str = "Unknown"
    counterparty_id: Optional[str] = Field(
        default=None,
        description="Destination holder for transfers"
    )

    stock_class_id: Optional[StockClassId] = None
    stock_class_name: str = "Unknown"
    stock_class_type: str = "Unknown"

    quantity: ShareCount
    price_per_share: Decimal = Decimal("0")
    amount_paid: Decimal = Decimal("0")

    reason: Optional[str] = None
    stock_plan_id: Optional[str] = None


# =============================================================================
# Class Totals
# =============================================================================

class StockClassTotals(DomainModel):
    """Per-class running totals across the ledger.

    shares_outstanding = shares_issued - shares_cancelled; transfers move
    shares between holders and leave it unchanged.
    """

    id: StockClassId
    name: str = "Unknown"
    type: str = "Unknown"

    shares_authorized: Optional[ShareCount] = None
    shares_issued: ShareCount = Decimal("0")
    shares_outstanding: ShareCount = Decimal("0")
    shares_transferred: ShareCount = Decimal("0")
    shares_cancelled: ShareCount = Decimal("0")
    options_issued: ShareCount = Decimal("0")
    options_exercised: ShareCount = Decimal("0")


class StockLedger(DomainModel):
    """Ledger entries sorted by date, and totals keyed by stock class id."""

    entries: List[LedgerEntry] = Field(default_factory=list)
    class_totals: Dict[str, StockClassTotals] = Field(default_factory=dict)
