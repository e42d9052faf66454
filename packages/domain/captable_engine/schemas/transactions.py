"""Capitalization transactions, the append-only log the engine replays.

Every record in an issuer's log is one of the variants below. Records are
immutable once appended; the engine only ever reads them. The derived cap
table is computed by replaying the log in the order given.

Variants fall into four security families plus authorized-share
adjustments:

    Stock:                 TX_STOCK_ISSUANCE, TX_STOCK_CANCELLATION,
                           TX_STOCK_TRANSFER
    Equity compensation:   TX_EQUITY_COMPENSATION_ISSUANCE,
                           TX_EQUITY_COMPENSATION_EXERCISE
    Convertibles:          TX_CONVERTIBLE_ISSUANCE
    Warrants:              TX_WARRANT_ISSUANCE, TX_WARRANT_EXERCISE,
                           TX_WARRANT_CANCELLATION
    Adjustments:           TX_ISSUER_AUTHORIZED_SHARES_ADJUSTMENT,
                           TX_STOCK_CLASS_AUTHORIZED_SHARES_ADJUSTMENT,
                           TX_STOCK_PLAN_POOL_ADJUSTMENT

Cancellations, transfers and exercises point back at an earlier issuance
through ``security_id_ref``. Conversion and exercise triggers are kept in
their raw nested form; ``captable_engine.replay.mechanisms`` flattens them.
"""

import datetime as dt
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import Field, TypeAdapter

from .base import (
    DomainModel,
    SecurityId,
    StakeholderId,
    StockClassId,
    StockPlanId,
    ShareCount,
    Monetary,
)
from ..exceptions import UnsupportedTransactionError


# =============================================================================
# Transaction Base Class
# =============================================================================

class CapTableTransaction(DomainModel):
    """Fields shared by every transaction variant.

    ``created_at`` is the time the record was appended to the log, which can
    differ from the economic ``date``. The dashboard uses it to pick the most
    recent valuation.
    """

    id: str = Field(
        min_length=1,
        description="Unique identifier of this log record"
    )

    security_id: Optional[SecurityId] = Field(
        default=None,
        description="Security created or affected by this transaction"
    )

    date: dt.date = Field(
        description="Date the transaction took effect"
    )

    issuer_id: Optional[str] = Field(
        default=None,
        description="Issuer the transaction belongs to"
    )

    created_at: Optional[dt.datetime] = Field(
        default=None,
        description="When the record was appended to the log"
    )

    comments: List[str] = Field(
        default_factory=list,
        description="Free-text comments carried on the record"
    )

    @property
    def recorded_at(self) -> dt.datetime:
        """Creation time in UTC, falling back to midnight of the effective date."""
        if self.created_at is None:
            return dt.datetime.combine(self.date, dt.time.min, tzinfo=dt.timezone.utc)
        if self.created_at.tzinfo is None:
            return self.created_at.replace(tzinfo=dt.timezone.utc)
        return self.created_at


# =============================================================================
# Stock
# =============================================================================

class StockIssuance(CapTableTransaction):
    """Shares of a stock class are issued to a stakeholder.

    Also the way exercised options and warrants become real shares: the
    exercise itself only retires the grant, and a separate issuance follows.
    """

    object_type: Literal["TX_STOCK_ISSUANCE"] = "TX_STOCK_ISSUANCE"

    stakeholder_id: StakeholderId
    stock_class_id: StockClassId

    quantity: ShareCount = Field(
        description="Number of shares issued"
    )

    share_price: Optional[Monetary] = Field(
        default=None,
        description="Price paid per share (None for founder shares)"
    )

    issuance_type: Optional[str] = Field(
        default=None,
        description="e.g. 'FOUNDERS_STOCK' or 'RSA'"
    )

    custom_id: Optional[str] = Field(
        default=None,
        description="Certificate identifier"
    )

    board_approval_date: Optional[dt.date] = None
    stock_plan_id: Optional[StockPlanId] = None
    vesting_terms_id: Optional[str] = None


class StockCancellation(CapTableTransaction):
    """Shares from an earlier stock issuance are cancelled."""

    object_type: Literal["TX_STOCK_CANCELLATION"] = "TX_STOCK_CANCELLATION"

    security_id_ref: SecurityId = Field(
        description="security_id of the StockIssuance being cancelled"
    )

    quantity: ShareCount = Field(
        description="Shares requested to cancel (clamped to what is outstanding)"
    )

    reason: Optional[str] = Field(
        default=None,
        description="Reason text recorded on the class holding"
    )


class StockTransfer(CapTableTransaction):
    """Shares move between stakeholders within the same stock class.

    The class is taken from the referenced issuance.
    """

    object_type: Literal["TX_STOCK_TRANSFER"] = "TX_STOCK_TRANSFER"

    from_stakeholder_id: StakeholderId
    to_stakeholder_id: StakeholderId

    security_id_ref: SecurityId = Field(
        description="security_id of the StockIssuance the shares come from"
    )

    quantity: ShareCount = Field(
        description="Shares transferred"
    )

    consideration: Optional[Monetary] = Field(
        default=None,
        description="Amount paid by the buyer, if any"
    )


# =============================================================================
# Equity Compensation
# =============================================================================

class EquityCompensationIssuance(CapTableTransaction):
    """An option or award is granted, from a plan or outside one.

    Grants affect fully diluted only. Category naming:
        OPTION_* from a plan  -> "{class} Options"
        anything outside plan -> "{class} Non-Plan Awards"
        other plan awards     -> "{class} Equity Compensation"
    """

    object_type: Literal["TX_EQUITY_COMPENSATION_ISSUANCE"] = "TX_EQUITY_COMPENSATION_ISSUANCE"

    stakeholder_id: StakeholderId
    stock_class_id: Optional[StockClassId] = None
    stock_plan_id: Optional[StockPlanId] = None

    quantity: ShareCount = Field(
        description="Shares covered by the grant"
    )

    exercise_price: Optional[Monetary] = None

    compensation_type: str = Field(
        default="OPTION_ISO",
        description="OPTION_ISO, OPTION_NSO, RSU, CSAR, SSAR, ..."
    )

    vesting_schedule: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Vesting events as recorded on the grant"
    )

    vesting_terms_id: Optional[str] = None
    expiration_date: Optional[dt.date] = None
    board_approval_date: Optional[dt.date] = None

    @property
    def is_option(self) -> bool:
        return "OPTION_" in self.compensation_type

    @property
    def is_plan_award(self) -> bool:
        return self.stock_plan_id is not None


class EquityCompensationExercise(CapTableTransaction):
    """Part or all of a grant is exercised.

    Retires grant quantity from fully diluted. The shares themselves arrive
    as a StockIssuance listed in ``resulting_security_ids``.
    """

    object_type: Literal["TX_EQUITY_COMPENSATION_EXERCISE"] = "TX_EQUITY_COMPENSATION_EXERCISE"

    security_id_ref: SecurityId
    quantity: ShareCount

    resulting_security_ids: List[SecurityId] = Field(
        default_factory=list,
        description="Stock issuances produced by this exercise"
    )

    consideration: Optional[Monetary] = None


# =============================================================================
# Convertibles
# =============================================================================

class ConvertibleIssuance(CapTableTransaction):
    """A SAFE, convertible note, or other convertible is issued.

    Convertibles never affect share counts until they convert; they are
    listed per holder for display.
    """

    object_type: Literal["TX_CONVERTIBLE_ISSUANCE"] = "TX_CONVERTIBLE_ISSUANCE"

    stakeholder_id: StakeholderId

    investment_amount: Monetary = Field(
        description="Amount invested"
    )

    convertible_type: Literal["SAFE", "NOTE", "OTHER"] = Field(
        default="SAFE",
        description="Instrument kind"
    )

    conversion_triggers: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Raw trigger records with nested conversion mechanisms"
    )

    custom_id: Optional[str] = None
    board_approval_date: Optional[dt.date] = None
    consideration_text: Optional[str] = None
    pro_rata: Optional[Any] = None
    seniority: Optional[int] = None
    security_law_exemptions: List[Dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# Warrants
# =============================================================================

class WarrantIssuance(CapTableTransaction):
    """A warrant to purchase shares is issued.

    The share count comes from the first exercise trigger's mechanism when
    it names one, otherwise from ``quantity``. A warrant with no resolvable
    share count cannot be accounted and is left out of fully diluted.
    """

    object_type: Literal["TX_WARRANT_ISSUANCE"] = "TX_WARRANT_ISSUANCE"

    stakeholder_id: StakeholderId

    purchase_price: Optional[Monetary] = Field(
        default=None,
        description="Amount paid for the warrant itself"
    )

    exercise_price: Optional[Monetary] = None
    quantity: Optional[ShareCount] = None

    quantity_source: Optional[str] = Field(
        default=None,
        description="Where the quantity came from (e.g. HUMAN_ESTIMATED)"
    )

    exercise_triggers: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Raw trigger records with nested conversion rights"
    )

    warrant_expiration_date: Optional[dt.date] = None
    stock_class_id: Optional[StockClassId] = None

    vestings: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Vesting events: {'date': ..., 'amount': ...}"
    )

    custom_id: Optional[str] = None
    board_approval_date: Optional[dt.date] = None
    vesting_terms_id: Optional[str] = None
    consideration_text: Optional[str] = None
    security_law_exemptions: List[Dict[str, Any]] = Field(default_factory=list)


class WarrantExercise(CapTableTransaction):
    """Part or all of a warrant is exercised."""

    object_type: Literal["TX_WARRANT_EXERCISE"] = "TX_WARRANT_EXERCISE"

    security_id_ref: SecurityId
    quantity: ShareCount

    resulting_security_ids: List[SecurityId] = Field(default_factory=list)


class WarrantCancellation(CapTableTransaction):
    """Part or all of a warrant is cancelled."""

    object_type: Literal["TX_WARRANT_CANCELLATION"] = "TX_WARRANT_CANCELLATION"

    security_id_ref: SecurityId
    quantity: ShareCount
    reason: Optional[str] = None


# =============================================================================
# Authorized Share Adjustments
# =============================================================================

class IssuerAuthorizedSharesAdjustment(CapTableTransaction):
    """The issuer's total authorized shares change."""

    object_type: Literal["TX_ISSUER_AUTHORIZED_SHARES_ADJUSTMENT"] = "TX_ISSUER_AUTHORIZED_SHARES_ADJUSTMENT"

    new_shares_authorized: ShareCount


class StockClassAuthorizedSharesAdjustment(CapTableTransaction):
    """A stock class's authorized shares change."""

    object_type: Literal["TX_STOCK_CLASS_AUTHORIZED_SHARES_ADJUSTMENT"] = "TX_STOCK_CLASS_AUTHORIZED_SHARES_ADJUSTMENT"

    stock_class_id: StockClassId
    new_shares_authorized: ShareCount


class StockPlanPoolAdjustment(CapTableTransaction):
    """A stock plan's reserved pool is resized."""

    object_type: Literal["TX_STOCK_PLAN_POOL_ADJUSTMENT"] = "TX_STOCK_PLAN_POOL_ADJUSTMENT"

    stock_plan_id: StockPlanId
    shares_reserved: ShareCount


# =============================================================================
# Discriminated Union
# =============================================================================

Transaction = Annotated[
    Union[
        StockIssuance,
        StockCancellation,
        StockTransfer,
        EquityCompensationIssuance,
        EquityCompensationExercise,
        ConvertibleIssuance,
        WarrantIssuance,
        WarrantExercise,
        WarrantCancellation,
        IssuerAuthorizedSharesAdjustment,
        StockClassAuthorizedSharesAdjustment,
        StockPlanPoolAdjustment,
    ],
    Field(discriminator='object_type')
]
"""Any transaction in the log.

The 'object_type' field is the discriminator, so a raw record such as
``{"object_type": "TX_STOCK_ISSUANCE", ...}`` validates straight into a
StockIssuance.
"""

TRANSACTION_TYPES: Dict[str, type] = {
    model.model_fields['object_type'].default: model
    for model in (
        StockIssuance,
        StockCancellation,
        StockTransfer,
        EquityCompensationIssuance,
        EquityCompensationExercise,
        ConvertibleIssuance,
        WarrantIssuance,
        WarrantExercise,
        WarrantCancellation,
        IssuerAuthorizedSharesAdjustment,
        StockClassAuthorizedSharesAdjustment,
        StockPlanPoolAdjustment,
    )
}

_transaction_adapter = TypeAdapter(Transaction)


def parse_transaction(record: Dict[str, Any]) -> Transaction:
    """Build one typed transaction from a raw log record.

    Raises:
        UnsupportedTransactionError: If object_type is missing or unknown
        pydantic.ValidationError: If a known variant has malformed fields
    """
    object_type = record.get("object_type")
    if object_type not in TRANSACTION_TYPES:
        raise UnsupportedTransactionError(
            object_type,
            detail=f"record {record.get('id', '<no id>')}",
        )
    return _transaction_adapter.validate_python(record)


def parse_transactions(records: List[Dict[str, Any]]) -> List[Transaction]:
    """Build typed transactions from raw log records, preserving order.

    Example:
        >>> txs = parse_transactions([
        ...     {"object_type": "TX_STOCK_ISSUANCE", "id": "t1", "security_id": "s1",
        ...      "date": "2024-01-01", "stakeholder_id": "alice",
        ...      "stock_class_id": "common", "quantity": "1000"},
        ... ])
        >>> type(txs[0]).__name__
        'StockIssuance'
    """
    return [parse_transaction(record) for record in records]
