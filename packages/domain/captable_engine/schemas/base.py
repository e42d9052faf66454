"""Base classes and type system for cap table domain models.

This module provides the foundational types, validators, and base classes
used throughout the cap table schema system.
"""

from decimal import Decimal
from typing import Annotated, Any, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

# =============================================================================
# Base Model
# =============================================================================

class DomainModel(BaseModel):
    """Base class for all domain models.

    Provides common configuration for all Pydantic models in the domain layer:
    - Validation on assignment for runtime safety
    - Support for Decimal and date types
    - Enum value serialization
    """

    model_config = ConfigDict(
        frozen=False,  # Derived state is updated in place during replay
        validate_assignment=True,
        use_enum_values=True,
        arbitrary_types_allowed=True,
    )


# =============================================================================
# Type Aliases - Numeric
# =============================================================================

ShareCount = Annotated[
    Decimal,
    Field(ge=0, description="Number of shares (non-negative)")
]

MoneyAmount = Annotated[
    Decimal,
    Field(ge=0, description="Currency amount (non-negative)")
]

Percentage = Annotated[
    Decimal,
    Field(ge=0, description="Percentage in points (100 = the whole)")
]

VoteCount = Annotated[
    Decimal,
    Field(ge=0, description="Votes (shares x votes per share)")
]


# =============================================================================
# ID Conventions
# =============================================================================
#
# Identifiers come from the upstream transaction log and are usually UUIDs,
# so unlike hand-built models they carry no pattern constraint.
#
#   StakeholderId  - stakeholder._id in the log
#   StockClassId   - stock class id
#   StockPlanId    - stock plan id
#   SecurityId     - one issuance, grant or warrant; cancellations, transfers
#                    and exercises point back at it via security_id_ref
#
# =============================================================================

StakeholderId = Annotated[str, Field(min_length=1, description="Stakeholder identifier")]

StockClassId = Annotated[str, Field(min_length=1, description="Stock class identifier")]

StockPlanId = Annotated[str, Field(min_length=1, description="Stock plan identifier")]

SecurityId = Annotated[str, Field(min_length=1, description="Security identifier")]


# =============================================================================
# Monetary Value
# =============================================================================

class Monetary(DomainModel):
    """Amount with currency, as carried on share prices and investments.

    Example:
        Monetary(amount=Decimal("1.00"), currency="USD")
    """

    amount: Decimal = Field(
        description="Monetary amount"
    )

    currency: str = Field(
        default="USD",
        description="ISO 4217 currency code"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        """Log records carry amounts as strings or numbers."""
        if isinstance(v, float):
            return Decimal(str(v))
        return v


def to_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Convert a loosely typed log value to Decimal.

    Args:
        value: String, number, Decimal, or a dict with an "amount" key
        default: Value returned when conversion is impossible or the
            result is not finite

    Returns:
        Decimal value or default

    Example:
        to_decimal("1000") -> Decimal("1000")
        to_decimal({"amount": "5000000", "currency": "USD"}) -> Decimal("5000000")
        to_decimal(None) -> None
        to_decimal("NaN") -> None
    """
    if isinstance(value, dict):
        value = value.get("amount")
    if value is None or value == "":
        return default
    if isinstance(value, float):
        value = str(value)
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (ArithmeticError, ValueError, TypeError):
        return default
    # NaN and Infinity are treated as missing
    return result if result.is_finite() else default
