"""Cap table engine schemas.

This package contains all Pydantic models for the engine:
- Base types and conventions
- Reference entities (stakeholders, stock classes, stock plans)
- Transactions (the append-only log)
- Normalized conversion and warrant terms
- Derived holder state and the aggregated view
- Dashboard summary and stock ledger

Usage:
    from captable_engine.schemas import (
        Stakeholder, StockClass, StockPlan,
        StockIssuance, StockCancellation, parse_transactions,
        AggregatedView, HolderState,
    )
"""

# Base types
from .base import (
    DomainModel,
    ShareCount,
    MoneyAmount,
    Percentage,
    VoteCount,
    StakeholderId,
    StockClassId,
    StockPlanId,
    SecurityId,
    Monetary,
    to_decimal,
)

# Reference entities
from .reference import (
    ConversionRatio,
    ConversionMechanism,
    StockClassConversionRight,
    StockClass,
    Stakeholder,
    StockPlan,
)

# Transactions
from .transactions import (
    CapTableTransaction,
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
    Transaction,
    TRANSACTION_TYPES,
    parse_transaction,
    parse_transactions,
)

# Terms
from .terms import (
    InterestRate,
    ConversionTerms,
    WarrantTerms,
)

# Holder state
from .holdings import (
    ClassHolding,
    VotingColumns,
    VotingRights,
    EquityGrant,
    PlanHoldings,
    ConvertibleRecord,
    ConvertibleHoldings,
    WarrantRecord,
    HolderState,
)

# Aggregated view
from .view import (
    ReplayStage,
    Totals,
    VotingTotals,
    OptionsPool,
    AggregatedView,
)

# Dashboard and ledger
from .dashboard import Valuation, DashboardSummary
from .ledger import LedgerEntry, StockClassTotals, StockLedger

__all__ = [
    # Base types
    "DomainModel",
    "ShareCount",
    "MoneyAmount",
    "Percentage",
    "VoteCount",
    "StakeholderId",
    "StockClassId",
    "StockPlanId",
    "SecurityId",
    "Monetary",
    "to_decimal",
    # Reference entities
    "ConversionRatio",
    "ConversionMechanism",
    "StockClassConversionRight",
    "StockClass",
    "Stakeholder",
    "StockPlan",
    # Transactions
    "CapTableTransaction",
    "StockIssuance",
    "StockCancellation",
    "StockTransfer",
    "EquityCompensationIssuance",
    "EquityCompensationExercise",
    "ConvertibleIssuance",
    "WarrantIssuance",
    "WarrantExercise",
    "WarrantCancellation",
    "IssuerAuthorizedSharesAdjustment",
    "StockClassAuthorizedSharesAdjustment",
    "StockPlanPoolAdjustment",
    "Transaction",
    "TRANSACTION_TYPES",
    "parse_transaction",
    "parse_transactions",
    # Terms
    "InterestRate",
    "ConversionTerms",
    "WarrantTerms",
    # Holder state
    "ClassHolding",
    "VotingColumns",
    "VotingRights",
    "EquityGrant",
    "PlanHoldings",
    "ConvertibleRecord",
    "ConvertibleHoldings",
    "WarrantRecord",
    "HolderState",
    # Aggregated view
    "ReplayStage",
    "Totals",
    "VotingTotals",
    "OptionsPool",
    "AggregatedView",
    # Dashboard and ledger
    "Valuation",
    "DashboardSummary",
    "LedgerEntry",
    "StockClassTotals",
    "StockLedger",
]
