"""Mutable state owned by a single replay.

A ReplayState lives for exactly one call to ``replay``. Holder state is
keyed by stakeholder id and updated in place; nothing here is shared with
another replay or kept after it returns.
"""

from decimal import Decimal
from typing import Dict, Optional

from ..config import EngineSettings
from ..logging_config import get_logger
from ..schemas import (
    AggregatedView,
    CapTableTransaction,
    ClassHolding,
    HolderState,
    ReplayStage,
    Stakeholder,
)
from .resolver import ReferenceResolver, SecurityIndex

logger = get_logger(__name__)


class ReplayState:
    """Holders, security index and counters for one replay.

    Attributes:
        resolver: Reference lookups for this replay
        securities: security_id -> creating transaction, filled in log order
        holders: stakeholder_id -> HolderState
        settings: Engine settings in effect
        stage: EMPTY until the first transaction, then REPLAYING
    """

    def __init__(self, resolver: ReferenceResolver, settings: EngineSettings):
        self.resolver = resolver
        self.settings = settings
        self.securities = SecurityIndex()
        self.holders: Dict[str, HolderState] = {}
        self.stage = ReplayStage.EMPTY
        self.processed = 0
        self.skipped = 0

    # -------------------------------------------------------------------------
    # Holders
    # -------------------------------------------------------------------------

    def holder_for(self, stakeholder: Stakeholder) -> HolderState:
        """Get the stakeholder's state, creating an empty one on first use."""
        holder = self.holders.get(stakeholder.id)
        if holder is None:
            holder = HolderState(
                id=stakeholder.id,
                name=stakeholder.legal_name,
                relationship=stakeholder.relationship,
            )
            self.holders[stakeholder.id] = holder
        return holder

    def existing_holder(self, stakeholder_id: Optional[str]) -> Optional[HolderState]:
        if stakeholder_id is None:
            return None
        return self.holders.get(stakeholder_id)

    # -------------------------------------------------------------------------
    # Share arithmetic
    # -------------------------------------------------------------------------

    @staticmethod
    def add_fully_diluted(holder: HolderState, holding: ClassHolding, quantity: Decimal) -> None:
        """Grants and warrants: fully diluted only."""
        holding.fully_diluted += quantity
        holder.fully_diluted += quantity

    @staticmethod
    def remove_fully_diluted(holder: HolderState, holding: ClassHolding, quantity: Decimal) -> Decimal:
        """Retire grant or warrant shares, floored at zero.

        Returns:
            The quantity actually removed
        """
        removed = min(quantity, holding.fully_diluted)
        holding.fully_diluted -= removed
        holder.fully_diluted = max(Decimal("0"), holder.fully_diluted - removed)
        return removed

    # -------------------------------------------------------------------------
    # Bookkeeping
    # -------------------------------------------------------------------------

    def begin(self) -> None:
        self.stage = ReplayStage.REPLAYING

    def applied(self, transaction: CapTableTransaction) -> None:
        self.processed += 1

    def skip(self, transaction: CapTableTransaction, missing: str, ref: Optional[str] = None) -> None:
        """Record a transaction that had no effect on holder state."""
        self.skipped += 1
        logger.debug(
            "transaction_skipped",
            transaction_id=transaction.id,
            object_type=getattr(transaction, "object_type", None),
            missing=missing,
            ref=ref,
        )

    def to_view(self) -> AggregatedView:
        """Hand the folded holders over as an un-normalized view."""
        return AggregatedView(
            holders=self.holders,
            stage=self.stage,
            processed_count=self.processed,
            skipped_count=self.skipped,
        )
