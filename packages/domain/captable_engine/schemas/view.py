"""The aggregated view a replay returns.

An AggregatedView moves through three stages:

    EMPTY       nothing replayed yet
    REPLAYING   transactions folded in, percentages not yet computed
    NORMALIZED  the normalization pass has filled in every percentage

Percentages read before NORMALIZED are 0 by definition.
"""

from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
from pydantic import Field

from .base import DomainModel, ShareCount, VoteCount
from .holdings import HolderState


# =============================================================================
# Replay Stage
# =============================================================================

class ReplayStage(str, Enum):
    """Lifecycle of a view during one replay."""

    EMPTY = "EMPTY"
    REPLAYING = "REPLAYING"
    NORMALIZED = "NORMALIZED"


# =============================================================================
# Totals
# =============================================================================

class Totals(DomainModel):
    """Global denominators for the holder percentages."""

    outstanding: ShareCount = Decimal("0")
    as_converted: ShareCount = Decimal("0")
    fully_diluted: ShareCount = Decimal("0")
    voting_rights: VoteCount = Decimal("0")


class VotingTotals(DomainModel):
    """Voting power partitioned the way the voting-rights table shows it.

    Example:
        total=12_000, common=10_000, preferred=2_000,
        by_class={"Common": 10_000, "Series A Preferred": 2_000}
    """

    total: VoteCount = Decimal("0")
    common: VoteCount = Decimal("0")
    preferred: VoteCount = Decimal("0")
    by_class: Dict[str, VoteCount] = Field(default_factory=dict)


class OptionsPool(DomainModel):
    """Reserved versus granted equity compensation.

    unallocated = max(0, total_authorized - total_issued)
    """

    total_authorized: ShareCount = Decimal("0")
    total_issued: ShareCount = Decimal("0")
    unallocated: ShareCount = Decimal("0")


# =============================================================================
# Aggregated View
# =============================================================================

class AggregatedView(DomainModel):
    """Holders, totals and options pool derived from one replay.

    A plain data structure: formatting for JSON, DataFrames or Excel happens
    in the blocks and the workbook renderer.
    """

    holders: Dict[str, HolderState] = Field(default_factory=dict)
    totals: Totals = Field(default_factory=Totals)
    voting_totals: VotingTotals = Field(default_factory=VotingTotals)
    options_pool: OptionsPool = Field(default_factory=OptionsPool)

    stage: ReplayStage = ReplayStage.EMPTY

    processed_count: int = Field(
        default=0,
        ge=0,
        description="Transactions that changed holder state"
    )

    skipped_count: int = Field(
        default=0,
        ge=0,
        description="Transactions skipped for a missing reference"
    )

    @property
    def is_normalized(self) -> bool:
        return self.stage == ReplayStage.NORMALIZED

    def get_holder(self, stakeholder_id: str) -> Optional[HolderState]:
        return self.holders.get(stakeholder_id)

    def sorted_holders(self) -> List[HolderState]:
        """Holders ordered by fully diluted shares, largest first."""
        return sorted(
            self.holders.values(),
            key=lambda h: h.fully_diluted,
            reverse=True,
        )

    def class_names(self) -> List[str]:
        """Class names that carry votes, in first-seen order."""
        return [name for name, votes in self.voting_totals.by_class.items() if votes > 0]
