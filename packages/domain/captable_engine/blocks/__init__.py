"""Computation blocks for cap table exports.

Blocks turn replay results into pandas DataFrames for the workbook renderer
or any other consumer.

Architecture:
    Transaction log -> ReplayBlock -> AggregatedView -> StakeholderViewBlock
                    -> DashboardBlock / StockLedgerBlock -> DataFrames

Available blocks:
- ReplayBlock: Replays the log into a normalized AggregatedView
- StakeholderViewBlock: Holdings, classes, voting rights, convertibles, warrants
- DashboardBlock: Issuer dashboard scalars and ownership by relationship
- StockLedgerBlock: Stock ledger entries and per-class totals

Usage:
    from captable_engine.blocks import BlockContext, BlockExecutor, default_blocks

    context = BlockContext.from_inputs(
        transactions=transactions,
        stakeholders=stakeholders,
        stock_classes=stock_classes,
        stock_plans=stock_plans,
    )
    BlockExecutor(default_blocks()).execute(context)
    holdings_df = context.get("stakeholder_holdings")
"""

from typing import List

from .base import Block, BlockContext, BlockExecutor, CircularDependencyError, topological_sort
from .dashboard import DashboardBlock
from .ledger import StockLedgerBlock
from .replay import ReplayBlock
from .stakeholder_view import StakeholderViewBlock


def default_blocks() -> List[Block]:
    """Every block the workbook export needs."""
    return [ReplayBlock(), StakeholderViewBlock(), DashboardBlock(), StockLedgerBlock()]


__all__ = [
    "Block",
    "BlockContext",
    "BlockExecutor",
    "CircularDependencyError",
    "topological_sort",
    "default_blocks",
    "ReplayBlock",
    "StakeholderViewBlock",
    "DashboardBlock",
    "StockLedgerBlock",
]
