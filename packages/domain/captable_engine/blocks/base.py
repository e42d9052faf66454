"""Block plumbing: context, base class, dependency ordering, executor.

A block reads named inputs from a BlockContext and writes named outputs back.
The executor orders blocks so that every producer runs before its consumers:

    transactions, stakeholders, ...  ->  ReplayBlock  ->  aggregated_view
    aggregated_view                  ->  StakeholderViewBlock  ->  DataFrames
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..exceptions import CapTableEngineError
from ..logging_config import get_logger

logger = get_logger(__name__)


# =============================================================================
# Block Context
# =============================================================================

@dataclass
class BlockContext:
    """Named values shared between blocks.

    Example:
        context = BlockContext()
        context.set("transactions", transactions)
        context.set("stakeholders", stakeholders)
        ReplayBlock().execute(context)
        view = context.get("aggregated_view")
    """

    _data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> Any:
        """Get a value.

        Raises:
            KeyError: If nothing was stored under ``key``
        """
        if key not in self._data:
            raise KeyError(f"Key '{key}' not found in context. Available keys: {self.keys()}")
        return self._data[key]

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def has(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> List[str]:
        return list(self._data.keys())

    @classmethod
    def from_inputs(cls, **values: Any) -> "BlockContext":
        """Build a context pre-filled with the given keys."""
        context = cls()
        for key, value in values.items():
            context.set(key, value)
        return context


# =============================================================================
# Block Base Class
# =============================================================================

class Block(ABC):
    """A computation step with declared inputs and outputs.

    Subclasses list the context keys they read and write, and implement
    ``execute``. Declaring keys lets the executor order blocks without the
    caller knowing the graph.
    """

    @abstractmethod
    def inputs(self) -> List[str]:
        """Context keys this block reads."""

    @abstractmethod
    def outputs(self) -> List[str]:
        """Context keys this block writes."""

    @abstractmethod
    def execute(self, context: BlockContext) -> None:
        """Read inputs from ``context``, compute, write outputs back."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(inputs={self.inputs()}, outputs={self.outputs()})"


# =============================================================================
# Dependency Resolution
# =============================================================================

class CircularDependencyError(CapTableEngineError):
    """Blocks depend on each other in a cycle."""

    def __init__(self, blocks: List[Block]):
        super().__init__(
            f"Circular dependency detected among blocks: {blocks}",
            error_code="CIRCULAR_BLOCK_DEPENDENCY",
            context={"blocks": [repr(block) for block in blocks]},
        )


def topological_sort(blocks: List[Block]) -> List[Block]:
    """Order blocks so producers run before consumers (Kahn's algorithm).

    Inputs that no block produces must be supplied by the initial context.
    Blocks with no ordering constraint between them keep their given order.

    Raises:
        ValueError: Two blocks declare the same output
        CircularDependencyError: The blocks form a cycle

    Example:
        topological_sort([StakeholderViewBlock(), ReplayBlock()])
        -> [ReplayBlock, StakeholderViewBlock]
    """
    producers: Dict[str, Block] = {}
    for block in blocks:
        for key in block.outputs():
            if key in producers:
                raise ValueError(
                    f"Multiple blocks produce '{key}': {producers[key]} and {block}"
                )
            producers[key] = block

    in_degree: Dict[Block, int] = {block: 0 for block in blocks}
    consumers: Dict[Block, List[Block]] = {block: [] for block in blocks}
    for block in blocks:
        for key in block.inputs():
            producer = producers.get(key)
            if producer is not None:
                consumers[producer].append(block)
                in_degree[block] += 1

    ready = [block for block in blocks if in_degree[block] == 0]
    ordered: List[Block] = []
    while ready:
        current = ready.pop(0)
        ordered.append(current)
        for consumer in consumers[current]:
            in_degree[consumer] -= 1
            if in_degree[consumer] == 0:
                ready.append(consumer)

    if len(ordered) != len(blocks):
        raise CircularDependencyError([block for block in blocks if in_degree[block] > 0])
    return ordered


# =============================================================================
# Block Executor
# =============================================================================

class BlockExecutor:
    """Runs blocks in dependency order against one context.

    Example:
        context = BlockContext.from_inputs(
            transactions=transactions,
            stakeholders=stakeholders,
            stock_classes=stock_classes,
            stock_plans=stock_plans,
        )
        BlockExecutor([StakeholderViewBlock(), ReplayBlock()]).execute(context)
        holdings_df = context.get("stakeholder_holdings")
    """

    def __init__(self, blocks: List[Block]):
        self.blocks = blocks
        self._sorted_blocks: Optional[List[Block]] = None

    def execute(self, context: BlockContext) -> BlockContext:
        """Execute every block and return the same context.

        Raises:
            CircularDependencyError: The blocks form a cycle
            KeyError: A block's input is missing from the context
            ValueError: A block did not write a declared output
        """
        if self._sorted_blocks is None:
            self._sorted_blocks = topological_sort(self.blocks)

        for block in self._sorted_blocks:
            self._validate_inputs(block, context)
            block.execute(context)
            self._validate_outputs(block, context)
            logger.debug("block_executed", block=block.__class__.__name__)

        return context

    def _validate_inputs(self, block: Block, context: BlockContext) -> None:
        for key in block.inputs():
            if not context.has(key):
                raise KeyError(
                    f"Block {block} requires input '{key}' but it's not in context. "
                    f"Available keys: {context.keys()}"
                )

    def _validate_outputs(self, block: Block, context: BlockContext) -> None:
        for key in block.outputs():
            if not context.has(key):
                raise ValueError(
                    f"Block {block} declared output '{key}' but didn't write it to context"
                )
