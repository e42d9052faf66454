"""Id lookups for reference entities and earlier securities.

Both indexes return None for an unknown id. Callers treat None as "skip this
transaction's effect", never as a failure of the whole replay.
"""

from typing import Dict, Iterable, List, Optional, Type, TypeVar

from ..schemas import (
    CapTableTransaction,
    Stakeholder,
    StockClass,
    StockPlan,
)

T = TypeVar("T", bound=CapTableTransaction)


class ReferenceResolver:
    """Indexes stakeholders, stock classes and stock plans by id.

    Built once per replay from the caller's collections; never mutated.

    Example:
        resolver = ReferenceResolver(stakeholders, stock_classes, stock_plans)
        resolver.resolve_stock_class("common")  # -> StockClass or None
    """

    def __init__(
        self,
        stakeholders: Iterable[Stakeholder] = (),
        stock_classes: Iterable[StockClass] = (),
        stock_plans: Iterable[StockPlan] = (),
    ):
        self._stakeholders: Dict[str, Stakeholder] = {s.id: s for s in stakeholders}
        self._stock_classes: Dict[str, StockClass] = {c.id: c for c in stock_classes}
        self._stock_plans: Dict[str, StockPlan] = {p.id: p for p in stock_plans}

    def resolve_stakeholder(self, stakeholder_id: Optional[str]) -> Optional[Stakeholder]:
        if stakeholder_id is None:
            return None
        return self._stakeholders.get(stakeholder_id)

    def resolve_stock_class(self, stock_class_id: Optional[str]) -> Optional[StockClass]:
        if stock_class_id is None:
            return None
        return self._stock_classes.get(stock_class_id)

    def resolve_stock_plan(self, stock_plan_id: Optional[str]) -> Optional[StockPlan]:
        if stock_plan_id is None:
            return None
        return self._stock_plans.get(stock_plan_id)

    @property
    def stakeholders(self) -> List[Stakeholder]:
        return list(self._stakeholders.values())

    @property
    def stock_classes(self) -> List[StockClass]:
        return list(self._stock_classes.values())

    @property
    def stock_plans(self) -> List[StockPlan]:
        return list(self._stock_plans.values())


class SecurityIndex:
    """Maps security_id to the transaction that created it.

    Filled in log order while folding, so a reference to a security that
    only appears later in the log does not resolve.
    """

    def __init__(self):
        self._securities: Dict[str, CapTableTransaction] = {}

    def register(self, transaction: CapTableTransaction) -> None:
        if transaction.security_id:
            self._securities[transaction.security_id] = transaction

    def lookup(self, security_id: Optional[str], kind: Type[T]) -> Optional[T]:
        """Earlier transaction of the given kind with this security_id."""
        if security_id is None:
            return None
        found = self._securities.get(security_id)
        if isinstance(found, kind):
            return found
        return None

    def __contains__(self, security_id: str) -> bool:
        return security_id in self._securities
