"""Optional reference-validation pass, run before replay.

Replay itself tolerates gaps: a transaction whose references do not resolve
is skipped. Callers that want to know about those gaps run
``check_references`` first. It returns one ReferenceCheck per transaction;
nothing is raised and nothing is mutated.

Example:
    checks = check_references(transactions, stakeholders, stock_classes, stock_plans)
    failures = [c for c in checks if not c.ok]
"""

from typing import Iterable, List, Optional, Sequence, Type

from pydantic import Field

from ..schemas import (
    CapTableTransaction,
    ConvertibleIssuance,
    DomainModel,
    EquityCompensationExercise,
    EquityCompensationIssuance,
    Stakeholder,
    StockCancellation,
    StockClass,
    StockClassAuthorizedSharesAdjustment,
    StockIssuance,
    StockPlan,
    StockPlanPoolAdjustment,
    StockTransfer,
    WarrantCancellation,
    WarrantExercise,
    WarrantIssuance,
)
from .resolver import ReferenceResolver, SecurityIndex


class ReferenceCheck(DomainModel):
    """Outcome of checking one transaction's references."""

    transaction_id: str
    object_type: str
    errors: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


FAMILY_NAMES = {
    StockIssuance: "stock issuance",
    EquityCompensationIssuance: "equity compensation issuance",
    WarrantIssuance: "warrant issuance",
}

# Variant -> issuance kind its security_id_ref must point at
BACK_REFERENCES = {
    StockCancellation: StockIssuance,
    StockTransfer: StockIssuance,
    EquityCompensationExercise: EquityCompensationIssuance,
    WarrantExercise: WarrantIssuance,
    WarrantCancellation: WarrantIssuance,
}


def _check_entity(errors: List[str], label: str, entity_id: Optional[str], found: object) -> None:
    if entity_id is not None and found is None:
        errors.append(f"unknown {label} '{entity_id}'")


def _check_back_reference(
    errors: List[str],
    securities: SecurityIndex,
    ref: str,
    kind: Type[CapTableTransaction],
) -> None:
    if securities.lookup(ref, kind) is None:
        errors.append(
            f"security_id_ref '{ref}' does not match an earlier {FAMILY_NAMES[kind]}"
        )


def check_transaction(
    tx: CapTableTransaction,
    resolver: ReferenceResolver,
    securities: SecurityIndex,
) -> ReferenceCheck:
    """Check one transaction against the references seen so far."""
    errors: List[str] = []

    stakeholder_id = getattr(tx, "stakeholder_id", None)
    if isinstance(tx, StockTransfer):
        _check_entity(errors, "stakeholder", tx.from_stakeholder_id,
                      resolver.resolve_stakeholder(tx.from_stakeholder_id))
        _check_entity(errors, "stakeholder", tx.to_stakeholder_id,
                      resolver.resolve_stakeholder(tx.to_stakeholder_id))
    elif stakeholder_id is not None:
        _check_entity(errors, "stakeholder", stakeholder_id,
                      resolver.resolve_stakeholder(stakeholder_id))

    if isinstance(tx, (StockIssuance, EquityCompensationIssuance, WarrantIssuance,
                       StockClassAuthorizedSharesAdjustment)):
        _check_entity(errors, "stock class", tx.stock_class_id,
                      resolver.resolve_stock_class(tx.stock_class_id))

    if isinstance(tx, (EquityCompensationIssuance, StockPlanPoolAdjustment)):
        _check_entity(errors, "stock plan", tx.stock_plan_id,
                      resolver.resolve_stock_plan(tx.stock_plan_id))

    kind = BACK_REFERENCES.get(type(tx))
    if kind is not None:
        _check_back_reference(errors, securities, tx.security_id_ref, kind)

    return ReferenceCheck(
        transaction_id=tx.id,
        object_type=tx.object_type,
        errors=errors,
    )


def check_references(
    transactions: Sequence[CapTableTransaction],
    stakeholders: Iterable[Stakeholder],
    stock_classes: Iterable[StockClass],
    stock_plans: Iterable[StockPlan],
) -> List[ReferenceCheck]:
    """Check every transaction's references, in log order.

    A ``security_id_ref`` only resolves against issuances that appear
    earlier in the log, so an out-of-order log is reported here rather than
    silently skipped during replay.

    Returns:
        One ReferenceCheck per transaction, in the same order
    """
    resolver = ReferenceResolver(stakeholders, stock_classes, stock_plans)
    securities = SecurityIndex()
    checks = []
    for tx in transactions:
        checks.append(check_transaction(tx, resolver, securities))
        if isinstance(tx, (StockIssuance, EquityCompensationIssuance, WarrantIssuance,
                           ConvertibleIssuance)):
            securities.register(tx)
    return checks
