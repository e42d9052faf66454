"""Replay: fold an ordered transaction log into an AggregatedView.

    transactions -> processors (one per security family) -> holders
                 -> normalization pass -> AggregatedView (NORMALIZED)

The log must already be in causal order: an issuance precedes anything that
references its security_id. The engine never re-sorts. Each call builds its
own state, so concurrent replays for different issuers are independent.
"""

from typing import Iterable, Optional, Sequence

from ..config import EngineSettings, get_settings
from ..exceptions import EmptyTransactionLogError, UnresolvedReferenceError
from ..logging_config import LogContext, get_logger
from ..schemas import (
    AggregatedView,
    CapTableTransaction,
    Stakeholder,
    StockClass,
    StockPlan,
)
from .normalization import compute_options_pool, normalize
from .processors import PROCESSORS
from .resolver import ReferenceResolver
from .state import ReplayState
from .validation import check_references

logger = get_logger(__name__)


def replay(
    transactions: Sequence[CapTableTransaction],
    stakeholders: Iterable[Stakeholder],
    stock_classes: Iterable[StockClass],
    stock_plans: Iterable[StockPlan],
    settings: Optional[EngineSettings] = None,
    issuer_id: Optional[str] = None,
) -> AggregatedView:
    """Replay an issuer's transaction log.

    Missing references and over-cancellations are recovered locally (skipped
    or clamped, and logged); nothing raises from inside a single
    transaction. With ``settings.strict_references`` the log is validated
    first and the whole batch is rejected instead.

    Args:
        transactions: Ordered transaction log
        stakeholders: Issuer's stakeholders
        stock_classes: Issuer's stock classes
        stock_plans: Issuer's stock plans
        settings: Overrides the environment settings for this call
        issuer_id: Bound into log context for the duration of the replay

    Returns:
        Normalized AggregatedView

    Raises:
        EmptyTransactionLogError: Strict mode and no transactions
        UnresolvedReferenceError: Strict mode and some reference fails

    Example:
        >>> view = replay(transactions, stakeholders, stock_classes, stock_plans)
        >>> view.holders["alice"].outstanding_percentage
        Decimal('100')
    """
    settings = settings or get_settings()
    transactions = list(transactions)
    stakeholders = list(stakeholders)
    stock_classes = list(stock_classes)
    stock_plans = list(stock_plans)

    with LogContext(issuer_id=issuer_id):
        if settings.strict_references:
            if not transactions:
                raise EmptyTransactionLogError(issuer_id)
            checks = check_references(transactions, stakeholders, stock_classes, stock_plans)
            failures = [check for check in checks if not check.ok]
            if failures:
                raise UnresolvedReferenceError(failures)

        resolver = ReferenceResolver(stakeholders, stock_classes, stock_plans)
        state = ReplayState(resolver, settings)
        if transactions:
            state.begin()

        for tx in transactions:
            processor = PROCESSORS.get(tx.object_type)
            if processor is None:
                # Adjustments only feed the options pool and dashboard
                state.applied(tx)
                continue
            state = processor(state, tx)

        view = state.to_view()
        view.options_pool = compute_options_pool(transactions, stock_plans)
        normalize(view)

        logger.info(
            "replay_complete",
            processed=view.processed_count,
            skipped=view.skipped_count,
            holders=len(view.holders),
        )
        return view
