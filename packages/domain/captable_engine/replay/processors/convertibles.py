"""Convertible processor: SAFEs, notes and other convertibles.

Convertibles never touch outstanding, fully diluted or voting. Each issuance
becomes a descriptive ConvertibleRecord in the holder's ``convertibles``
bucket for its type.
"""

from typing import Any, Dict, List

from ...schemas import ConvertibleIssuance, ConvertibleRecord, HolderState
from ..mechanisms import extract_conversion_terms, format_conversion_triggers
from ..state import ReplayState

SIDE_LETTER_MARKERS = ("side letter", "sideletter")


def format_exemptions(exemptions: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    return [
        {
            "description": exemption.get("description") or "",
            "jurisdiction": exemption.get("jurisdiction") or "",
        }
        for exemption in exemptions
        if isinstance(exemption, dict)
    ]


def has_side_letters(comments: List[str]) -> bool:
    return any(
        marker in comment.lower()
        for comment in comments
        for marker in SIDE_LETTER_MARKERS
    )


def add_convertible(holder: HolderState, record: ConvertibleRecord) -> None:
    """File a record under safes, notes or other by its type."""
    if record.convertible_type == "SAFE":
        holder.convertibles.safes.append(record)
    elif record.convertible_type == "NOTE":
        holder.convertibles.notes.append(record)
    else:
        holder.convertibles.other.append(record)


def process_convertible_issuance(state: ReplayState, tx: ConvertibleIssuance) -> ReplayState:
    stakeholder = state.resolver.resolve_stakeholder(tx.stakeholder_id)
    if stakeholder is None:
        state.skip(tx, "stakeholder", tx.stakeholder_id)
        return state

    terms = extract_conversion_terms(tx.conversion_triggers)
    record = ConvertibleRecord(
        id=tx.id,
        custom_id=tx.custom_id or tx.id[:8],
        convertible_type=tx.convertible_type,
        amount=tx.investment_amount.amount,
        currency=tx.investment_amount.currency,
        date=tx.date,
        board_approval_date=tx.board_approval_date,
        valuation_cap=terms.valuation_cap,
        discount=terms.discount,
        valuation_method=terms.conversion_timing or "POST_MONEY",
        mfn=terms.mfn,
        interest_rates=terms.interest_rate_schedule,
        maturity_date=terms.maturity_date,
        interest_calculation_method=terms.interest_calculation_method,
        consideration_text=tx.consideration_text or "",
        pro_rata=tx.pro_rata,
        seniority=tx.seniority,
        exemptions=format_exemptions(tx.security_law_exemptions),
        has_side_letters=has_side_letters(tx.comments),
        comments=tx.comments,
        conversion_triggers=format_conversion_triggers(tx.conversion_triggers, terms),
    )
    add_convertible(state.holder_for(stakeholder), record)

    state.securities.register(tx)
    state.applied(tx)
    return state
