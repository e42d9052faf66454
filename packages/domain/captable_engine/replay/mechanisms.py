"""Conversion-mechanism extraction.

Convertible and warrant transactions describe their economics in a list of
trigger records. Two shapes occur in logs for the same concept:

    {"conversion_mechanism": {...}}                          (older)
    {"conversion_right": {"conversion_mechanism": {...}}}    (current)

Both are read here, once, into the flat ConversionTerms / WarrantTerms
models. Absent or malformed fields fall back to None or empty defaults; the
extractor never raises on trigger data.
"""

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

from ..schemas import ConversionTerms, InterestRate, WarrantTerms, to_decimal


# =============================================================================
# Helpers
# =============================================================================

def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _amount(value: Any) -> Optional[Decimal]:
    """Decimal from a number, numeric string or monetary dict; bools ignored."""
    if isinstance(value, bool):
        return None
    return to_decimal(value)


def _first_amount(mechanism: Dict[str, Any], *keys: str) -> Optional[Decimal]:
    for key in keys:
        amount = _amount(mechanism.get(key))
        if amount is not None:
            return amount
    return None


def _to_date(value: Any) -> Optional[dt.date]:
    """Date from a date, datetime, or ISO string (time part ignored)."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str) and len(value) >= 10:
        try:
            return dt.date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _mechanisms(trigger: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    """Yield every conversion mechanism a trigger carries, older shape first."""
    direct = _as_dict(trigger.get("conversion_mechanism"))
    if direct:
        yield direct
    nested = _as_dict(_as_dict(trigger.get("conversion_right")).get("conversion_mechanism"))
    if nested:
        yield nested


def _target_class_id(trigger: Dict[str, Any]) -> Optional[str]:
    right = _as_dict(trigger.get("conversion_right"))
    return right.get("converts_to_stock_class_id") or trigger.get("converts_to_stock_class_id")


def _interest_method(mechanism: Dict[str, Any]) -> str:
    parts = [
        mechanism.get(key)
        for key in ("day_count_convention", "interest_accrual_period", "compounding_type")
        if mechanism.get(key)
    ]
    return ", ".join(parts) or "Simple"


def _interest_schedule(mechanism: Dict[str, Any]) -> List[InterestRate]:
    schedule = []
    for entry in mechanism.get("interest_rates") or []:
        entry = _as_dict(entry)
        rate = _amount(entry.get("rate"))
        if rate is None:
            continue
        schedule.append(InterestRate(
            rate=rate,
            accrual_start_date=_to_date(entry.get("accrual_start_date")),
            accrual_end_date=_to_date(entry.get("accrual_end_date")),
        ))
    return schedule


DISCOUNT_MECHANISMS = ("SAFE_CONVERSION", "DISCOUNT_CONVERSION")


# =============================================================================
# Convertibles
# =============================================================================

def extract_conversion_terms(triggers: Optional[List[Dict[str, Any]]]) -> ConversionTerms:
    """Flatten convertible conversion triggers into ConversionTerms.

    Every trigger is scanned and later triggers overwrite earlier ones field
    by field (last write wins). Within one trigger the current shape is read
    after the older one, so it wins when both are present.

    Args:
        triggers: Raw ``conversion_triggers`` from a ConvertibleIssuance

    Returns:
        ConversionTerms with whatever the triggers specify

    Example:
        >>> terms = extract_conversion_terms([{
        ...     "type": "ELECTIVE_AT_WILL",
        ...     "conversion_right": {"conversion_mechanism": {
        ...         "type": "SAFE_CONVERSION",
        ...         "conversion_valuation_cap": {"amount": "10000000", "currency": "USD"},
        ...         "discount": "0.2",
        ...     }},
        ... }])
        >>> terms.valuation_cap, terms.discount
        (Decimal('10000000'), Decimal('0.2'))
    """
    fields: Dict[str, Any] = {}

    for trigger in triggers or []:
        trigger = _as_dict(trigger)

        if trigger.get("type") == "AUTOMATIC_ON_DATE":
            maturity = _to_date(trigger.get("trigger_date"))
            if maturity is not None:
                fields["maturity_date"] = maturity

        target = _target_class_id(trigger)
        if target:
            fields["converts_to_stock_class_id"] = target

        for mechanism in _mechanisms(trigger):
            mechanism_type = mechanism.get("type")

            cap = _first_amount(mechanism, "conversion_valuation_cap", "valuation_cap")
            if cap is not None:
                fields["valuation_cap"] = cap

            if mechanism_type in DISCOUNT_MECHANISMS:
                discount = _first_amount(mechanism, "discount", "conversion_discount", "discount_percentage")
                if discount is not None:
                    fields["discount"] = discount

            if mechanism.get("conversion_timing"):
                fields["conversion_timing"] = mechanism["conversion_timing"]

            if isinstance(mechanism.get("conversion_mfn"), bool):
                fields["mfn"] = mechanism["conversion_mfn"]

            if mechanism_type == "CONVERTIBLE_NOTE_CONVERSION" and mechanism.get("interest_rates"):
                fields["interest_rate_schedule"] = _interest_schedule(mechanism)
                fields["interest_calculation_method"] = _interest_method(mechanism)

    return ConversionTerms(**fields)


def format_conversion_triggers(
    triggers: Optional[List[Dict[str, Any]]],
    terms: ConversionTerms,
) -> List[Dict[str, Any]]:
    """Display rows for a convertible's triggers."""
    rows = []
    for trigger in triggers or []:
        trigger = _as_dict(trigger)
        right = _as_dict(trigger.get("conversion_right"))
        rows.append({
            "id": trigger.get("trigger_id") or "",
            "nickname": trigger.get("nickname") or "",
            "type": trigger.get("type") or "",
            "description": trigger.get("trigger_description") or "",
            "condition": trigger.get("trigger_condition") or "",
            "date": _to_date(trigger.get("trigger_date")),
            "mechanism": _as_dict(right.get("conversion_mechanism")).get("type") or "",
            "timing": terms.conversion_timing,
            "mfn": terms.mfn,
            "converts_to_future": bool(right.get("converts_to_future_round")),
        })
    return rows


# =============================================================================
# Warrants
# =============================================================================

def extract_warrant_terms(
    triggers: Optional[List[Dict[str, Any]]],
    quantity: Optional[Decimal] = None,
) -> WarrantTerms:
    """Flatten a warrant's first exercise trigger into WarrantTerms.

    Share count resolution:
        1. FIXED_AMOUNT_CONVERSION: ``converts_to_quantity`` on the mechanism
        2. otherwise, or when that is zero: the warrant's own ``quantity``
        3. still zero or missing: None (the warrant cannot be accounted)

    Args:
        triggers: Raw ``exercise_triggers`` from a WarrantIssuance
        quantity: The transaction's ``quantity`` field

    Returns:
        WarrantTerms
    """
    fields: Dict[str, Any] = {}
    share_count: Optional[Decimal] = None

    first = _as_dict(triggers[0]) if triggers else {}
    if first:
        fields["trigger_type"] = first.get("type")
        fields["trigger_description"] = first.get("trigger_description") or first.get("nickname")
        fields["trigger_condition"] = first.get("trigger_condition")
        fields["converts_to_stock_class_id"] = _target_class_id(first)

        for mechanism in _mechanisms(first):
            mechanism_type = mechanism.get("type")
            if mechanism_type == "FIXED_AMOUNT_CONVERSION":
                fields["mechanism_type"] = mechanism_type
                share_count = _amount(mechanism.get("converts_to_quantity"))
            elif mechanism_type == "VALUATION_BASED_CONVERSION":
                fields["mechanism_type"] = mechanism_type
                fields["valuation_amount"] = _amount(mechanism.get("valuation_amount"))
            elif mechanism_type == "PPS_BASED_CONVERSION":
                fields["mechanism_type"] = mechanism_type
                if mechanism.get("discount"):
                    fields["has_discount"] = True
                    fields["discount"] = _amount(mechanism.get("discount_amount"))

    if not share_count:
        share_count = quantity
    if not share_count or share_count < 0:
        share_count = None

    return WarrantTerms(share_count=share_count, **fields)


def names_target_class(triggers: Optional[List[Dict[str, Any]]]) -> bool:
    """True when any trigger names the stock class it converts into."""
    return any(_target_class_id(_as_dict(trigger)) for trigger in triggers or [])
