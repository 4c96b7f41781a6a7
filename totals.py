"""
Summations over payment and activity records.

Amounts are summed as integer cents so that the running totals kept by the
payment ledger and a full recomputation always agree exactly.
"""

import math
from typing import Any, Dict, Iterable, Mapping

from schemas import ACTIVITY_TYPES, PAYMENT_METHODS


def round_amount(value: float) -> float:
    """Round half up to 2 decimal places (x*100, round, /100)."""
    return math.floor(value * 100 + 0.5) / 100


def to_cents(amount: float) -> int:
    return int(math.floor(amount * 100 + 0.5))


def from_cents(cents: int) -> float:
    return cents / 100


def empty_totals() -> Dict[str, float]:
    return {method: 0.0 for method in PAYMENT_METHODS}


def compute_totals(payments: Iterable[Mapping[str, Any]]) -> Dict[str, float]:
    """Sum payment amounts per method, skipping records with an unknown method."""
    cents = {method: 0 for method in PAYMENT_METHODS}
    for payment in payments:
        method = payment.get("method")
        if method not in cents:
            continue
        cents[method] += to_cents(float(payment.get("amount") or 0))
    return {method: from_cents(value) for method, value in cents.items()}


def summarize_activity(records: Iterable[Mapping[str, Any]], key: str) -> Dict[Any, Dict[str, float]]:
    """Group activity records by `key` and sum amounts per activity type."""
    sums: Dict[Any, Dict[str, float]] = {}
    for record in records:
        kind = record.get("type")
        if kind not in ACTIVITY_TYPES:
            continue
        bucket = sums.setdefault(record.get(key), {t: 0.0 for t in ACTIVITY_TYPES})
        bucket[kind] += float(record.get("amount") or 0)
    return sums


def game_balance(coins_recharged: float, sums: Mapping[str, float]) -> float:
    # recharge + redeem - deposit, floored at 0, then minus freeplay, floored at 0
    total = coins_recharged + sums.get("redeem", 0) - sums.get("deposit", 0)
    total = max(0.0, total)
    return max(0.0, total - sums.get("freeplay", 0))
