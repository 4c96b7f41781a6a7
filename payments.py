"""
Payment ledger

Payments live in the "payment" collection. Running per-method totals are kept
as integer cents in a single "totals" document and adjusted with $inc on every
write; recalc_totals() rebuilds them from the payments themselves.
"""

from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from database import (
    create_document,
    delete_document,
    delete_documents,
    find_document,
    get_collection,
    get_documents,
    update_document,
)
from errors import InvalidAmount, InvalidMethod, NotFoundError
from schemas import PAYMENT_METHODS, Payment
from totals import compute_totals, from_cents, round_amount, to_cents
from utils import new_id, normalize_date, parse_number

COLLECTION = "payment"
TOTALS_COLLECTION = "totals"
TOTALS_ID = "totals"

# keeps cents well inside int64 for the $inc on the totals document
MAX_AMOUNT = 1_000_000_000


def validate_amount(value: Any) -> float:
    amount = parse_number(value)
    if amount is None or amount <= 0 or amount > MAX_AMOUNT:
        raise InvalidAmount()
    amount = round_amount(amount)
    if amount <= 0:
        raise InvalidAmount()
    return amount


def validate_method(value: Any) -> str:
    if value not in PAYMENT_METHODS:
        raise InvalidMethod()
    return value


def _bucket(method: str) -> str:
    return f"{method}_cents"


def get_totals() -> Dict[str, float]:
    doc = find_document(TOTALS_COLLECTION, {"_id": TOTALS_ID}) or {}
    return {method: from_cents(int(doc.get(_bucket(method), 0))) for method in PAYMENT_METHODS}


def _adjust_totals(deltas: Dict[str, int]) -> Dict[str, float]:
    inc = {_bucket(method): cents for method, cents in deltas.items() if method in PAYMENT_METHODS and cents}
    if inc:
        get_collection(TOTALS_COLLECTION).update_one({"_id": TOTALS_ID}, {"$inc": inc}, upsert=True)
    return get_totals()


def _store_totals(totals: Dict[str, float]) -> Dict[str, float]:
    doc = {_bucket(method): to_cents(totals.get(method, 0)) for method in PAYMENT_METHODS}
    get_collection(TOTALS_COLLECTION).replace_one({"_id": TOTALS_ID}, doc, upsert=True)
    return get_totals()


def _get_or_404(payment_id: str) -> dict:
    doc = find_document(COLLECTION, {"id": payment_id})
    if doc is None:
        raise NotFoundError("Payment not found")
    return doc


def list_payments(date: Optional[str] = None) -> List[dict]:
    filter_dict = {"date": date} if date else {}
    return get_documents(COLLECTION, filter_dict, sort=[("_id", 1)])


def create_payment(amount: Any, method: Any, note: Optional[str] = None, date: Any = None) -> Tuple[dict, Dict[str, float]]:
    amount = validate_amount(amount)
    method = validate_method(method)

    payment = Payment(
        id=new_id(),
        amount=amount,
        method=method,
        note=note or None,
        date=normalize_date(date),
    )
    create_document(COLLECTION, payment)
    totals = _adjust_totals({method: to_cents(amount)})

    logger.info("Added payment {} of {} via {}", payment.id, amount, method)
    return find_document(COLLECTION, {"id": payment.id}), totals


def update_payment(payment_id: str, changes: Dict[str, Any]) -> Tuple[dict, Dict[str, float]]:
    """Apply the supplied fields to a payment.

    `changes` holds only the keys the caller sent. None for amount, method or
    date means "keep"; for note, any falsy value clears it.
    """
    old = _get_or_404(payment_id)

    new_values: Dict[str, Any] = {}
    if changes.get("amount") is not None:
        new_values["amount"] = validate_amount(changes["amount"])
    if changes.get("method") is not None:
        new_values["method"] = validate_method(changes["method"])
    if changes.get("date") is not None:
        new_values["date"] = normalize_date(changes["date"])
    if "note" in changes:
        new_values["note"] = changes["note"] or None

    updated = update_document(COLLECTION, {"id": payment_id}, new_values)
    if updated is None:
        raise NotFoundError("Payment not found")

    deltas: Dict[str, int] = {}
    old_method = old.get("method")
    deltas[old_method] = deltas.get(old_method, 0) - to_cents(float(old.get("amount") or 0))
    new_method = updated["method"]
    deltas[new_method] = deltas.get(new_method, 0) + to_cents(float(updated["amount"]))
    totals = _adjust_totals(deltas)

    logger.info("Updated payment {}", payment_id)
    return updated, totals


def delete_payment(payment_id: str) -> Tuple[dict, Dict[str, float]]:
    removed = delete_document(COLLECTION, {"id": payment_id})
    if removed is None:
        raise NotFoundError("Payment not found")

    totals = _adjust_totals({removed.get("method"): -to_cents(float(removed.get("amount") or 0))})
    logger.info("Deleted payment {}", payment_id)
    return removed, totals


def reset_payments() -> Dict[str, float]:
    deleted = delete_documents(COLLECTION)
    totals = _store_totals({})
    logger.info("Reset payments ({} removed), totals zeroed", deleted)
    return totals


def recalc_totals() -> Dict[str, float]:
    totals = _store_totals(compute_totals(list_payments()))
    logger.info("Recalculated totals: {}", totals)
    return totals
