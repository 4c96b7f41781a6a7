"""
User activity and login history

Activity records are appended when coins move (one record per movement type)
and are only changed afterwards by an explicit admin edit or delete. Login
history is append-only.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from database import create_document, delete_document, find_document, get_documents, update_document
from errors import NotFoundError, ValidationError
from schemas import ACTIVITY_TYPES, Activity, LoginHistory
from totals import summarize_activity
from utils import new_id, normalize_date, parse_number, valid_date

COLLECTION = "activity"
LOGIN_COLLECTION = "login_history"


def _validate_type(value: Any) -> str:
    if value not in ACTIVITY_TYPES:
        raise ValidationError("Invalid activity type")
    return value


def _validate_amount(value: Any) -> float:
    amount = parse_number(value)
    if amount is None or amount < 0:
        raise ValidationError("Invalid amount")
    return amount


def record_activity(
    username: Any,
    type: Any,
    amount: Any,
    game_id: Optional[int] = None,
    game_name: Optional[str] = None,
    note: Optional[str] = None,
    date: Any = None,
) -> dict:
    if not isinstance(username, str) or not username.strip():
        raise ValidationError("username is required")

    activity = Activity(
        id=new_id(),
        username=username.strip(),
        game_id=game_id,
        game_name=game_name,
        type=_validate_type(type),
        amount=_validate_amount(amount),
        note=note or None,
        date=normalize_date(date),
    )
    create_document(COLLECTION, activity)
    return find_document(COLLECTION, {"id": activity.id})


def list_activity(
    username: Optional[str] = None,
    game_id: Optional[int] = None,
    type: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> List[dict]:
    filter_dict: Dict[str, Any] = {}
    if username and username.strip():
        filter_dict["username"] = username.strip()
    if game_id is not None:
        filter_dict["game_id"] = game_id
    if type in ACTIVITY_TYPES:
        filter_dict["type"] = type

    date_range = {}
    if valid_date(date_from):
        date_range["$gte"] = date_from
    if valid_date(date_to):
        date_range["$lte"] = date_to
    if date_range:
        filter_dict["date"] = date_range

    return get_documents(COLLECTION, filter_dict, sort=[("_id", -1)])


def update_activity(activity_id: str, changes: Dict[str, Any]) -> dict:
    if find_document(COLLECTION, {"id": activity_id}) is None:
        raise NotFoundError("Activity not found")

    new_values: Dict[str, Any] = {}
    if changes.get("username") is not None:
        if not isinstance(changes["username"], str) or not changes["username"].strip():
            raise ValidationError("username is required")
        new_values["username"] = changes["username"].strip()
    if changes.get("type") is not None:
        new_values["type"] = _validate_type(changes["type"])
    if changes.get("amount") is not None:
        new_values["amount"] = _validate_amount(changes["amount"])
    if changes.get("date") is not None:
        new_values["date"] = normalize_date(changes["date"])
    if "note" in changes:
        new_values["note"] = changes["note"] or None

    return update_document(COLLECTION, {"id": activity_id}, new_values)


def delete_activity(activity_id: str) -> dict:
    removed = delete_document(COLLECTION, {"id": activity_id})
    if removed is None:
        raise NotFoundError("Activity not found")
    return removed


def summary_by_user() -> List[dict]:
    sums = summarize_activity(get_documents(COLLECTION), "username")
    return [
        {
            "username": username,
            "total_deposit": values["deposit"],
            "total_redeem": values["redeem"],
            "total_freeplay": values["freeplay"],
        }
        for username, values in sorted(sums.items(), key=lambda item: str(item[0]))
    ]


def record_login(user: dict) -> None:
    entry = LoginHistory(
        user_id=str(user["_id"]),
        email=user.get("email", ""),
        name=user.get("name"),
        logged_in_at=datetime.now(timezone.utc),
    )
    create_document(LOGIN_COLLECTION, entry)


def list_logins(limit: int = 50) -> List[dict]:
    return get_documents(LOGIN_COLLECTION, limit=limit, sort=[("logged_in_at", -1), ("_id", -1)])


def last_logins() -> Dict[str, datetime]:
    """Latest login time per email."""
    latest: Dict[str, datetime] = {}
    for entry in get_documents(LOGIN_COLLECTION, sort=[("logged_in_at", -1), ("_id", -1)]):
        latest.setdefault(entry["email"], entry["logged_in_at"])
    return latest
