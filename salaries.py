"""
Salary records

remaining_salary is stored as a snapshot. It is computed here only when the
client does not send one, and is never recomputed when a record is edited.
"""

import os
from typing import Any, Dict, List, Optional, Tuple

from database import create_document, delete_document, find_document, get_documents, update_document
from errors import NotFoundError, ValidationError
from schemas import Salary
from utils import new_id, parse_number, valid_date, valid_month

COLLECTION = "salary"
ABSENT_PENALTY = float(os.getenv("SALARY_ABSENT_PENALTY", "500"))


def remaining_salary(total: float, days_absent: int, paid: float, penalty: float = ABSENT_PENALTY) -> float:
    return max(0.0, total - days_absent * penalty - paid)


def _non_negative(value: Any, field: str, default: Optional[float] = None) -> float:
    if value is None and default is not None:
        return default
    number = parse_number(value)
    if number is None or number < 0:
        raise ValidationError(f"Invalid {field}")
    return number


def _clean(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    values: Dict[str, Any] = {}

    if not partial or data.get("username") is not None:
        username = data.get("username")
        if not isinstance(username, str) or not username.strip():
            raise ValidationError("username is required")
        values["username"] = username.strip()
    if not partial or data.get("month") is not None:
        if not valid_month(data.get("month")):
            raise ValidationError("month must be YYYY-MM")
        values["month"] = data["month"]
    if not partial or data.get("total_salary") is not None:
        values["total_salary"] = _non_negative(data.get("total_salary"), "totalSalary")
    if not partial or data.get("days_absent") is not None:
        days = _non_negative(data.get("days_absent"), "daysAbsent", default=0)
        if days != int(days):
            raise ValidationError("Invalid daysAbsent")
        values["days_absent"] = int(days)
    if not partial or data.get("paid_salary") is not None:
        values["paid_salary"] = _non_negative(data.get("paid_salary"), "paidSalary", default=0)
    if data.get("remaining_salary") is not None:
        values["remaining_salary"] = _non_negative(data["remaining_salary"], "remainingSalary")
    if "due_date" in data:
        due_date = data["due_date"] or None
        if due_date is not None and not valid_date(due_date):
            raise ValidationError("dueDate must be YYYY-MM-DD")
        values["due_date"] = due_date
    if "note" in data:
        values["note"] = data["note"] or None
    return values


def save_salary(data: Dict[str, Any]) -> Tuple[dict, bool]:
    """Create the record for (username, month), or replace the existing one.

    Returns the stored document and whether it was newly created.
    """
    values = _clean(data)
    if "remaining_salary" not in values:
        values["remaining_salary"] = remaining_salary(
            values["total_salary"], values["days_absent"], values["paid_salary"]
        )

    key = {"username": values["username"], "month": values["month"]}
    existing = find_document(COLLECTION, key)
    if existing is not None:
        values.setdefault("due_date", None)
        values.setdefault("note", None)
        return update_document(COLLECTION, {"id": existing["id"]}, values), False

    salary = Salary(id=new_id(), **values)
    create_document(COLLECTION, salary)
    return find_document(COLLECTION, {"id": salary.id}), True


def list_salaries(username: Optional[str] = None, month: Optional[str] = None) -> List[dict]:
    filter_dict: Dict[str, Any] = {}
    if username:
        filter_dict["username"] = username.strip()
    if month:
        filter_dict["month"] = month
    return get_documents(COLLECTION, filter_dict, sort=[("month", -1), ("username", 1)])


def update_salary(salary_id: str, changes: Dict[str, Any]) -> dict:
    if find_document(COLLECTION, {"id": salary_id}) is None:
        raise NotFoundError("Salary record not found")
    updated = update_document(COLLECTION, {"id": salary_id}, _clean(changes, partial=True))
    if updated is None:
        raise NotFoundError("Salary record not found")
    return updated


def delete_salary(salary_id: str) -> dict:
    removed = delete_document(COLLECTION, {"id": salary_id})
    if removed is None:
        raise NotFoundError("Salary record not found")
    return removed
