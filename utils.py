import math
import re
import uuid
from datetime import date, datetime
from typing import Any, Optional

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_RE = re.compile(r"^\d{4}-\d{2}$")


def new_id() -> str:
    return uuid.uuid4().hex


def today_str() -> str:
    return date.today().isoformat()


def parse_number(value: Any) -> Optional[float]:
    """Return `value` as a finite float, or None if it is not numeric.

    Numeric strings are accepted, booleans are not.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def safe_number(value: Any, default: float = 0) -> float:
    number = parse_number(value)
    return default if number is None else number


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def valid_date(value: Any) -> bool:
    if not isinstance(value, str) or not DATE_RE.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def normalize_date(value: Any) -> str:
    """Strict YYYY-MM-DD calendar date, otherwise today's date."""
    return value if valid_date(value) else today_str()


def valid_month(value: Any) -> bool:
    if not isinstance(value, str) or not MONTH_RE.match(value):
        return False
    return 1 <= int(value[5:]) <= 12
