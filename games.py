"""
Game ledger

Two ways to change a game's counters, kept as separate operations:
update_game() replaces the values it is given, add_moves() adds deltas.
"""

import re
from typing import Any, Dict, List, Optional

from loguru import logger

from activity import COLLECTION as ACTIVITY_COLLECTION, record_activity
from database import (
    create_document,
    delete_document,
    find_document,
    get_collection,
    get_documents,
    next_sequence,
    update_document,
)
from errors import InvalidName, NotFoundError, ValidationError
from schemas import Game
from totals import game_balance, summarize_activity
from utils import is_number, parse_number, safe_number, today_str, valid_date

COLLECTION = "game"
COUNTER_FIELDS = ("coins_spent", "coins_earned", "coins_recharged")

# add-moves delta -> counter it feeds
MOVE_FIELDS = {
    "freeplay": "coins_spent",
    "redeem": "coins_earned",
    "deposit": "coins_recharged",
}


def get_game(game_id: int) -> dict:
    doc = find_document(COLLECTION, {"id": game_id})
    if doc is None:
        raise NotFoundError("Game not found")
    return doc


def list_games() -> List[dict]:
    return get_documents(COLLECTION, sort=[("id", 1)])


def search_names(q: str) -> List[str]:
    pattern = {"$regex": re.escape(q.strip()), "$options": "i"}
    names = get_collection(COLLECTION).distinct("name", {"name": pattern})
    return sorted((n for n in names if isinstance(n, str) and n.strip()), key=str.lower)


def create_game(name: Any, counters: Optional[Dict[str, Any]] = None, last_recharge_date: Optional[str] = None) -> dict:
    if not isinstance(name, str) or not name.strip():
        raise InvalidName()

    values = {}
    for field in COUNTER_FIELDS:
        raw = (counters or {}).get(field)
        if raw is None:
            values[field] = 0
            continue
        number = parse_number(raw)
        if number is None:
            raise ValidationError(f"Invalid {field}")
        values[field] = number

    if last_recharge_date is not None and not valid_date(last_recharge_date):
        raise ValidationError("lastRechargeDate must be YYYY-MM-DD")

    name = name.strip()
    if find_document(COLLECTION, {"name": name}) is not None:
        raise ValidationError("Game with this name already exists")

    game = Game(id=next_sequence(COLLECTION), name=name, last_recharge_date=last_recharge_date, **values)
    create_document(COLLECTION, game)
    logger.info("Created game {} ({})", game.id, game.name)
    return find_document(COLLECTION, {"id": game.id})


def update_game(game_id: int, changes: Dict[str, Any]) -> dict:
    """Replace counters with the numeric values supplied; non-numbers are ignored.

    last_recharge_date is written whenever the key is present, even as None.
    """
    get_game(game_id)

    new_values = {field: changes[field] for field in COUNTER_FIELDS if is_number(changes.get(field))}
    if "last_recharge_date" in changes:
        if changes["last_recharge_date"] is not None and not valid_date(changes["last_recharge_date"]):
            raise ValidationError("lastRechargeDate must be YYYY-MM-DD")
        new_values["last_recharge_date"] = changes["last_recharge_date"]

    updated = update_document(COLLECTION, {"id": game_id}, new_values)
    if updated is None:
        raise NotFoundError("Game not found")
    return updated


def add_moves(game_id: int, freeplay: Any = 0, redeem: Any = 0, deposit: Any = 0, username: Optional[str] = None) -> dict:
    game = get_game(game_id)
    username = (username or "").strip() or "Unknown User"

    deltas = {
        "freeplay": safe_number(freeplay),
        "redeem": safe_number(redeem),
        "deposit": safe_number(deposit),
    }
    inc = {MOVE_FIELDS[kind]: delta for kind, delta in deltas.items() if delta}
    set_fields = {"last_recharge_date": today_str()} if deltas["deposit"] > 0 else {}

    updated = update_document(COLLECTION, {"id": game_id}, set_fields, inc_fields=inc)
    if updated is None:
        raise NotFoundError("Game not found")

    for kind, delta in deltas.items():
        if delta > 0:
            record_activity(username, kind, delta, game_id=game_id, game_name=game["name"])
    return updated


def reset_recharge(game_id: int) -> dict:
    updated = update_document(COLLECTION, {"id": game_id}, {"coins_recharged": 0, "last_recharge_date": None})
    if updated is None:
        raise NotFoundError("Game not found")
    return updated


def delete_game(game_id: int) -> dict:
    removed = delete_document(COLLECTION, {"id": game_id})
    if removed is None:
        raise NotFoundError("Game not found")
    logger.info("Deleted game {} ({})", game_id, removed.get("name"))
    return removed


def balances() -> List[dict]:
    """Activity sums and net coins for every game."""
    sums_by_game = summarize_activity(get_documents(ACTIVITY_COLLECTION), "game_id")
    rows = []
    for game in list_games():
        sums = sums_by_game.get(game["id"], {"deposit": 0.0, "redeem": 0.0, "freeplay": 0.0})
        recharged = safe_number(game.get("coins_recharged"))
        rows.append({
            "id": game["id"],
            "name": game["name"],
            "coins_recharged": recharged,
            "freeplay": sums["freeplay"],
            "deposit": sums["deposit"],
            "redeem": sums["redeem"],
            "total_coins": game_balance(recharged, sums),
        })
    return rows
