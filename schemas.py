"""
Database Schemas for the Coin Ledger

Each Pydantic model represents a collection in MongoDB.
The collection name is the lowercase of the class name, except
LoginHistory which lives in "login_history".

Examples:
- Game -> "game"
- Payment -> "payment"
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

PaymentMethod = Literal["cashapp", "paypal", "chime"]
ActivityType = Literal["deposit", "freeplay", "redeem"]

PAYMENT_METHODS = ("cashapp", "paypal", "chime")
ACTIVITY_TYPES = ("deposit", "freeplay", "redeem")


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    email: EmailStr = Field(..., description="Email address (unique, case-sensitive)")
    password_hash: str = Field(..., description="BCrypt hashed password")
    name: Optional[str] = Field(None, description="Full name")
    username: str = Field(..., description="Handle referenced by activity records")
    role: Literal["user", "admin"] = Field("user", description="Access level")
    is_active: bool = Field(True, description="Whether user is active")


class Game(BaseModel):
    """
    Games collection schema
    Collection name: "game"
    """
    id: int = Field(..., description="Sequence-assigned numeric id")
    name: str = Field(..., description="Game title")
    coins_spent: float = Field(0, description="Coins handed out as freeplay")
    coins_earned: float = Field(0, description="Coins returned through redeems")
    coins_recharged: float = Field(0, description="Coins loaded into the game")
    last_recharge_date: Optional[str] = Field(None, description="YYYY-MM-DD of the last recharge")


class Payment(BaseModel):
    """
    Payments collection schema
    Collection name: "payment"
    """
    id: str = Field(..., description="Opaque unique id")
    amount: float = Field(..., gt=0, description="Amount rounded to 2 decimals")
    method: PaymentMethod
    note: Optional[str] = None
    date: str = Field(..., description="YYYY-MM-DD")


class Activity(BaseModel):
    """
    Per-user game activity, one record per movement
    Collection name: "activity"
    """
    id: str
    username: str
    game_id: Optional[int] = None
    game_name: Optional[str] = None
    type: ActivityType
    amount: float = Field(..., ge=0)
    note: Optional[str] = None
    date: str = Field(..., description="YYYY-MM-DD")


class LoginHistory(BaseModel):
    """
    Append-only login log
    Collection name: "login_history"
    """
    user_id: str
    email: str
    name: Optional[str] = None
    logged_in_at: datetime


class Salary(BaseModel):
    """
    Monthly salary snapshot
    Collection name: "salary"
    """
    id: str
    username: str
    month: str = Field(..., description="YYYY-MM")
    total_salary: float = Field(..., ge=0)
    days_absent: int = Field(0, ge=0)
    paid_salary: float = Field(0, ge=0)
    remaining_salary: float = Field(0, ge=0, description="Snapshot, not recomputed on read")
    due_date: Optional[str] = None
    note: Optional[str] = None
