import os
from datetime import datetime
from typing import Any, List, Optional, Union

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import activity
import database
import games
import payments
import salaries
import security
from errors import LedgerError, StorageError
from schemas import ActivityType, PaymentMethod

# ----------------------
# App & CORS
# ----------------------
app = FastAPI(title="Coin Ledger Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("{} {}", request.method, request.url.path)
    return await call_next(request)


# ----------------------
# Error responses
# ----------------------
@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.exception("{} {} failed: {}", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"message": "Storage failure"})
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("{} {} unexpected error", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.exception("{} {} storage error", request.method, request.url.path)
    return JSONResponse(status_code=StorageError.status_code, content={"message": "Storage failure"})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)


# ----------------------
# Request / response models
# ----------------------
class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Totals(ApiModel):
    cashapp: float = 0
    paypal: float = 0
    chime: float = 0


class PaymentCreate(ApiModel):
    amount: Any = None
    method: Any = None
    note: Optional[str] = None
    date: Any = None


class PaymentUpdate(PaymentCreate):
    pass


class PaymentOut(ApiModel):
    id: str
    amount: float
    method: PaymentMethod
    note: Optional[str] = None
    date: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentResult(ApiModel):
    ok: bool = True
    payment: PaymentOut
    totals: Totals


class PaymentRemoved(ApiModel):
    ok: bool = True
    removed: PaymentOut
    totals: Totals


class TotalsResult(ApiModel):
    ok: bool = True
    totals: Totals


class GameCreate(ApiModel):
    name: Any = None
    coins_spent: Any = None
    coins_earned: Any = None
    coins_recharged: Any = None
    last_recharge_date: Optional[str] = None


class GameUpdate(ApiModel):
    coins_spent: Any = None
    coins_earned: Any = None
    coins_recharged: Any = None
    last_recharge_date: Optional[str] = None


class GameMoves(ApiModel):
    freeplay_delta: Any = 0
    redeem_delta: Any = 0
    deposit_delta: Any = 0
    username: Optional[str] = None


class GameOut(ApiModel):
    id: int
    name: str
    coins_spent: float = 0
    coins_earned: float = 0
    coins_recharged: float = 0
    last_recharge_date: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GameBalance(ApiModel):
    id: int
    name: str
    coins_recharged: float
    freeplay: float
    deposit: float
    redeem: float
    total_coins: float


class ActivityCreate(ApiModel):
    username: Any = None
    type: Any = None
    amount: Any = None
    game_id: Optional[int] = None
    note: Optional[str] = None
    date: Any = None


class ActivityUpdate(ApiModel):
    username: Any = None
    type: Any = None
    amount: Any = None
    note: Optional[str] = None
    date: Any = None


class ActivityOut(ApiModel):
    id: str
    username: str
    game_id: Optional[int] = None
    game_name: Optional[str] = None
    type: ActivityType
    amount: float
    note: Optional[str] = None
    date: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserActivitySummary(ApiModel):
    username: str
    total_deposit: float
    total_redeem: float
    total_freeplay: float


class LoginOut(ApiModel):
    user_id: str
    email: str
    name: Optional[str] = None
    logged_in_at: datetime


class LastLogin(ApiModel):
    email: str
    last_login_at: datetime


class RegisterRequest(ApiModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = None


class LoginRequest(ApiModel):
    email: str
    password: str


class UserOut(ApiModel):
    id: str
    email: str
    name: Optional[str] = None
    username: Optional[str] = None
    role: str = "user"
    is_active: bool = True


class AuthResult(ApiModel):
    ok: bool = True
    token: str
    user: UserOut


class MeResult(ApiModel):
    ok: bool = True
    user: UserOut


class AdminUserOut(UserOut):
    total_deposit: float = 0
    total_redeem: float = 0
    total_freeplay: float = 0
    last_login_at: Optional[datetime] = None


class UserStatusResult(ApiModel):
    message: str
    user: UserOut


class SalaryIn(ApiModel):
    username: Any = None
    month: Any = None
    total_salary: Any = None
    days_absent: Any = None
    paid_salary: Any = None
    remaining_salary: Any = None
    due_date: Optional[str] = None
    note: Optional[str] = None


class SalaryOut(ApiModel):
    id: str
    username: str
    month: str
    total_salary: float
    days_absent: int
    paid_salary: float
    remaining_salary: float
    due_date: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def user_out(user: dict) -> UserOut:
    return UserOut(
        id=str(user["_id"]),
        email=user.get("email"),
        name=user.get("name"),
        username=user.get("username"),
        role=user.get("role", "user"),
        is_active=user.get("is_active", True),
    )


# ----------------------
# Auth Endpoints
# ----------------------
def seed_admin():
    security.ensure_admin_user()


@app.post("/auth/register", response_model=AuthResult, status_code=201, dependencies=[Depends(seed_admin)])
def register(payload: RegisterRequest):
    user, token = security.register(payload.email, payload.password, payload.name)
    return AuthResult(token=token, user=user_out(user))


@app.post("/auth/login", response_model=AuthResult, dependencies=[Depends(seed_admin)])
def login(payload: LoginRequest):
    user, token = security.login(payload.email, payload.password)
    return AuthResult(token=token, user=user_out(user))


@app.get("/auth/me", response_model=MeResult)
def me(current_user: dict = Depends(security.get_current_user)):
    return MeResult(user=user_out(current_user))


# ----------------------
# Game Endpoints
# ----------------------
@app.get("/games", response_model=Union[List[GameOut], List[str]])
def list_games(q: Optional[str] = None):
    if q and q.strip():
        return games.search_names(q)
    return games.list_games()


@app.get("/games/balances", response_model=List[GameBalance])
def game_balances():
    return games.balances()


@app.post("/games", response_model=GameOut, status_code=201)
def create_game(payload: GameCreate):
    return games.create_game(
        payload.name,
        {
            "coins_spent": payload.coins_spent,
            "coins_earned": payload.coins_earned,
            "coins_recharged": payload.coins_recharged,
        },
        payload.last_recharge_date,
    )


@app.put("/games/{game_id}", response_model=GameOut)
def update_game(game_id: int, payload: GameUpdate):
    return games.update_game(game_id, payload.model_dump(exclude_unset=True))


@app.delete("/games/{game_id}", response_model=GameOut)
def delete_game(game_id: int):
    return games.delete_game(game_id)


@app.post("/games/{game_id}/add-moves", response_model=GameOut)
def add_moves(game_id: int, payload: GameMoves):
    return games.add_moves(
        game_id,
        freeplay=payload.freeplay_delta,
        redeem=payload.redeem_delta,
        deposit=payload.deposit_delta,
        username=payload.username,
    )


@app.post("/games/{game_id}/reset-recharge", response_model=GameOut)
def reset_recharge(game_id: int):
    return games.reset_recharge(game_id)


# ----------------------
# Payment Endpoints
# ----------------------
@app.get("/payments", response_model=List[PaymentOut])
def list_payments(date: Optional[str] = None):
    return payments.list_payments(date)


@app.post("/payments", response_model=PaymentResult, status_code=201)
def create_payment(payload: PaymentCreate):
    payment, totals = payments.create_payment(payload.amount, payload.method, payload.note, payload.date)
    return {"payment": payment, "totals": totals}


@app.put("/payments/{payment_id}", response_model=PaymentResult)
def update_payment(payment_id: str, payload: PaymentUpdate):
    payment, totals = payments.update_payment(payment_id, payload.model_dump(exclude_unset=True))
    return {"payment": payment, "totals": totals}


@app.delete("/payments/{payment_id}", response_model=PaymentRemoved)
def delete_payment(payment_id: str):
    removed, totals = payments.delete_payment(payment_id)
    return {"removed": removed, "totals": totals}


@app.get("/totals", response_model=Totals)
def get_totals():
    return payments.get_totals()


@app.post("/reset", response_model=TotalsResult)
def reset():
    return {"totals": payments.reset_payments()}


@app.post("/recalc", response_model=TotalsResult)
def recalc():
    return {"totals": payments.recalc_totals()}


# ----------------------
# Activity & Login history
# ----------------------
@app.get("/activities", response_model=List[ActivityOut])
def list_activities(
    username: Optional[str] = None,
    game_id: Optional[int] = Query(None, alias="gameId"),
    type: Optional[str] = None,
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
):
    return activity.list_activity(username, game_id, type, date_from, date_to)


@app.get("/activities/summary", response_model=List[UserActivitySummary])
def activity_summary():
    return activity.summary_by_user()


@app.post("/activities", response_model=ActivityOut, status_code=201)
def create_activity(payload: ActivityCreate):
    game_name = games.get_game(payload.game_id)["name"] if payload.game_id is not None else None
    return activity.record_activity(
        payload.username,
        payload.type,
        payload.amount,
        game_id=payload.game_id,
        game_name=game_name,
        note=payload.note,
        date=payload.date,
    )


ADMIN = [Depends(security.require_admin)]


@app.put("/activities/{activity_id}", response_model=ActivityOut, dependencies=ADMIN)
def update_activity(activity_id: str, payload: ActivityUpdate):
    return activity.update_activity(activity_id, payload.model_dump(exclude_unset=True))


@app.delete("/activities/{activity_id}", response_model=ActivityOut, dependencies=ADMIN)
def delete_activity(activity_id: str):
    return activity.delete_activity(activity_id)


@app.get("/logins", response_model=List[LoginOut], dependencies=ADMIN)
def list_logins(limit: int = Query(50, ge=1, le=500)):
    return activity.list_logins(limit)


@app.get("/logins/last", response_model=List[LastLogin], dependencies=ADMIN)
def last_logins():
    return [{"email": email, "last_login_at": at} for email, at in activity.last_logins().items()]


# ----------------------
# Admin users
# ----------------------
@app.get("/admin/users", response_model=List[AdminUserOut], dependencies=ADMIN)
def admin_list_users():
    return security.list_users()


@app.patch("/admin/users/{user_id}/approve", response_model=UserStatusResult, dependencies=ADMIN)
def admin_approve_user(user_id: str):
    user = security.set_user_active(user_id, True)
    return UserStatusResult(message="User approved successfully", user=user_out(user))


@app.patch("/admin/users/{user_id}/block", response_model=UserStatusResult, dependencies=ADMIN)
def admin_block_user(user_id: str):
    user = security.set_user_active(user_id, False)
    return UserStatusResult(message="User blocked successfully", user=user_out(user))


@app.delete("/admin/users/{user_id}", response_model=UserOut, dependencies=ADMIN)
def admin_delete_user(user_id: str):
    return user_out(security.delete_user(user_id))


# ----------------------
# Salaries
# ----------------------
@app.get("/salaries", response_model=List[SalaryOut], dependencies=ADMIN)
def list_salaries(username: Optional[str] = None, month: Optional[str] = None):
    return salaries.list_salaries(username, month)


@app.post("/salaries", response_model=SalaryOut, status_code=201, dependencies=ADMIN)
def save_salary(payload: SalaryIn, response: Response):
    salary, created = salaries.save_salary(payload.model_dump(exclude_unset=True))
    if not created:
        response.status_code = 200
    return salary


@app.put("/salaries/{salary_id}", response_model=SalaryOut, dependencies=ADMIN)
def update_salary(salary_id: str, payload: SalaryIn):
    return salaries.update_salary(salary_id, payload.model_dump(exclude_unset=True))


@app.delete("/salaries/{salary_id}", response_model=SalaryOut, dependencies=ADMIN)
def delete_salary(salary_id: str):
    return salaries.delete_salary(salary_id)


# ----------------------
# Health
# ----------------------
@app.get("/")
def read_root():
    return {"message": "Coin Ledger Backend Running"}


@app.get("/health")
def health():
    try:
        collections = database.ping()
    except (StorageError, PyMongoError) as e:
        logger.warning("Health check failed: {}", e)
        return JSONResponse(status_code=500, content={"ok": False, "db": "unavailable"})
    return {"ok": True, "db": "connected", "collections": collections[:10]}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
