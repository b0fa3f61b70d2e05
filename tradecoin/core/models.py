from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SessionMode = Literal["authenticated", "anonymous", "simulated"]
NoticeLevel = Literal["success", "error"]


class TransactionKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    BUY = "buy"
    SELL = "sell"


class Balance(BaseModel):
    model_config = ConfigDict(frozen=True)

    usd: float = Field(0.0, ge=0, allow_inf_nan=False, examples=[1000.0])
    btc: float = Field(0.0, ge=0, allow_inf_nan=False, examples=[0.01])


DEFAULT_BALANCE = Balance(usd=1000.0, btc=0.0)


class TransactionRequest(BaseModel):
    kind: TransactionKind
    amount: float = Field(..., gt=0, allow_inf_nan=False, examples=[0.01])


class TransactionReceipt(BaseModel):
    kind: TransactionKind
    amount: float
    price: float
    usd_value: float
    message: str
    balance: Balance


class Notice(BaseModel):
    level: NoticeLevel
    message: str
    created_at: float
    expires_at: float


class PriceResponse(BaseModel):
    price: float
    is_fallback: bool
    refreshed_at: float | None
    refresh_interval_seconds: float


class PortfolioSnapshot(BaseModel):
    identity: str
    mode: SessionMode
    usd: float
    btc: float
    price: float
    portfolio_value: float
    warning: str | None = None
    notices: list[Notice] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    detail: str
    side: str | None = None


class HealthResponse(BaseModel):
    ok: bool = True
    name: str
    version: str
    time: int
