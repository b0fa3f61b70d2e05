"""
Balance arithmetic for the four terminal operations.

Everything here is pure: a call either returns a new ``Balance`` or raises,
and the balance passed in is never modified.
"""
from __future__ import annotations

import math

from tradecoin.core.errors import InsufficientBalanceError, InvalidAmountError, InvalidPriceError
from tradecoin.core.formatting import format_btc, format_currency
from tradecoin.core.models import Balance, TransactionKind


def _positive_finite(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = float(value)
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def validate_amount(amount: object) -> float:
    number = _positive_finite(amount)
    if number is None:
        raise InvalidAmountError()
    return number


def validate_price(price: object) -> float:
    number = _positive_finite(price)
    if number is None:
        raise InvalidPriceError(f"Market price must be a positive number, got {price!r}")
    return number


def quote(kind: TransactionKind, amount: float, price: float) -> float:
    """USD moved by the transaction: cost for buy, proceeds for sell."""
    if kind in (TransactionKind.BUY, TransactionKind.SELL):
        return amount * price
    return amount


def _settled(usd: float, btc: float) -> Balance:
    # Float overflow would otherwise leave an infinite balance behind
    if not (math.isfinite(usd) and math.isfinite(btc)):
        raise InvalidAmountError("Amount is too large for this balance.")
    return Balance(usd=usd, btc=btc)


def apply_transaction(balance: Balance, price: float, kind: TransactionKind, amount: float) -> Balance:
    amount = validate_amount(amount)
    kind = TransactionKind(kind)

    if kind is TransactionKind.DEPOSIT:
        return _settled(balance.usd + amount, balance.btc)

    if kind is TransactionKind.WITHDRAW:
        if amount > balance.usd:
            raise InsufficientBalanceError(
                "Insufficient USD balance for withdrawal.",
                side="USD",
                required=amount,
                available=balance.usd,
            )
        return _settled(balance.usd - amount, balance.btc)

    price = validate_price(price)
    usd_value = quote(kind, amount, price)

    if kind is TransactionKind.BUY:
        if usd_value > balance.usd:
            raise InsufficientBalanceError(
                "Insufficient USD balance to buy that much BTC.",
                side="USD",
                required=usd_value,
                available=balance.usd,
            )
        return _settled(balance.usd - usd_value, balance.btc + amount)

    # sell
    if amount > balance.btc:
        raise InsufficientBalanceError(
            "Insufficient BTC balance to sell.",
            side="BTC",
            required=amount,
            available=balance.btc,
        )
    return _settled(balance.usd + usd_value, balance.btc - amount)


def portfolio_value(balance: Balance, price: float) -> float:
    return balance.usd + balance.btc * price


def describe(kind: TransactionKind, amount: float, usd_value: float) -> str:
    if kind is TransactionKind.DEPOSIT:
        return f"Successfully deposited {format_currency(amount)} USD."
    if kind is TransactionKind.WITHDRAW:
        return f"Successfully withdrew {format_currency(amount)} USD."
    if kind is TransactionKind.BUY:
        return f"Successfully bought {format_btc(amount)} BTC for {format_currency(usd_value)}."
    return f"Successfully sold {format_btc(amount)} BTC for {format_currency(usd_value)}."
