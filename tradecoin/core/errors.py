from __future__ import annotations


class TerminalError(Exception):
    """Base error for the trading terminal."""

    def __init__(self, msg: str = "") -> None:
        super().__init__(msg)
        self.msg = msg

    def __str__(self) -> str:
        return self.msg or self.__class__.__name__


class InvalidAmountError(TerminalError):
    """Amount is not a positive finite number."""

    def __init__(self, msg: str = "Please enter a positive numeric amount.") -> None:
        super().__init__(msg)


class InvalidPriceError(TerminalError):
    """Market price is not a positive finite number."""


class InsufficientBalanceError(TerminalError):
    """Withdraw/buy/sell precondition failed on one side of the balance."""

    def __init__(self, msg: str, *, side: str, required: float, available: float) -> None:
        super().__init__(msg)
        self.side = side
        self.required = required
        self.available = available


class TransactionInProgressError(TerminalError):
    """Another submission has not finished yet."""

    def __init__(self, msg: str = "A transaction is already being processed.") -> None:
        super().__init__(msg)


class BalanceStoreError(TerminalError):
    """Read or write against the balance backend failed."""


class PriceFeedError(TerminalError):
    """Price endpoint unreachable or returned an unusable payload."""


class SessionError(TerminalError):
    """Identity could not be established."""
