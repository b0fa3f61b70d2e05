"""
Trading terminal: one user's balance, the live price and the four actions.

Store calls are blocking (boto3) and run in a worker thread so the price
poller keeps ticking while a load or save is outstanding.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger

from tradecoin.adapters.price_feed import PricePoller
from tradecoin.core import ledger
from tradecoin.core.errors import (
    BalanceStoreError,
    InsufficientBalanceError,
    InvalidAmountError,
    TransactionInProgressError,
)
from tradecoin.core.models import (
    DEFAULT_BALANCE,
    Balance,
    Notice,
    PortfolioSnapshot,
    TransactionKind,
    TransactionReceipt,
)
from tradecoin.core.notices import NoticeBoard
from tradecoin.core.session import Session
from tradecoin.storage.balances import BalanceStore, InMemoryBalanceStore

SYNC_FAILED_WARNING = "Failed to sync user data. Running in simulated mode."
SAVE_FAILED_MESSAGE = "Transaction failed to save. Please try again."


class TradingTerminal:
    def __init__(
        self,
        session: Session,
        store: BalanceStore,
        poller: PricePoller,
        *,
        notice_ttl_seconds: float = 5.0,
    ) -> None:
        self.session = session
        self.store = store
        self.poller = poller
        self.notices = NoticeBoard(ttl_seconds=notice_ttl_seconds)

        self._balance: Balance = DEFAULT_BALANCE
        self._warning: str | None = session.warning
        self._unsubscribe: Callable[[], None] | None = None
        self._busy = False

    # --- lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        identity = self.session.identity
        try:
            balance = await asyncio.to_thread(self.store.load, identity)
        except BalanceStoreError as e:
            logger.error("Balance load failed, switching to simulated store: {}", e)
            self.store = InMemoryBalanceStore()
            self._warning = SYNC_FAILED_WARNING
            balance = self.store.load(identity)

        self._balance = balance
        self._unsubscribe = self.store.subscribe(identity, self._on_balance_change)
        self.poller.start()

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.poller.stop()

    def _on_balance_change(self, balance: Balance) -> None:
        self._balance = balance

    # --- state ----------------------------------------------------------------

    @property
    def balance(self) -> Balance:
        return self._balance

    @property
    def price(self) -> float:
        return self.poller.price

    @property
    def warning(self) -> str | None:
        return self._warning

    @property
    def busy(self) -> bool:
        return self._busy

    async def portfolio(self, refresh: bool = False) -> PortfolioSnapshot:
        if refresh:
            try:
                self._balance = await asyncio.to_thread(self.store.refresh, self.session.identity)
            except BalanceStoreError as e:
                logger.error("Balance refresh failed: {}", e)
                self.notices.post("error", "Failed to sync user data.")

        price = self.price
        balance = self._balance
        return PortfolioSnapshot(
            identity=self.session.label,
            mode=self.session.mode,
            usd=balance.usd,
            btc=balance.btc,
            price=price,
            portfolio_value=ledger.portfolio_value(balance, price),
            warning=self._warning,
            notices=self.notices.active(),
        )

    def active_notices(self) -> list[Notice]:
        return self.notices.active()

    # --- transactions ---------------------------------------------------------

    async def submit(self, kind: TransactionKind, amount: float) -> TransactionReceipt:
        if self._busy:
            raise TransactionInProgressError()

        self._busy = True
        try:
            return await self._submit(TransactionKind(kind), amount)
        finally:
            self._busy = False

    async def _submit(self, kind: TransactionKind, amount: float) -> TransactionReceipt:
        self.notices.dismiss("error")
        price = self.price

        try:
            new_balance = ledger.apply_transaction(self._balance, price, kind, amount)
        except (InvalidAmountError, InsufficientBalanceError) as e:
            logger.warning("Rejected {} of {}: {}", kind.value, amount, e)
            self.notices.post("error", f"Error: {e}")
            raise

        usd_value = ledger.quote(kind, amount, price)
        self._balance = new_balance
        try:
            await asyncio.to_thread(self.store.save, self.session.identity, new_balance)
        except BalanceStoreError as e:
            logger.error("Transaction failed: {}", e)
            self.notices.post("error", SAVE_FAILED_MESSAGE)
            raise BalanceStoreError(SAVE_FAILED_MESSAGE) from e

        message = ledger.describe(kind, amount, usd_value)
        logger.info("Accepted {} of {} at {}", kind.value, amount, price)
        self.notices.post("success", message)
        return TransactionReceipt(
            kind=kind,
            amount=amount,
            price=price,
            usd_value=usd_value,
            message=message,
            balance=new_balance,
        )
