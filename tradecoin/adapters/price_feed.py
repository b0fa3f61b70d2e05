# tradecoin/adapters/price_feed.py
from __future__ import annotations

import asyncio
import contextlib
import math
import os
import time
from collections.abc import Callable, Mapping
from typing import Any

import httpx
from loguru import logger

from tradecoin.core.errors import PriceFeedError

# --- Config (env-tunable) ----------------------------------------------------

PRICE_FEED_USER_AGENT = os.getenv("PRICE_FEED_USER_AGENT", "tradecoin/0.1")
PLACEHOLDER_PRICE = 68500.00

PriceListener = Callable[[float], None]


def _extract_usd_rate(payload: Any) -> float:
    """Pull ``bpi.USD.rate_float`` out of a CoinDesk-shaped document."""
    try:
        raw = payload["bpi"]["USD"]["rate_float"]
    except (KeyError, TypeError) as e:
        raise PriceFeedError(f"Price payload missing bpi.USD.rate_float: {e}") from e

    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise PriceFeedError(f"Price rate is not numeric: {raw!r}")
    rate = float(raw)
    if not math.isfinite(rate) or rate <= 0:
        raise PriceFeedError(f"Price rate out of range: {rate!r}")
    return rate


class PriceFeedClient:
    """
    Public BTC/USD quote endpoint (no auth). A single GET returns the
    current rate; every kind of failure surfaces as ``PriceFeedError``.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self._http = httpx.AsyncClient(
            timeout=timeout_seconds,
            transport=transport,
            headers={
                "Accept": "application/json",
                "User-Agent": PRICE_FEED_USER_AGENT,
            },
        )

    # --- housekeeping ---------------------------------------------------------

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> PriceFeedClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        await self.close()

    # --- API surface ----------------------------------------------------------

    async def fetch_usd_rate(self) -> float:
        try:
            resp = await self._http.get(self.url)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PriceFeedError(f"Price feed HTTP {e.response.status_code}") from e  # noqa: TRY003
        except httpx.HTTPError as e:
            raise PriceFeedError(f"Price feed network error: {e}") from e  # noqa: TRY003

        try:
            payload = resp.json()
        except ValueError as e:
            raise PriceFeedError("Price feed returned malformed JSON") from e  # noqa: TRY003

        if not isinstance(payload, Mapping):
            raise PriceFeedError("Price feed returned a non-object document")  # noqa: TRY003
        return _extract_usd_rate(payload)


class PricePoller:
    """
    Keeps the latest BTC/USD price. Fetches once immediately, then every
    ``interval_seconds``. A failed fetch substitutes ``fallback_price``, so
    ``price`` is always a usable number.
    """

    def __init__(
        self,
        client: PriceFeedClient,
        interval_seconds: float = 15.0,
        fallback_price: float = PLACEHOLDER_PRICE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.interval_seconds = interval_seconds
        self.fallback_price = fallback_price
        self._clock = clock

        self._price: float = fallback_price
        self._is_fallback: bool = True
        self._refreshed_at: float | None = None
        self._listeners: list[PriceListener] = []
        self._task: asyncio.Task[None] | None = None

    @property
    def price(self) -> float:
        return self._price

    @property
    def is_fallback(self) -> bool:
        return self._is_fallback

    @property
    def refreshed_at(self) -> float | None:
        return self._refreshed_at

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: PriceListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    async def refresh(self) -> float:
        try:
            price = await self.client.fetch_usd_rate()
            is_fallback = False
        except PriceFeedError as e:
            logger.warning("Price fetch failed, using fallback {}: {}", self.fallback_price, e)
            price = self.fallback_price
            is_fallback = True

        self._price = price
        self._is_fallback = is_fallback
        self._refreshed_at = self._clock()
        for listener in list(self._listeners):
            try:
                listener(price)
            except Exception:  # noqa: BLE001
                logger.exception("Price listener {!r} failed", listener)
        return price

    def _delay_after(self, started: float) -> float:
        """Time left in the current period, so fetch latency does not stretch the cadence."""
        return max(0.0, self.interval_seconds - (time.monotonic() - started))

    async def _run(self) -> None:
        while True:
            started = time.monotonic()
            await self.refresh()
            await asyncio.sleep(self._delay_after(started))

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="price-poller")
        logger.info("Price poller started (every {}s)", self.interval_seconds)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Price poller stopped")
