from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from tradecoin.adapters.price_feed import PriceFeedClient, PricePoller
from tradecoin.core.errors import (
    BalanceStoreError,
    InsufficientBalanceError,
    InvalidAmountError,
    TransactionInProgressError,
)
from tradecoin.core.logging import configure_logging
from tradecoin.core.models import (
    ErrorResponse,
    HealthResponse,
    Notice,
    PortfolioSnapshot,
    PriceResponse,
    TransactionReceipt,
    TransactionRequest,
)
from tradecoin.core.session import SessionBootstrap
from tradecoin.core.settings import Settings, get_settings
from tradecoin.core.terminal import TradingTerminal
from tradecoin.storage.balances import BalanceStore, DynamoBalanceStore, InMemoryBalanceStore


def _now_epoch() -> int:
    return int(time.time())


def build_terminal(settings: Settings) -> TradingTerminal:
    """Bootstrap the session and pick the store variant it can use."""
    session = SessionBootstrap(
        settings.identity_pool_id,
        auth_token=settings.auth_token,
        login_provider=settings.auth_login_provider,
        region=settings.aws_region,
    ).establish()

    store: BalanceStore
    if session.simulated or not settings.backend_configured:
        store = InMemoryBalanceStore()
    else:
        store = DynamoBalanceStore(table_name=settings.ddb_table, app_id=settings.app_id)

    poller = PricePoller(
        PriceFeedClient(settings.price_url),
        interval_seconds=settings.price_refresh_seconds,
        fallback_price=settings.fallback_price,
    )
    return TradingTerminal(session, store, poller, notice_ttl_seconds=settings.notice_ttl_seconds)


def create_app(settings: Settings | None = None, terminal: TradingTerminal | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        term = terminal or await asyncio.to_thread(build_terminal, settings)
        await term.start()
        app.state.terminal = term
        try:
            yield
        finally:
            await term.stop()
            if terminal is None:
                await term.poller.client.close()

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_allow_origin.split(",")],
        allow_methods=[m.strip() for m in settings.cors_allow_methods.split(",")],
        allow_headers=[h.strip() for h in settings.cors_allow_headers.split(",")],
    )

    # --- error mapping --------------------------------------------------------

    @app.exception_handler(InvalidAmountError)
    async def _invalid_amount(request: Request, exc: InvalidAmountError) -> JSONResponse:
        return JSONResponse(status_code=422, content=ErrorResponse(detail=str(exc)).model_dump())

    @app.exception_handler(InsufficientBalanceError)
    async def _insufficient(request: Request, exc: InsufficientBalanceError) -> JSONResponse:
        body = ErrorResponse(detail=str(exc), side=exc.side)
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(TransactionInProgressError)
    async def _in_progress(request: Request, exc: TransactionInProgressError) -> JSONResponse:
        return JSONResponse(status_code=409, content=ErrorResponse(detail=str(exc)).model_dump())

    @app.exception_handler(BalanceStoreError)
    async def _store_failed(request: Request, exc: BalanceStoreError) -> JSONResponse:
        logger.error("Store failure on {}: {}", request.url.path, exc)
        return JSONResponse(status_code=502, content=ErrorResponse(detail=str(exc)).model_dump())

    # --- routes ---------------------------------------------------------------

    def _terminal(request: Request) -> TradingTerminal:
        return request.app.state.terminal

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(name=settings.app_name, version=settings.app_version, time=_now_epoch())

    @app.get("/price", response_model=PriceResponse)
    def price(request: Request) -> PriceResponse:
        poller = _terminal(request).poller
        return PriceResponse(
            price=poller.price,
            is_fallback=poller.is_fallback,
            refreshed_at=poller.refreshed_at,
            refresh_interval_seconds=poller.interval_seconds,
        )

    @app.get("/portfolio", response_model=PortfolioSnapshot)
    async def portfolio(
        request: Request,
        refresh: bool = Query(False, description="Re-read the balance record from the store"),
    ) -> PortfolioSnapshot:
        return await _terminal(request).portfolio(refresh=refresh)

    @app.post(
        "/transactions",
        response_model=TransactionReceipt,
        responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    )
    async def transactions(request: Request, body: TransactionRequest) -> TransactionReceipt:
        return await _terminal(request).submit(body.kind, body.amount)

    @app.get("/notices", response_model=list[Notice])
    def notices(request: Request) -> list[Notice]:
        return _terminal(request).active_notices()

    return app


app = create_app()
