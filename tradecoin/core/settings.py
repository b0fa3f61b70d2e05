from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

COINDESK_PRICE_URL = "https://api.coindesk.com/v1/bpi/currentprice/USD.json"


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    app_id: str
    ddb_table: str
    identity_pool_id: str
    auth_token: str | None
    auth_login_provider: str
    aws_region: str | None
    price_url: str
    price_refresh_seconds: float
    fallback_price: float
    notice_ttl_seconds: float
    log_level: str
    cors_allow_origin: str
    cors_allow_headers: str
    cors_allow_methods: str

    @property
    def backend_configured(self) -> bool:
        return bool(self.ddb_table and self.identity_pool_id)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    refresh = float(os.getenv("PRICE_REFRESH_SECONDS", "15"))
    fallback = float(os.getenv("FALLBACK_PRICE", "68500.0"))
    if refresh <= 0 or fallback <= 0:
        raise RuntimeError("PRICE_REFRESH_SECONDS and FALLBACK_PRICE must be positive")  # noqa: TRY003
    return Settings(
        app_name=os.getenv("APP_NAME", "tradecoin-api"),
        app_version=os.getenv("APP_VERSION", "0.1.0"),
        app_id=os.getenv("APP_ID", "default-app-id"),
        ddb_table=os.getenv("DDB_TABLE", "tradecoin_wallets"),
        identity_pool_id=os.getenv("IDENTITY_POOL_ID", ""),
        auth_token=os.getenv("AUTH_TOKEN") or None,
        auth_login_provider=os.getenv("AUTH_LOGIN_PROVIDER", "cognito-identity.amazonaws.com"),
        aws_region=os.getenv("AWS_REGION") or None,
        price_url=os.getenv("PRICE_URL", COINDESK_PRICE_URL),
        price_refresh_seconds=refresh,
        fallback_price=fallback,
        notice_ttl_seconds=float(os.getenv("NOTICE_TTL_SECONDS", "5")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        cors_allow_origin=os.getenv("CORS_ALLOW_ORIGIN", "*"),
        cors_allow_headers=os.getenv("CORS_ALLOW_HEADERS", "Content-Type,Authorization"),
        cors_allow_methods=os.getenv("CORS_ALLOW_METHODS", "GET,POST,OPTIONS"),
    )
