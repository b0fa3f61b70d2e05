from __future__ import annotations

import dataclasses
from typing import Any

import httpx
import pytest
from botocore.exceptions import ClientError

from tradecoin.adapters.price_feed import PriceFeedClient, PricePoller
from tradecoin.core.settings import Settings, get_settings

PRICE_URL = "https://prices.test/v1/bpi/currentprice/USD.json"


def coindesk_payload(rate: float) -> dict[str, Any]:
    return {"bpi": {"USD": {"code": "USD", "rate": f"{rate:,.4f}", "rate_float": rate}}}


def price_transport(rate: float | None = None, status: int = 200) -> httpx.MockTransport:
    """Serve a fixed rate, or a 503 when ``rate`` is None."""

    def handler(request: httpx.Request) -> httpx.Response:
        if rate is None:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(status, json=coindesk_payload(rate))

    return httpx.MockTransport(handler)


def make_poller(rate: float | None = None, fallback: float = 68500.0, interval: float = 15.0) -> PricePoller:
    client = PriceFeedClient(PRICE_URL, transport=price_transport(rate))
    return PricePoller(client, interval_seconds=interval, fallback_price=fallback)


def client_error(code: str, op: str = "PutItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, op)  # type: ignore  # noqa: PGH003


class FakeTable:
    def __init__(self) -> None:
        self.items: dict[str, dict[str, Any]] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.puts: list[dict[str, Any]] = []

    def get_item(self, *, Key: dict[str, Any]) -> dict[str, Any]:  # noqa: N803
        if self.fail_reads:
            raise client_error("ResourceNotFoundException", "GetItem")
        item = self.items.get(Key["pk"])
        return {"Item": dict(item)} if item else {}

    def put_item(self, *, Item: dict[str, Any], ConditionExpression: str | None = None) -> dict[str, Any]:  # noqa: N803
        if self.fail_writes:
            raise client_error("ProvisionedThroughputExceededException")
        if ConditionExpression and Item["pk"] in self.items:
            raise client_error("ConditionalCheckFailedException")
        self.puts.append(dict(Item))
        self.items[Item["pk"]] = dict(Item)
        return {}


class FakeDynamoResource:
    def __init__(self, table: FakeTable) -> None:
        self.table = table
        self.requested: list[str] = []

    def Table(self, name: str) -> FakeTable:  # noqa: N802
        self.requested.append(name)
        return self.table


class FakeCognito:
    def __init__(self, identity: str | None = "us-east-1:0000-aaaa", error: Exception | None = None) -> None:
        self.identity = identity
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def get_id(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return {"IdentityId": self.identity} if self.identity else {}


@pytest.fixture
def settings() -> Settings:
    return dataclasses.replace(
        get_settings(),
        identity_pool_id="",
        auth_token=None,
        price_url=PRICE_URL,
        fallback_price=68500.0,
        notice_ttl_seconds=5.0,
    )


@pytest.fixture
def fake_table() -> FakeTable:
    return FakeTable()
