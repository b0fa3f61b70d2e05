from __future__ import annotations

import contextlib
import json
from collections.abc import Callable
from decimal import Decimal
from typing import Any, Protocol, cast

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger
from mypy_boto3_dynamodb import DynamoDBServiceResource
from mypy_boto3_dynamodb.service_resource import Table
from mypy_boto3_dynamodb.type_defs import GetItemOutputTypeDef
from pydantic import ValidationError

from tradecoin.core.errors import BalanceStoreError
from tradecoin.core.models import DEFAULT_BALANCE, Balance

BalanceListener = Callable[[Balance], None]
Unsubscribe = Callable[[], None]


def _json_to_ddb_numbers(payload: Any) -> Any:
    """Convert floats to Decimal so boto3 can persist them in DynamoDB."""
    return json.loads(json.dumps(payload), parse_float=Decimal)


def _balance_from_item(item: dict[str, Any]) -> Balance:
    # Missing fields read as zero
    try:
        return Balance(usd=float(item.get("usd") or 0), btc=float(item.get("btc") or 0))
    except (ValidationError, TypeError, ValueError) as e:
        raise BalanceStoreError(f"Stored balance record is unusable: {e}") from e  # noqa: TRY003


class BalanceStore(Protocol):
    def load(self, identity: str | None) -> Balance: ...

    def save(self, identity: str | None, balance: Balance) -> None: ...

    def subscribe(self, identity: str | None, on_change: BalanceListener) -> Unsubscribe: ...

    def refresh(self, identity: str | None) -> Balance: ...


class _Listeners:
    """Per-identity change listeners plus the last value each identity was seen with."""

    def __init__(self) -> None:
        self._by_identity: dict[str | None, list[BalanceListener]] = {}
        self._last_seen: dict[str | None, Balance] = {}

    def add(self, identity: str | None, on_change: BalanceListener) -> Unsubscribe:
        self._by_identity.setdefault(identity, []).append(on_change)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._by_identity.get(identity, []).remove(on_change)

        return unsubscribe

    def seen(self, identity: str | None, balance: Balance) -> None:
        self._last_seen[identity] = balance

    def publish(self, identity: str | None, balance: Balance, *, only_if_changed: bool = False) -> None:
        if only_if_changed and self._last_seen.get(identity) == balance:
            return
        self._last_seen[identity] = balance
        for listener in list(self._by_identity.get(identity, [])):
            try:
                listener(balance)
            except Exception:  # noqa: BLE001
                logger.exception("Balance listener {!r} failed", listener)


class InMemoryBalanceStore:
    """Simulated mode: balances live in process memory and nothing can fail."""

    def __init__(self, initial: Balance = DEFAULT_BALANCE) -> None:
        self.initial = initial
        self._records: dict[str | None, Balance] = {}
        self._listeners = _Listeners()

    def load(self, identity: str | None) -> Balance:
        balance = self._records.setdefault(identity, self.initial)
        self._listeners.seen(identity, balance)
        return balance

    def save(self, identity: str | None, balance: Balance) -> None:
        self._records[identity] = balance
        self._listeners.publish(identity, balance)

    def subscribe(self, identity: str | None, on_change: BalanceListener) -> Unsubscribe:
        return self._listeners.add(identity, on_change)

    def refresh(self, identity: str | None) -> Balance:
        balance = self._records.setdefault(identity, self.initial)
        self._listeners.publish(identity, balance, only_if_changed=True)
        return balance


class DynamoBalanceStore:
    """
    One item per identity: ``{pk, usd, btc}``. Writes overwrite the whole
    item (last write wins). Subscribers are told about every change made
    through this adapter and about remote changes picked up by ``refresh``.
    """

    def __init__(
        self,
        table_name: str,
        app_id: str,
        client: DynamoDBServiceResource | None = None,
        initial: Balance = DEFAULT_BALANCE,
    ) -> None:
        self.table_name = table_name
        self.app_id = app_id
        self.initial = initial

        self.dynamodb = client or boto3.resource("dynamodb")  # type: ignore  # noqa: PGH003
        self.table: Table = self.dynamodb.Table(table_name)  # type: ignore  # noqa: PGH003
        self._listeners = _Listeners()

    def _pk(self, identity: str | None) -> str:
        if not identity:
            raise BalanceStoreError("DynamoDB balances need an identity")  # noqa: TRY003
        return f"{self.app_id}#users#{identity}#wallet#balance"

    def _read(self, identity: str | None) -> Balance | None:
        try:
            resp: GetItemOutputTypeDef = self.table.get_item(Key={"pk": self._pk(identity)})  # type: ignore  # noqa: PGH003
        except (ClientError, BotoCoreError) as e:
            raise BalanceStoreError(f"Failed to read balance from '{self.table_name}': {e}") from e  # noqa: TRY003

        item = cast(dict[str, Any] | None, resp.get("Item"))
        if not item:
            return None
        return _balance_from_item(item)

    def _create_default(self, identity: str | None) -> Balance:
        doc: dict[str, Any] = {"pk": self._pk(identity), **_json_to_ddb_numbers(self.initial.model_dump())}
        try:
            self.table.put_item(Item=doc, ConditionExpression="attribute_not_exists(pk)")
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "ConditionalCheckFailedException":
                raise BalanceStoreError(f"Failed to create balance in '{self.table_name}': {e}") from e  # noqa: TRY003
            # Someone else created it first
            existing = self._read(identity)
            if existing is not None:
                return existing
        except BotoCoreError as e:
            raise BalanceStoreError(f"Failed to create balance in '{self.table_name}': {e}") from e  # noqa: TRY003
        logger.info("Created default balance for a new identity")
        return self.initial

    def load(self, identity: str | None) -> Balance:
        balance = self._read(identity)
        if balance is None:
            balance = self._create_default(identity)
        self._listeners.seen(identity, balance)
        return balance

    def save(self, identity: str | None, balance: Balance) -> None:
        doc: dict[str, Any] = {"pk": self._pk(identity), **_json_to_ddb_numbers(balance.model_dump())}
        try:
            self.table.put_item(Item=doc)
        except (ClientError, BotoCoreError) as e:
            raise BalanceStoreError(f"Failed to write balance to '{self.table_name}': {e}") from e  # noqa: TRY003
        self._listeners.publish(identity, balance)

    def subscribe(self, identity: str | None, on_change: BalanceListener) -> Unsubscribe:
        return self._listeners.add(identity, on_change)

    def refresh(self, identity: str | None) -> Balance:
        balance = self._read(identity)
        if balance is None:
            balance = self._create_default(identity)
        self._listeners.publish(identity, balance, only_if_changed=True)
        return balance
