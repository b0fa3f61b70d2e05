from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from tradecoin.core.errors import SessionError
from tradecoin.core.models import SessionMode

SIMULATED_WARNING = "Warning: Running in simulated mode. Database connection disabled."
AUTH_FAILED_WARNING = "Warning: Authentication failed. Running in simulated mode."
OFFLINE_IDENTITY_LABEL = "Simulated/Offline"


class _CognitoIdentity(Protocol):
    def get_id(self, *, IdentityPoolId: str, Logins: dict[str, str] = ...) -> dict[str, Any]: ...  # noqa: N803


@dataclass(frozen=True)
class Session:
    identity: str | None
    mode: SessionMode
    warning: str | None = None

    @property
    def simulated(self) -> bool:
        return self.identity is None

    @property
    def label(self) -> str:
        return self.identity or OFFLINE_IDENTITY_LABEL


def simulated_session(warning: str | None = SIMULATED_WARNING) -> Session:
    return Session(identity=None, mode="simulated", warning=warning)


class SessionBootstrap:
    """
    Resolves the identity that keys the balance record.

    With a pre-issued token the identity is looked up through the configured
    login provider, otherwise an anonymous (unauthenticated) identity is
    issued by the pool. Failures never propagate: the caller gets a simulated
    session instead.
    """

    def __init__(
        self,
        identity_pool_id: str,
        *,
        auth_token: str | None = None,
        login_provider: str = "cognito-identity.amazonaws.com",
        region: str | None = None,
        client: _CognitoIdentity | None = None,
    ) -> None:
        self.identity_pool_id = identity_pool_id
        self.auth_token = auth_token
        self.login_provider = login_provider
        self.region = region
        self._client = client

    def _cognito(self) -> _CognitoIdentity:
        if self._client is None:
            self._client = boto3.client("cognito-identity", region_name=self.region)  # type: ignore  # noqa: PGH003
        return self._client

    def _request_identity(self) -> tuple[str, SessionMode]:
        kwargs: dict[str, Any] = {"IdentityPoolId": self.identity_pool_id}
        mode: SessionMode = "anonymous"
        if self.auth_token:
            kwargs["Logins"] = {self.login_provider: self.auth_token}
            mode = "authenticated"

        try:
            resp = self._cognito().get_id(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise SessionError(f"Identity pool rejected {mode} sign-in: {e}") from e  # noqa: TRY003

        identity = resp.get("IdentityId")
        if not isinstance(identity, str) or not identity:
            raise SessionError("Identity pool returned no IdentityId")  # noqa: TRY003
        return identity, mode

    def establish(self) -> Session:
        if not self.identity_pool_id:
            logger.warning("No identity pool configured, running in simulated mode")
            return simulated_session()

        try:
            identity, mode = self._request_identity()
        except SessionError as e:
            logger.error("Auth failed, running in simulated mode: {}", e)
            return simulated_session(AUTH_FAILED_WARNING)

        logger.info("Session established ({})", mode)
        return Session(identity=identity, mode=mode)
