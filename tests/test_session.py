from botocore.exceptions import EndpointConnectionError
from conftest import FakeCognito, client_error

from tradecoin.core.session import AUTH_FAILED_WARNING, SIMULATED_WARNING, SessionBootstrap


def test_no_identity_pool_means_simulated_mode():
    cognito = FakeCognito()
    session = SessionBootstrap("", client=cognito).establish()

    assert session.identity is None
    assert session.mode == "simulated"
    assert session.simulated
    assert session.warning == SIMULATED_WARNING
    assert session.label == "Simulated/Offline"
    assert cognito.calls == []


def test_anonymous_identity_when_no_token():
    cognito = FakeCognito(identity="us-east-1:anon")
    session = SessionBootstrap("pool-1", client=cognito).establish()

    assert session.identity == "us-east-1:anon"
    assert session.mode == "anonymous"
    assert session.warning is None
    assert cognito.calls == [{"IdentityPoolId": "pool-1"}]


def test_token_is_passed_through_login_provider():
    cognito = FakeCognito(identity="us-east-1:user")
    session = SessionBootstrap(
        "pool-1",
        auth_token="tok",
        login_provider="accounts.example.com",
        client=cognito,
    ).establish()

    assert session.mode == "authenticated"
    assert session.label == "us-east-1:user"
    assert cognito.calls == [{"IdentityPoolId": "pool-1", "Logins": {"accounts.example.com": "tok"}}]


def test_rejected_token_degrades_to_simulated():
    cognito = FakeCognito(error=client_error("NotAuthorizedException", "GetId"))
    session = SessionBootstrap("pool-1", auth_token="expired", client=cognito).establish()

    assert session.simulated
    assert session.warning == AUTH_FAILED_WARNING


def test_unreachable_backend_degrades_to_simulated():
    cognito = FakeCognito(error=EndpointConnectionError(endpoint_url="https://cognito-identity.test"))
    assert SessionBootstrap("pool-1", client=cognito).establish().mode == "simulated"


def test_missing_identity_in_response_degrades_to_simulated():
    cognito = FakeCognito(identity=None)
    assert SessionBootstrap("pool-1", client=cognito).establish().simulated
