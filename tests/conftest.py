"""Pytest configuration and fixtures for Aqara Airer tests."""

from typing import Any

import httpx
import pytest

from custom_components.aqara_airer.api import AqaraAirerClient
from custom_components.aqara_airer.const import AIRER_MODEL, REDIRECT_URI
from custom_components.aqara_airer.models import TokenSession

START_TIME = 1_700_000_000.0
AIRER_DID = "lumi.airer.158d0001"
ACCESS_TOKEN = "access_token_value"  # noqa: S105
REFRESH_TOKEN = "refresh_token_value"  # noqa: S105
CLIENT_ID = "app_id_value"
CLIENT_SECRET = "app_secret_value"  # noqa: S105
ACCOUNT = "user@example.com"
PASSWORD = "password123"  # noqa: S105

START_MS = int(START_TIME * 1000)
EXPIRES_IN = 7200


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def resource_response(attr: str, value: Any, did: str = AIRER_DID) -> dict:  # noqa: ANN401
    """Build a resource query response carrying a single attribute."""
    return {
        "code": 0,
        "result": [
            {"did": did, "attr": attr, "value": str(value), "timeStamp": 0},
        ],
    }


@pytest.fixture
def clock() -> FakeClock:
    """Fixture providing a controllable wall clock."""
    return FakeClock()


@pytest.fixture
def sample_authorize_response() -> dict:
    """Fixture providing an authorize response with the JSON envelope."""
    return {
        "code": 0,
        "result": {"location": f"{REDIRECT_URI}?code=auth_code_value&state="},
    }


@pytest.fixture
def sample_token_response() -> dict:
    """Fixture providing a result-wrapped token response."""
    return {
        "code": 0,
        "result": {
            "access_token": ACCESS_TOKEN,
            "refresh_token": REFRESH_TOKEN,
            "expires_in": "7200",
        },
    }


@pytest.fixture
def sample_device_list_response() -> dict:
    """Fixture providing a device list containing the airer.

    Returns:
        A device query response with a gateway and the airer.

    """
    return {
        "code": 0,
        "result": {
            "data": [
                {"did": "lumi.gateway.1", "model": "lumi.gateway.aqhm01"},
                {"did": AIRER_DID, "model": AIRER_MODEL},
            ],
            "totalCount": 2,
        },
    }


@pytest.fixture
def sample_update_response() -> dict:
    """Fixture providing a successful resource update response."""
    return {"code": 0, "result": None}


def make_client(
    session: httpx.AsyncClient,
    clock: FakeClock,
    **kwargs: Any,  # noqa: ANN401
) -> AqaraAirerClient:
    """Create a client against the given session and clock."""
    return AqaraAirerClient(
        session,
        CLIENT_ID,
        CLIENT_SECRET,
        ACCOUNT,
        PASSWORD,
        clock=clock,
        **kwargs,
    )


def make_ready_client(
    session: httpx.AsyncClient,
    clock: FakeClock,
    **kwargs: Any,  # noqa: ANN401
) -> AqaraAirerClient:
    """Create a client that is already authenticated and resolved."""
    client = make_client(session, clock, **kwargs)
    client._tokens = TokenSession(
        access_token=ACCESS_TOKEN,
        refresh_token=REFRESH_TOKEN,
        expire_at=START_MS + EXPIRES_IN * 1000,
    )
    client._did = AIRER_DID
    return client
