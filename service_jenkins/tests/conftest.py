"""
Shared fixtures for Jenkins provider tests.
"""

import time
from typing import Any, Callable, Dict, Optional

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from jose import jwt

from shared.config import JENKINS_ISSUER, JenkinsProviderConfig
from shared.metrics import ProviderMetrics
from prometheus_client import CollectorRegistry


JOB_SUBJECT = "https://jenkins.io/job/example-project"
TEST_AUDIENCE = "https://athenz.io"


def _pem(private_key) -> str:
    return private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="session")
def ec_private_key():
    """EC P-256 key signing the test ID tokens."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ec_public_key(ec_private_key):
    return ec_private_key.public_key()


@pytest.fixture(scope="session")
def other_private_key():
    """Key that is never trusted by any key set."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def id_token_factory(ec_private_key) -> Callable[..., str]:
    """Create Jenkins ID tokens with selectable claims."""

    def _generate(
        issuer: str = JENKINS_ISSUER,
        issued_at: Optional[int] = None,
        *,
        audience: Any = TEST_AUDIENCE,
        skip_subject: bool = False,
        skip_issued_at: bool = False,
        expires_in: int = 3600,
        kid: str = "0",
        private_key=None,
        extra_claims: Optional[Dict[str, Any]] = None,
    ) -> str:
        now = int(time.time()) if issued_at is None else issued_at
        claims: Dict[str, Any] = {
            "exp": now + expires_in,
            "iss": issuer,
            "aud": audience,
            "event_name": "push",
        }
        if not skip_subject:
            claims["sub"] = JOB_SUBJECT
        if not skip_issued_at:
            claims["iat"] = now
        if extra_claims:
            claims.update(extra_claims)
        return jwt.encode(
            claims,
            _pem(private_key or ec_private_key),
            algorithm="ES256",
            headers={"kid": kid},
        )

    return _generate


@pytest.fixture
def metrics():
    return ProviderMetrics("jenkins", CollectorRegistry())


@pytest.fixture
def provider_config():
    return JenkinsProviderConfig(
        jwks_uri="https://config.athenz.io",
        audience=TEST_AUDIENCE,
    )


@pytest.fixture
def mock_http_client():
    """HTTP client whose discovery and JWKS endpoints return nothing useful."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/.well-known/openid-configuration"):
            return httpx.Response(404)
        return httpx.Response(200, json={"keys": []})

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        yield client
