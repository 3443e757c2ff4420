"""Pytest configuration and fixtures."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

import json
import time

from typing import TYPE_CHECKING, Any

import httpx
import pytest

from authlib.common.encoding import to_native
from authlib.jose import JsonWebKey, JsonWebToken
from authlib.oidc.core.util import create_half_hash

from pkceauth.auth.providers import ProviderConfig
from pkceauth.auth.storage import MemoryKeyValueStore


if TYPE_CHECKING:
    from collections.abc import Callable


ISSUER = "https://idp.example"
CLIENT_ID = "abc"
REDIRECT_URI = "https://app.example/cb"
KEY_ID = "test-key"


# =============================================================================
# Fake identity provider
# =============================================================================


class FakeProvider:
    """In-process identity provider served through ``httpx.MockTransport``.

    Routes map absolute URLs to ``(status, body)`` pairs. Every request is
    recorded so tests can inspect what was sent.
    """

    def __init__(self, issuer: str = ISSUER) -> None:
        self.issuer = issuer
        self.routes: dict[str, tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def discovery_document(self, **overrides: Any) -> dict[str, Any]:
        """Build a discovery document for this provider."""
        document = {
            "issuer": self.issuer,
            "authorization_endpoint": f"{self.issuer}/auth",
            "token_endpoint": f"{self.issuer}/token",
            "jwks_uri": f"{self.issuer}/jwks",
            "userinfo_endpoint": f"{self.issuer}/userinfo",
            "id_token_signing_alg_values_supported": ["RS256"],
        }
        document.update(overrides)
        return document

    def serve_discovery(self, jwks: dict[str, Any], **overrides: Any) -> None:
        """Publish the discovery document and signing keys."""
        self.routes[f"{self.issuer}/.well-known/openid-configuration"] = (
            200,
            self.discovery_document(**overrides),
        )
        self.routes[f"{self.issuer}/jwks"] = (200, jwks)

    def serve_token(self, body: Any, status: int = 200) -> None:
        """Set the token endpoint response."""
        self.routes[f"{self.issuer}/token"] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        if url not in self.routes:
            return httpx.Response(404, text="not found")
        status, body = self.routes[url]
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, content=json.dumps(body).encode("utf-8"))

    def client(self) -> httpx.AsyncClient:
        """Create an HTTP client bound to this provider."""
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def token_requests(self) -> list[dict[str, list[str]]]:
        """Decoded form bodies of every token endpoint request."""
        from urllib.parse import parse_qs

        return [
            parse_qs(request.content.decode("utf-8"))
            for request in self.requests
            if str(request.url) == f"{self.issuer}/token"
        ]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture()
def store() -> MemoryKeyValueStore:
    """Create an empty in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture()
def fake_provider() -> FakeProvider:
    """Create a fake provider with no routes."""
    return FakeProvider()


@pytest.fixture()
def oauth2_config() -> ProviderConfig:
    """Plain OAuth2 configuration with explicit endpoints."""
    return ProviderConfig(
        client_id=CLIENT_ID,
        redirect_uri=REDIRECT_URI,
        authorization_endpoint=f"{ISSUER}/auth",
        token_endpoint=f"{ISSUER}/token",
    )


@pytest.fixture()
def oidc_config() -> ProviderConfig:
    """OpenID Connect configuration relying on discovery."""
    return ProviderConfig(
        client_id=CLIENT_ID,
        redirect_uri=REDIRECT_URI,
        issuer=ISSUER,
        scopes=("profile",),
    )


@pytest.fixture(scope="session")
def signing_key() -> Any:
    """RSA private key used to sign test ID tokens."""
    return JsonWebKey.generate_key("RSA", 2048, is_private=True, options={"kid": KEY_ID})


@pytest.fixture(scope="session")
def jwks(signing_key: Any) -> dict[str, Any]:
    """Public JWKS matching ``signing_key``."""
    public = signing_key.as_dict(is_private=False)
    public["kid"] = KEY_ID
    public["alg"] = "RS256"
    public["use"] = "sig"
    return {"keys": [public]}


@pytest.fixture()
def mint_id_token(signing_key: Any) -> Callable[..., str]:
    """Return a helper that signs an ID token for the test provider.

    Keyword arguments override or add claims; a value of ``None`` removes
    the claim. ``access_token`` adds a matching ``at_hash``.
    """

    def _mint(access_token: str | None = None, **claims: Any) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": ISSUER,
            "aud": CLIENT_ID,
            "sub": "user-1",
            "iat": now,
            "exp": now + 300,
        }
        if access_token is not None:
            payload["at_hash"] = to_native(create_half_hash(access_token, "RS256"))
        payload.update(claims)
        payload = {k: v for k, v in payload.items() if v is not None}
        header = {"alg": "RS256", "kid": KEY_ID}
        token = JsonWebToken(["RS256"]).encode(header, payload, signing_key)
        return to_native(token)

    return _mint
