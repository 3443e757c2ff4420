"""Identity provider adapter.

Wraps provider endpoint configuration and exposes authorization URL
construction, the code-for-token exchange, OIDC discovery and ID token
validation. HTTP goes through httpx; JOSE through authlib.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging
import time

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode, urlparse

import httpx

from authlib.common.encoding import to_native
from authlib.jose import JsonWebKey, JsonWebToken
from authlib.jose.errors import JoseError
from authlib.oidc.core.util import create_half_hash

from ..exceptions import (
    ConfigurationError,
    DiscoveryError,
    ExchangeError,
    IdTokenValidationError,
)
from ..log import redact_sensitive_data
from ..types import ProviderMetadata, TokenSet


if TYPE_CHECKING:
    from ..config import OAuth2Settings


logger = logging.getLogger("pkceauth.auth")

WELL_KNOWN_PATH = "/.well-known/openid-configuration"

ID_TOKEN_ALGORITHMS = [
    "RS256",
    "RS384",
    "RS512",
    "ES256",
    "ES384",
    "ES512",
    "PS256",
    "PS384",
    "PS512",
]


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(frozen=True)
class ProviderConfig:
    """Static configuration of an OAuth2 / OIDC provider.

    Endpoints may be left empty when an ``issuer`` is given; they are then
    resolved from the discovery document.

    Parameters
    ----------
    client_id : str
        The client ID registered at the provider.
    redirect_uri : str
        The registered redirect URI.
    authorization_endpoint : str
        The provider's authorization endpoint.
    token_endpoint : str
        The provider's token endpoint.
    issuer : str
        The OIDC issuer URL (used for discovery).
    scopes : tuple[str, ...]
        Requested scopes; ``openid`` is added for OIDC flows.
    client_secret : str
        Client secret for confidential clients (empty for public clients).
    """

    client_id: str
    redirect_uri: str
    authorization_endpoint: str = ""
    token_endpoint: str = ""
    issuer: str = ""
    scopes: tuple[str, ...] = ()
    client_secret: str = ""

    def __post_init__(self) -> None:
        """Validate the configuration."""
        if not self.client_id.strip():
            msg = "Provider configuration requires a client_id"
            raise ConfigurationError(msg)
        for name in ("redirect_uri", "authorization_endpoint", "token_endpoint", "issuer"):
            value = getattr(self, name)
            if name == "redirect_uri" or value:
                if not _is_http_url(value):
                    msg = f"{name} must be an absolute http(s) URL, got {value!r}"
                    raise ConfigurationError(msg, field=name)
        if not self.issuer and not (self.authorization_endpoint and self.token_endpoint):
            msg = "Either an issuer or both authorization_endpoint and token_endpoint are required"
            raise ConfigurationError(msg)

    @property
    def provider_name(self) -> str:
        """Short provider label used in logs and error context."""
        source = self.issuer or self.authorization_endpoint
        return urlparse(source).netloc

    def resolve(self, metadata: ProviderMetadata) -> ProviderConfig:
        """Return a copy with empty endpoints filled from discovery.

        Explicitly configured endpoints take precedence.
        """
        return replace(
            self,
            authorization_endpoint=self.authorization_endpoint or metadata.authorization_endpoint,
            token_endpoint=self.token_endpoint or metadata.token_endpoint,
        )


def access_token_hash(access_token: str, alg: str) -> str | None:
    """Compute the OIDC ``at_hash`` of an access token.

    Left half of the digest selected by the signing algorithm's hash size,
    base64url-encoded without padding.

    Returns
    -------
    str or None
        The hash, or None if no hash function corresponds to ``alg``.
    """
    half_hash = create_half_hash(access_token, alg)
    if half_hash is None:
        return None
    return to_native(half_hash)


class ProviderClient:
    """HTTP-facing adapter for one identity provider.

    Parameters
    ----------
    config : ProviderConfig
        The provider configuration.
    http_client : httpx.AsyncClient, optional
        Client to use for all requests. If omitted, one is created on
        first use and closed by ``close()``.
    timeout : float
        Request timeout in seconds for a client created here.
    """

    def __init__(
        self,
        config: ProviderConfig,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the provider client."""
        self.config = config
        self.timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None
        self._metadata: ProviderMetadata | None = None

    @property
    def metadata(self) -> ProviderMetadata | None:
        """Discovered provider metadata, or None before discovery."""
        return self._metadata

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client and self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    def build_authorization_url(
        self,
        challenge: str,
        state: str,
        nonce: str | None = None,
        extra_params: dict[str, str] | None = None,
    ) -> str:
        """Build the full authorization URL.

        Parameters
        ----------
        challenge : str
            The S256 PKCE code challenge.
        state : str
            CSRF token round-tripped through the provider.
        nonce : str, optional
            OIDC nonce; when given, ``scope`` is guaranteed to contain ``openid``.
        extra_params : dict, optional
            Additional query parameters.

        Returns
        -------
        str
            The full authorization URL.
        """
        params: dict[str, str] = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
            "state": state,
        }
        scopes = list(self.config.scopes)
        if nonce is not None and "openid" not in scopes:
            scopes.insert(0, "openid")
        if scopes:
            params["scope"] = " ".join(scopes)
        if nonce is not None:
            params["nonce"] = nonce
        if extra_params:
            params.update(extra_params)

        endpoint = self.config.authorization_endpoint
        if not endpoint:
            msg = "Authorization endpoint is not configured and was not discovered"
            raise ConfigurationError(msg, provider=self.config.provider_name)
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(params)}"

    async def exchange_code(self, code: str, verifier: str) -> TokenSet:
        """Exchange an authorization code for tokens.

        Parameters
        ----------
        code : str
            The authorization code from the redirect.
        verifier : str
            The PKCE code verifier of the attempt.

        Returns
        -------
        TokenSet
            The token set from the provider.

        Raises
        ------
        ExchangeError
            If the request fails or the provider returns an error.
        """
        provider = self.config.provider_name
        if not self.config.token_endpoint:
            msg = "Token endpoint is not configured and was not discovered"
            raise ExchangeError(msg, provider=provider)

        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "client_id": self.config.client_id,
            "code_verifier": verifier,
        }
        if self.config.client_secret:
            data["client_secret"] = self.config.client_secret

        try:
            client = await self._get_client()
            resp = await client.post(
                self.config.token_endpoint,
                data=data,
                headers={"Accept": "application/json"},
            )
            resp.raise_for_status()
            raw = resp.json()
        except httpx.HTTPStatusError as exc:
            body = exc.response.text
            msg = f"Token exchange failed: {exc.response.status_code} {body}"
            raise ExchangeError(
                msg, provider=provider, status_code=exc.response.status_code, body=body
            ) from exc
        except httpx.HTTPError as exc:
            msg = f"Token exchange request failed: {exc}"
            raise ExchangeError(msg, provider=provider) from exc
        except ValueError as exc:
            msg = f"Token endpoint returned a non-JSON body: {exc}"
            raise ExchangeError(msg, provider=provider, body=resp.text) from exc

        logger.debug("Token response from %s: %s", provider, redact_sensitive_data(raw))

        if not isinstance(raw, dict):
            msg = "Token endpoint returned an unexpected JSON document"
            raise ExchangeError(msg, provider=provider, body=resp.text)
        if "error" in raw:
            msg = f"Token error: {raw.get('error_description') or raw['error']}"
            raise ExchangeError(msg, provider=provider, status_code=resp.status_code, body=resp.text)
        if not raw.get("access_token"):
            msg = "Token response did not contain an access_token"
            raise ExchangeError(msg, provider=provider, status_code=resp.status_code, body=resp.text)

        # Some providers send expires_in as a string
        expires_in = raw.get("expires_in")
        if expires_in is not None:
            try:
                expires_in = int(expires_in)
            except (TypeError, ValueError) as exc:
                msg = f"Token response has an invalid expires_in: {expires_in!r}"
                raise ExchangeError(msg, provider=provider, body=resp.text) from exc

        return TokenSet(
            access_token=raw["access_token"],
            token_type=raw.get("token_type", "Bearer"),
            refresh_token=raw.get("refresh_token"),
            expires_in=expires_in,
            id_token=raw.get("id_token"),
            scope=raw.get("scope", ""),
            raw=raw,
            issued_at=time.time(),
        )

    async def _get_json(self, url: str, what: str) -> dict[str, Any]:
        """Fetch a JSON object during discovery."""
        provider = self.config.provider_name
        try:
            client = await self._get_client()
            resp = await client.get(url, headers={"Accept": "application/json"})
            resp.raise_for_status()
            document = resp.json()
        except httpx.HTTPStatusError as exc:
            msg = f"Fetching {what} failed: {exc.response.status_code}"
            raise DiscoveryError(msg, provider=provider, url=url) from exc
        except httpx.HTTPError as exc:
            msg = f"Fetching {what} failed: {exc}"
            raise DiscoveryError(msg, provider=provider, url=url) from exc
        except ValueError as exc:
            msg = f"{what.capitalize()} is not valid JSON"
            raise DiscoveryError(msg, provider=provider, url=url) from exc
        if not isinstance(document, dict):
            msg = f"{what.capitalize()} is not a JSON object"
            raise DiscoveryError(msg, provider=provider, url=url)
        return document

    async def discover(self) -> ProviderMetadata:
        """Resolve provider metadata from the issuer's discovery document.

        Fetches ``{issuer}/.well-known/openid-configuration`` and the JWKS
        it points to. The result is cached for the client's lifetime and the
        configuration's empty endpoints are filled in.

        Returns
        -------
        ProviderMetadata
            The discovered metadata, including signing keys.

        Raises
        ------
        DiscoveryError
            If either document cannot be fetched or is invalid, or the
            published issuer does not match the configured one.
        """
        if self._metadata is not None:
            return self._metadata

        provider = self.config.provider_name
        if not self.config.issuer:
            msg = "Discovery requires an issuer"
            raise DiscoveryError(msg, provider=provider)

        expected = self.config.issuer.rstrip("/")
        document = await self._get_json(f"{expected}{WELL_KNOWN_PATH}", "discovery document")

        discovered_issuer = str(document.get("issuer", ""))
        if discovered_issuer.rstrip("/") != expected:
            msg = f"OIDC issuer mismatch: expected '{expected}', got '{discovered_issuer}'"
            raise DiscoveryError(msg, provider=provider)

        jwks_uri = document.get("jwks_uri")
        if not jwks_uri:
            msg = "Discovery document does not publish a jwks_uri"
            raise DiscoveryError(msg, provider=provider)

        jwks = await self._get_json(jwks_uri, "signing key set")
        if not isinstance(jwks.get("keys"), list):
            msg = "Signing key set has no 'keys' array"
            raise DiscoveryError(msg, provider=provider, url=jwks_uri)

        metadata = ProviderMetadata(
            issuer=discovered_issuer,
            authorization_endpoint=document.get("authorization_endpoint", ""),
            token_endpoint=document.get("token_endpoint", ""),
            jwks_uri=jwks_uri,
            jwks=jwks,
            userinfo_endpoint=document.get("userinfo_endpoint", ""),
            signing_algs=tuple(document.get("id_token_signing_alg_values_supported", ())),
            raw=document,
        )
        self.config = self.config.resolve(metadata)
        self._metadata = metadata
        logger.info(
            "Discovered OIDC provider %s (%d signing keys)", provider, len(jwks["keys"])
        )
        return metadata

    def validate_id_token(self, id_token: str, nonce: str) -> tuple[dict[str, Any], str]:
        """Validate an OIDC ID token against the discovered keys.

        Checks signature (via JWKS), issuer, audience, expiry, and nonce.

        Parameters
        ----------
        id_token : str
            The raw ID token JWT string.
        nonce : str
            The nonce sent in the authorization request.

        Returns
        -------
        tuple[dict[str, Any], str]
            The validated claims and the token's signing algorithm.

        Raises
        ------
        IdTokenValidationError
            If validation fails for any reason.
        """
        provider = self.config.provider_name
        if self._metadata is None:
            msg = "ID token cannot be validated before discovery"
            raise IdTokenValidationError(msg, provider=provider)

        jwt = JsonWebToken(ID_TOKEN_ALGORITHMS)
        claims_options: dict[str, Any] = {
            "iss": {"essential": True, "value": self._metadata.issuer},
            "aud": {"essential": True, "value": self.config.client_id},
            "exp": {"essential": True},
        }

        try:
            key_set = JsonWebKey.import_key_set(self._metadata.jwks)
            claims = jwt.decode(id_token, key_set, claims_options=claims_options)
            claims.validate()
        except (JoseError, ValueError) as exc:
            msg = f"ID token validation failed: {exc}"
            raise IdTokenValidationError(msg, provider=provider) from exc

        if claims.get("nonce") != nonce:
            msg = "ID token nonce does not match the authorization request"
            raise IdTokenValidationError(msg, provider=provider)

        return dict(claims), str(claims.header.get("alg", ""))


def create_provider_config(settings: OAuth2Settings) -> ProviderConfig:
    """Create a ProviderConfig from OAuth2Settings.

    Parameters
    ----------
    settings : OAuth2Settings
        The OAuth2 configuration settings.

    Returns
    -------
    ProviderConfig
        A validated provider configuration.

    Raises
    ------
    ConfigurationError
        If the settings describe an invalid provider.
    """
    scopes = tuple(s for s in settings.scopes.split() if s)
    return ProviderConfig(
        client_id=settings.client_id,
        redirect_uri=settings.redirect_uri,
        authorization_endpoint=settings.authorization_endpoint,
        token_endpoint=settings.token_endpoint,
        issuer=settings.issuer,
        scopes=scopes,
        client_secret=settings.client_secret,
    )
