"""Flow variants selected when a session is constructed.

A variant decides whether a nonce is generated, how strictly persisted
state is loaded, what provider preparation is needed, and how the token
response is verified. ``PlainOAuth2`` trusts the token endpoint response;
``OidcWithIdToken`` requires and verifies a signed ID token.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from ..exceptions import (
    ConfigurationError,
    IdTokenValidationError,
    MissingIdTokenError,
    TokenTamperError,
)
from .providers import access_token_hash


if TYPE_CHECKING:
    from ..types import TokenSet
    from .challenge import ChallengeMaterial
    from .providers import ProviderClient, ProviderConfig


logger = logging.getLogger("pkceauth.auth")


class FlowVariant(ABC):
    """Capability set injected into an AuthSession."""

    name: str = ""
    requires_nonce: bool = False
    strict_state: bool = False

    @abstractmethod
    def check_config(self, config: ProviderConfig) -> None:
        """Reject configurations this variant cannot run with.

        Raises
        ------
        ConfigurationError
            If required configuration is missing.
        """

    async def prepare(self, client: ProviderClient) -> None:
        """Resolve anything the provider client needs before a flow starts."""

    @abstractmethod
    async def verify(
        self,
        client: ProviderClient,
        tokens: TokenSet,
        material: ChallengeMaterial,
    ) -> dict[str, Any] | None:
        """Verify a token response.

        Returns
        -------
        dict[str, Any] or None
            Trusted identity claims, or None if the variant has none.
        """

    def __repr__(self) -> str:
        """Return the variant name."""
        return f"{self.__class__.__name__}()"


class PlainOAuth2(FlowVariant):
    """Authorization Code + PKCE without identity claims.

    Persisted verifier and csrf are read independently; a record missing
    one of them is reported as incomplete rather than absent.
    """

    name = "oauth2"

    def check_config(self, config: ProviderConfig) -> None:
        """Require explicit authorization and token endpoints."""
        if not config.authorization_endpoint or not config.token_endpoint:
            msg = "OAuth2 flow requires authorization_endpoint and token_endpoint"
            raise ConfigurationError(msg, provider=config.provider_name)

    async def verify(
        self,
        client: ProviderClient,
        tokens: TokenSet,
        material: ChallengeMaterial,
    ) -> dict[str, Any] | None:
        """Accept the token response as returned."""
        return None


class OidcWithIdToken(FlowVariant):
    """OpenID Connect Authorization Code + PKCE with ID token verification.

    Persisted state is all-or-nothing: verifier, csrf and nonce must all be
    present, otherwise no attempt is considered active.
    """

    name = "oidc"
    requires_nonce = True
    strict_state = True

    def check_config(self, config: ProviderConfig) -> None:
        """Require an issuer for discovery."""
        if not config.issuer:
            msg = "OpenID Connect flow requires an issuer"
            raise ConfigurationError(msg, provider=config.provider_name)

    async def prepare(self, client: ProviderClient) -> None:
        """Run discovery (cached after the first call)."""
        await client.discover()

    async def verify(
        self,
        client: ProviderClient,
        tokens: TokenSet,
        material: ChallengeMaterial,
    ) -> dict[str, Any] | None:
        """Check ID token presence, signature, nonce and access token hash.

        Raises
        ------
        MissingIdTokenError
            If the token response has no ID token.
        IdTokenValidationError
            If the signature, claims or nonce are invalid.
        TokenTamperError
            If ``at_hash`` does not match the returned access token.
        """
        provider = client.config.provider_name
        if not tokens.id_token:
            msg = "The provider did not respond with an ID token"
            raise MissingIdTokenError(msg, provider=provider)
        if material.nonce is None:
            msg = "No nonce was stored for this attempt"
            raise IdTokenValidationError(msg, provider=provider)

        await client.discover()
        claims, alg = client.validate_id_token(tokens.id_token, material.nonce)

        expected_hash = claims.get("at_hash")
        if expected_hash is not None:
            actual_hash = access_token_hash(tokens.access_token, alg)
            if actual_hash is None:
                msg = f"Cannot compute access token hash for algorithm {alg!r}"
                raise IdTokenValidationError(msg, provider=provider)
            if actual_hash != expected_hash:
                msg = "Access token does not match the ID token's at_hash claim"
                raise TokenTamperError(msg, provider=provider, alg=alg)
        else:
            logger.debug("ID token from %s carries no at_hash claim", provider)

        return claims


_VARIANTS: dict[str, type[FlowVariant]] = {
    PlainOAuth2.name: PlainOAuth2,
    OidcWithIdToken.name: OidcWithIdToken,
}


def get_variant(name: str) -> FlowVariant:
    """Create a flow variant by name ("oauth2" or "oidc").

    Raises
    ------
    ConfigurationError
        If the name is unknown.
    """
    try:
        return _VARIANTS[name]()
    except KeyError:
        msg = f"Unknown flow variant: {name}"
        raise ConfigurationError(msg) from None
