"""Shared data types for the authentication flow."""

from __future__ import annotations

import time

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class AuthorizationResponse:
    """Authorization code and state parsed from a redirect URL.

    Attributes
    ----------
    code : str
        The authorization code issued by the provider.
    state : str
        The CSRF token echoed back by the provider.
    """

    code: str
    state: str


@dataclass
class TokenSet:
    """Token set returned by the provider's token endpoint.

    Attributes
    ----------
    access_token : str
        The access token for API requests.
    token_type : str
        Token type, typically "Bearer".
    refresh_token : str or None
        Optional refresh token.
    expires_in : int or None
        Token lifetime in seconds from issuance.
    id_token : str or None
        Optional OIDC ID token (compact JWS).
    scope : str
        Space-separated list of granted scopes.
    raw : dict[str, Any]
        The raw token response from the provider.
    issued_at : float
        Unix timestamp when the token was received.
    """

    access_token: str
    token_type: str = "Bearer"  # noqa: S105
    refresh_token: str | None = None
    expires_in: int | None = None
    id_token: str | None = None
    scope: str = ""
    raw: dict[str, Any] = field(default_factory=dict)
    issued_at: float = field(default_factory=time.time)

    @property
    def is_expired(self) -> bool:
        """Check if the access token has expired."""
        if self.expires_in is None:
            return False
        return time.time() > (self.issued_at + self.expires_in)

    @property
    def expires_at(self) -> float | None:
        """Get the expiry timestamp, or None if no expiry."""
        if self.expires_in is None:
            return None
        return self.issued_at + self.expires_in


@dataclass(frozen=True)
class ProviderMetadata:
    """OIDC provider metadata resolved through discovery.

    Attributes
    ----------
    issuer : str
        The issuer identifier, as published by the provider.
    authorization_endpoint : str
        The provider's authorization endpoint.
    token_endpoint : str
        The provider's token endpoint.
    jwks_uri : str
        Location of the provider's signing keys.
    jwks : dict[str, Any]
        The fetched JSON Web Key Set.
    userinfo_endpoint : str
        The provider's userinfo endpoint, if published.
    signing_algs : tuple[str, ...]
        ID token signing algorithms the provider advertises.
    raw : dict[str, Any]
        The full discovery document.
    """

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str
    jwks: dict[str, Any] = field(default_factory=dict)
    userinfo_endpoint: str = ""
    signing_algs: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict)


class AuthSessionState(str, Enum):
    """State of an authorization attempt on a session."""

    IDLE = "idle"
    INITIATED = "initiated"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class AuthFlowResult:
    """Result of completing an authorization attempt.

    Attributes
    ----------
    success : bool
        Whether authentication completed successfully.
    tokens : TokenSet or None
        The token set if authentication succeeded.
    claims : dict[str, Any] or None
        Verified ID token claims (OIDC only).
    error : str or None
        Error message if authentication failed.
    error_type : str or None
        Name of the exception class that ended the attempt.
    """

    success: bool
    tokens: TokenSet | None = None
    claims: dict[str, Any] | None = None
    error: str | None = None
    error_type: str | None = None
