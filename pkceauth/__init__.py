"""pkceauth - OAuth2 Authorization Code + PKCE client with OpenID Connect support."""

from __future__ import annotations

from .auth import (
    AuthFlowManager,
    AuthSession,
    ChallengeMaterial,
    MemoryKeyValueStore,
    OidcWithIdToken,
    PlainOAuth2,
    ProviderClient,
    ProviderConfig,
    RedisKeyValueStore,
    parse_response,
)
from .config import OAuth2Settings, PkceAuthSettings, get_settings
from .exceptions import AuthenticationError, ConfigurationError, PkceAuthException
from .types import AuthFlowResult, AuthorizationResponse, AuthSessionState, TokenSet


__version__ = "0.1.0"

__all__ = [
    "AuthFlowManager",
    "AuthFlowResult",
    "AuthSession",
    "AuthSessionState",
    "AuthenticationError",
    "AuthorizationResponse",
    "ChallengeMaterial",
    "ConfigurationError",
    "MemoryKeyValueStore",
    "OAuth2Settings",
    "OidcWithIdToken",
    "PkceAuthException",
    "PkceAuthSettings",
    "PlainOAuth2",
    "ProviderClient",
    "ProviderConfig",
    "RedisKeyValueStore",
    "TokenSet",
    "__version__",
    "get_settings",
    "parse_response",
]
