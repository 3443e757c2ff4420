"""OAuth2 / OpenID Connect Authorization Code + PKCE client.

Provides challenge material, persisted state, the provider adapter,
flow variants, the authentication session state machine and a
host-facing flow façade.
"""

from __future__ import annotations

from .challenge import ChallengeMaterial, compute_challenge
from .flow import AuthFlowManager
from .providers import ProviderClient, ProviderConfig, access_token_hash, create_provider_config
from .response import parse_response
from .session import AuthSession, create_session_from_settings
from .storage import (
    KeyValueStore,
    MemoryKeyValueStore,
    PersistedState,
    RedisKeyValueStore,
    create_state_store,
)
from .variants import FlowVariant, OidcWithIdToken, PlainOAuth2, get_variant


__all__ = [
    "AuthFlowManager",
    "AuthSession",
    "ChallengeMaterial",
    "FlowVariant",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "OidcWithIdToken",
    "PersistedState",
    "PlainOAuth2",
    "ProviderClient",
    "ProviderConfig",
    "RedisKeyValueStore",
    "access_token_hash",
    "compute_challenge",
    "create_provider_config",
    "create_state_store",
    "create_session_from_settings",
    "get_variant",
    "parse_response",
]
