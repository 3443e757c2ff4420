"""Key-value persistence of in-flight challenge material.

Provides the KeyValueStore ABC with in-memory and Redis-backed
implementations, and PersistedState, which maps ChallengeMaterial onto
the ``verifier``/``csrf``/``nonce`` keys of a store. Tokens are never
written here.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import logging

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from ..exceptions import (
    ConfigurationError,
    IncompleteStateError,
    NoActiveChallengeError,
    PkceAuthException,
    StorageError,
)
from .challenge import KEY_CSRF, KEY_NONCE, KEY_VERIFIER, ChallengeMaterial


if TYPE_CHECKING:
    from ..config import OAuth2Settings


logger = logging.getLogger("pkceauth.auth")

STATE_KEYS = (KEY_VERIFIER, KEY_CSRF, KEY_NONCE)


class KeyValueStore(ABC):
    """Abstract string key-value store.

    An absent key (``None``) is distinct from an empty string. All methods
    are async to support both local and network-backed stores.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None if absent."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Deleting an absent key is not an error."""


class MemoryKeyValueStore(KeyValueStore):
    """In-memory store for development and single-process use.

    Thread-safe via asyncio.Lock.
    """

    def __init__(self) -> None:
        """Initialize the memory store."""
        self._data: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        """Read a value from memory."""
        async with self._lock:
            return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        """Write a value to memory."""
        async with self._lock:
            self._data[key] = value

    async def delete(self, key: str) -> None:
        """Remove a value from memory."""
        async with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        """List the keys currently held."""
        return list(self._data)


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store for multi-worker deployments.

    Requires the ``redis`` package: ``pip install pkceauth[redis]``

    Parameters
    ----------
    redis_url : str
        Redis connection URL.
    prefix : str
        Key prefix for namespacing (default "pkceauth").
    ttl : int or None
        Expiry in seconds applied on every write; an abandoned attempt
        then disappears and reads as "no active challenge".
    pool_size : int
        Connection pool size (default 10).
    redis_client : Redis, optional
        Pre-configured client (for testing with fakeredis).
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "pkceauth",
        ttl: int | None = 600,
        pool_size: int = 10,
        *,
        redis_client: Any = None,
    ) -> None:
        """Initialize the Redis store."""
        self._prefix = prefix
        self._ttl = ttl
        if redis_client is not None:
            self._redis: Any = redis_client
            return

        try:
            from redis.asyncio import Redis as RedisClient
        except ImportError:
            msg = "Redis backend requires the 'redis' package. Install with: pip install redis"
            raise ImportError(msg) from None

        self._redis = RedisClient.from_url(
            redis_url,
            max_connections=pool_size,
            decode_responses=True,
        )

    def _key(self, key: str) -> str:
        """Build a Redis key with prefix."""
        return f"{self._prefix}:auth:{key}"

    async def get(self, key: str) -> str | None:
        """Read a value from Redis."""
        value = await self._redis.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        """Write a value to Redis, applying the configured TTL."""
        if self._ttl:
            await self._redis.setex(self._key(key), self._ttl, value)
        else:
            await self._redis.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        """Delete a value from Redis."""
        await self._redis.delete(self._key(key))

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._redis.aclose()


class PersistedState:
    """Maps ChallengeMaterial to and from a key-value store.

    Parameters
    ----------
    store : KeyValueStore
        The backing store (browser session storage, Redis, memory).
    strict : bool
        All-or-nothing loading. When True (OpenID Connect), verifier, csrf
        and nonce must all be present; a partial record reads as "no active
        challenge". When False (plain OAuth2), keys are read independently
        and a partial record is reported as ``IncompleteStateError``.
    namespace : str, optional
        Per-session key prefix. Required when several sessions share one
        store, otherwise each ``save`` replaces the other sessions' records.
    """

    def __init__(
        self,
        store: KeyValueStore,
        strict: bool = False,
        namespace: str | None = None,
    ) -> None:
        """Initialize the persisted state mapping."""
        self.store = store
        self.strict = strict
        self.namespace = namespace

    def _key(self, key: str) -> str:
        if self.namespace:
            return f"{self.namespace}:{key}"
        return key

    async def save(self, material: ChallengeMaterial) -> None:
        """Write the fields that are set on ``material``.

        Absent fields are left untouched in the store.

        Raises
        ------
        StorageError
            If the store rejects a write.
        """
        for key, value in material.serialize().items():
            try:
                await self.store.set(self._key(key), value)
            except PkceAuthException:
                raise
            except Exception as exc:
                msg = f"Could not write '{key}' to the state store: {exc}"
                raise StorageError(msg) from exc

    async def load(self) -> ChallengeMaterial:
        """Read challenge material back from the store.

        Raises
        ------
        NoActiveChallengeError
            If no attempt is recorded (or, in strict mode, the record is partial).
        IncompleteStateError
            If a non-strict record is partial.
        StorageError
            If the store cannot be read.
        """
        data: dict[str, str | None] = {}
        for key in STATE_KEYS:
            try:
                data[key] = await self.store.get(self._key(key))
            except PkceAuthException:
                raise
            except Exception as exc:
                msg = f"Could not read '{key}' from the state store: {exc}"
                raise StorageError(msg) from exc

        try:
            return ChallengeMaterial.deserialize(data, require_nonce=self.strict)
        except IncompleteStateError as exc:
            if not self.strict:
                raise
            logger.warning(
                "Discarding partial challenge record, missing keys: %s",
                ", ".join(exc.missing_keys),
            )
            msg = "No complete authorization attempt is stored"
            raise NoActiveChallengeError(msg, missing_keys=exc.missing_keys) from exc

    async def clear(self) -> None:
        """Delete every challenge key from the store.

        Raises
        ------
        StorageError
            If the store rejects a delete.
        """
        for key in STATE_KEYS:
            try:
                await self.store.delete(self._key(key))
            except PkceAuthException:
                raise
            except Exception as exc:
                msg = f"Could not delete '{key}' from the state store: {exc}"
                raise StorageError(msg) from exc


def create_state_store(settings: OAuth2Settings) -> KeyValueStore:
    """Create a new state store for the backend named by OAuth2Settings.

    Parameters
    ----------
    settings : OAuth2Settings
        Settings selecting the backend and its Redis options.

    Returns
    -------
    KeyValueStore
        A store configured from ``settings``.

    Raises
    ------
    ConfigurationError
        If the backend is unknown.
    """
    backend = settings.state_store_backend
    if backend == "memory":
        return MemoryKeyValueStore()
    if backend == "redis":
        return RedisKeyValueStore(
            redis_url=settings.redis_url,
            prefix=settings.state_prefix,
            ttl=settings.state_ttl_seconds or None,
        )
    msg = f"Unknown state store backend: {backend}"
    raise ConfigurationError(msg)
