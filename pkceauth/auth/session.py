"""Authentication session state machine.

An AuthSession drives the two-phase Authorization Code + PKCE flow:
``initiate`` persists fresh challenge material and returns the
authorization URL; ``complete`` consumes that material, validates the
redirect, exchanges the code and, for OpenID Connect, verifies the ID
token. Tokens are held in memory only.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging
import secrets

from typing import TYPE_CHECKING, Any

from ..exceptions import AuthenticationError, CsrfMismatchError, StorageError
from ..types import AuthSessionState
from .challenge import ChallengeMaterial
from .providers import ProviderClient, create_provider_config
from .response import parse_response
from .storage import PersistedState, create_state_store
from .variants import PlainOAuth2, get_variant


if TYPE_CHECKING:
    import httpx

    from ..config import OAuth2Settings
    from ..types import TokenSet
    from .providers import ProviderConfig
    from .storage import KeyValueStore
    from .variants import FlowVariant


logger = logging.getLogger("pkceauth.auth")


class AuthSession:
    """One user's authorization state against one provider.

    States: ``IDLE -> INITIATED -> COMPLETED`` or ``INITIATED -> FAILED``.
    A new ``initiate`` may start from any state and discards the previous
    attempt's material, but never an established token set; that is only
    replaced by the next successful ``complete`` or cleared by ``reset``.

    Parameters
    ----------
    client : ProviderClient
        Adapter for the provider's endpoints.
    store : KeyValueStore
        Store holding the in-flight challenge across the redirect.
    variant : FlowVariant, optional
        Flow capabilities (default ``PlainOAuth2``).
    session_key : str, optional
        Identifies this user agent in a store shared with other sessions;
        its challenge keys are namespaced under it.
    """

    def __init__(
        self,
        client: ProviderClient,
        store: KeyValueStore,
        variant: FlowVariant | None = None,
        session_key: str | None = None,
    ) -> None:
        """Initialize the session."""
        self.client = client
        self.variant = variant or PlainOAuth2()
        self.variant.check_config(client.config)
        self.persisted = PersistedState(
            store, strict=self.variant.strict_state, namespace=session_key
        )

        self._state = AuthSessionState.IDLE
        self._challenge: ChallengeMaterial | None = None
        self._tokens: TokenSet | None = None
        self._claims: dict[str, Any] | None = None

    @classmethod
    async def create(
        cls,
        config: ProviderConfig,
        store: KeyValueStore,
        variant: FlowVariant | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        session_key: str | None = None,
    ) -> AuthSession:
        """Build a session and run the variant's provider preparation.

        For OpenID Connect this performs discovery, so a session is never
        returned without resolved provider metadata.

        Raises
        ------
        ConfigurationError
            If the configuration does not suit the variant.
        DiscoveryError
            If OIDC discovery fails.
        """
        client = ProviderClient(config, http_client=http_client, timeout=timeout)
        try:
            session = cls(client, store, variant, session_key=session_key)
            await session.variant.prepare(client)
        except Exception:
            await client.close()
            raise
        return session

    @property
    def state(self) -> AuthSessionState:
        """Current state of the session."""
        return self._state

    @property
    def tokens(self) -> TokenSet | None:
        """Tokens from the last successful completion."""
        return self._tokens

    @property
    def claims(self) -> dict[str, Any] | None:
        """Verified ID token claims (OIDC only)."""
        return self._claims

    @property
    def is_authenticated(self) -> bool:
        """Whether a token set has been established."""
        return self._tokens is not None

    @property
    def has_pending_challenge(self) -> bool:
        """Whether challenge material for an attempt is held in memory."""
        return self._challenge is not None

    async def initiate(self) -> str:
        """Start a new authorization attempt.

        Returns
        -------
        str
            The URL to send the user agent to.

        Raises
        ------
        StorageError
            If the challenge cannot be persisted; the session is unchanged.
        DiscoveryError
            If OIDC metadata is not yet resolved and discovery fails.
        """
        await self.variant.prepare(self.client)

        material = ChallengeMaterial.generate(require_nonce=self.variant.requires_nonce)
        url = self.client.build_authorization_url(
            challenge=material.challenge,
            state=material.csrf_token,
            nonce=material.nonce,
        )
        await self.persisted.save(material)

        self._challenge = material
        self._state = AuthSessionState.INITIATED
        logger.info(
            "Authorization attempt %s started (%s, provider %s)",
            material.fingerprint,
            self.variant.name,
            self.client.config.provider_name,
        )
        return url

    async def complete(self, response_url: str) -> TokenSet:
        """Finish the in-flight attempt with the provider's redirect URL.

        The attempt's challenge material is consumed whether this succeeds
        or fails; a malformed redirect is rejected before it is touched.

        Parameters
        ----------
        response_url : str
            The URL the provider redirected back to.

        Returns
        -------
        TokenSet
            The tokens, now held by the session.

        Raises
        ------
        MalformedResponseError
            If ``code`` or ``state`` cannot be read from the URL.
        NoActiveChallengeError
            If no attempt was initiated or its state is gone.
        IncompleteStateError
            If a plain OAuth2 record is only partially stored.
        StorageError
            If the store cannot be read or cleared.
        CsrfMismatchError
            If the returned state does not match.
        ExchangeError
            If the token endpoint fails.
        IdTokenError
            If OIDC verification fails.
        """
        response = parse_response(response_url)
        material = await self._take_challenge()
        attempt_id = material.fingerprint
        provider = self.client.config.provider_name

        try:
            if not secrets.compare_digest(
                material.csrf_token.encode("utf-8"), response.state.encode("utf-8")
            ):
                msg = "Cross-site request forgery detected, the returned state did not match"
                raise CsrfMismatchError(msg, provider=provider, attempt_id=attempt_id)

            tokens = await self.client.exchange_code(response.code, material.verifier)
            claims = await self.variant.verify(self.client, tokens, material)
        except AuthenticationError as exc:
            self._state = AuthSessionState.FAILED
            if exc.attempt_id is None:
                exc.attempt_id = attempt_id
                exc.context["attempt_id"] = attempt_id
            logger.warning(
                "Authorization attempt %s failed: %s",
                attempt_id,
                exc.__class__.__name__,
            )
            raise

        self._tokens = tokens
        self._claims = claims
        self._state = AuthSessionState.COMPLETED
        logger.info("Authorization attempt %s completed", attempt_id)
        return tokens

    async def _take_challenge(self) -> ChallengeMaterial:
        """Remove the attempt's material from memory and the store.

        Loads from the store when nothing is held in memory. Material is
        only returned once its stored copy is deleted, so an attempt can
        never be completed twice.
        """
        material = self._challenge
        self._challenge = None
        try:
            if material is None:
                material = await self.persisted.load()
        except AuthenticationError:
            if self._state is AuthSessionState.INITIATED:
                self._state = AuthSessionState.FAILED
            try:
                await self.persisted.clear()
            except StorageError as exc:
                logger.warning("Could not discard the stored challenge: %s", exc.message)
            raise

        try:
            await self.persisted.clear()
        except StorageError:
            if self._state is AuthSessionState.INITIATED:
                self._state = AuthSessionState.FAILED
            raise
        return material

    async def reset(self) -> None:
        """Forget tokens, claims and any in-flight attempt.

        Raises
        ------
        StorageError
            If the persisted challenge cannot be deleted.
        """
        self._challenge = None
        self._tokens = None
        self._claims = None
        self._state = AuthSessionState.IDLE
        await self.persisted.clear()
        logger.debug("Session reset for provider %s", self.client.config.provider_name)

    async def close(self) -> None:
        """Release the provider client's HTTP resources."""
        await self.client.close()

    async def __aenter__(self) -> AuthSession:
        """Enter the async context."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close on exit."""
        await self.close()


async def create_session_from_settings(
    settings: OAuth2Settings,
    store: KeyValueStore | None = None,
    http_client: httpx.AsyncClient | None = None,
    session_key: str | None = None,
) -> AuthSession:
    """Create an AuthSession from OAuth2Settings.

    Parameters
    ----------
    settings : OAuth2Settings
        The OAuth2 configuration settings.
    store : KeyValueStore, optional
        State store to use; defaults to the configured backend.
    http_client : httpx.AsyncClient, optional
        HTTP client for provider requests.
    session_key : str, optional
        Per-user key namespacing the challenge in a shared store, such as
        the web session id. Needed with the redis backend.

    Returns
    -------
    AuthSession
        A session ready for ``initiate``.
    """
    config = create_provider_config(settings)
    variant = get_variant(settings.variant)
    if store is None:
        store = create_state_store(settings)
    return await AuthSession.create(
        config,
        store,
        variant,
        http_client=http_client,
        timeout=settings.http_timeout_seconds,
        session_key=session_key,
    )
