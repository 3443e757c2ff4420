"""Host-facing authentication flow façade.

Provides AuthFlowManager, which exposes an AuthSession to a host page as
two calls: get the login URL, then hand back the redirect URL. Flow
failures come back as an AuthFlowResult instead of an exception, and the
session stays usable for a fresh attempt.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from typing import TYPE_CHECKING

from ..exceptions import AuthenticationError
from ..types import AuthFlowResult


if TYPE_CHECKING:
    from ..types import AuthSessionState
    from .session import AuthSession


logger = logging.getLogger("pkceauth.auth")


class AuthFlowManager:
    """Orchestrates login for a host application.

    Parameters
    ----------
    session : AuthSession
        The session to drive.
    """

    def __init__(self, session: AuthSession) -> None:
        """Initialize the auth flow manager."""
        self.session = session

    @property
    def flow_state(self) -> AuthSessionState:
        """Current state of the underlying session."""
        return self.session.state

    async def login_url(self) -> str:
        """Start an attempt and return the provider URL to navigate to.

        Raises
        ------
        StorageError
            If the attempt cannot be persisted.
        DiscoveryError
            If OIDC discovery is needed and fails.
        """
        return await self.session.initiate()

    async def authenticate(self, response_url: str) -> AuthFlowResult:
        """Complete the attempt with the redirect URL.

        Parameters
        ----------
        response_url : str
            The URL the provider redirected back to.

        Returns
        -------
        AuthFlowResult
            Tokens and claims on success; the error message and its
            class name otherwise.
        """
        try:
            tokens = await self.session.complete(response_url)
        except AuthenticationError as exc:
            logger.info("Authentication did not complete: %s", exc.message)
            return AuthFlowResult(
                success=False,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )

        return AuthFlowResult(success=True, tokens=tokens, claims=self.session.claims)

    async def logout(self) -> None:
        """Drop the session's tokens and any pending attempt."""
        await self.session.reset()
