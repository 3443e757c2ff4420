"""pkceauth exception hierarchy.

All pkceauth-specific exceptions inherit from PkceAuthException, enabling
catch-all handling while supporting specific error types.
"""

from __future__ import annotations

from typing import Any


class PkceAuthException(Exception):
    """Base exception for all pkceauth errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize pkceauth exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (provider, attempt_id, keys, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        ctx = {k: v for k, v in self.context.items() if v is not None}
        if ctx:
            rendered = ", ".join(f"{k}={v!r}" for k, v in ctx.items())
            return f"{self.message} ({rendered})"
        return self.message


class ConfigurationError(PkceAuthException):
    """Provider configuration is malformed.

    Raised at construction time for invalid URLs, a missing client id,
    or an unknown flow variant. Never retried.
    """


class AuthenticationError(PkceAuthException):
    """Base exception for all authentication flow failures."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        attempt_id: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize authentication error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        provider : str, optional
            The provider (issuer or authorization host) involved.
        attempt_id : str, optional
            The identifier of the authorization attempt that failed.
        **context : Any
            Additional context.
        """
        super().__init__(message, provider=provider, attempt_id=attempt_id, **context)
        self.provider = provider
        self.attempt_id = attempt_id


class DiscoveryError(AuthenticationError):
    """OIDC provider metadata could not be fetched or parsed.

    Fatal to session construction.
    """


class StorageError(AuthenticationError):
    """Reading from or writing to the key-value store failed."""


class IncompleteStateError(StorageError):
    """The persisted challenge record is only partially present."""

    def __init__(self, message: str, missing_keys: list[str], **context: Any) -> None:
        """Initialize incomplete state error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        missing_keys : list[str]
            Store keys that were expected but absent.
        **context : Any
            Additional context.
        """
        super().__init__(message, missing_keys=missing_keys, **context)
        self.missing_keys = missing_keys


class NoActiveChallengeError(AuthenticationError):
    """No authorization attempt is in flight.

    Raised when completion is requested without a prior ``initiate``,
    or after the persisted challenge expired or was already consumed.
    """


class MalformedResponseError(AuthenticationError):
    """The redirect URL does not have the expected shape."""


class EmptyResponseError(MalformedResponseError):
    """The redirect URL carries no query parameters at all."""


class MissingCodeError(MalformedResponseError):
    """The redirect URL has no ``code`` parameter."""


class MissingStateError(MalformedResponseError):
    """The redirect URL has no ``state`` parameter."""


class CsrfMismatchError(AuthenticationError):
    """The returned ``state`` does not match the stored CSRF token.

    Indicates a possible cross-site request forgery; the attempt is abandoned.
    """


class ExchangeError(AuthenticationError):
    """The token endpoint rejected the code or could not be reached.

    The provider's response body is kept verbatim for diagnostics.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize exchange error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        status_code : int, optional
            HTTP status returned by the token endpoint.
        body : str, optional
            Raw response body returned by the token endpoint.
        **context : Any
            Additional context.
        """
        super().__init__(message, status_code=status_code, body=body, **context)
        self.status_code = status_code
        self.body = body


class IdTokenError(AuthenticationError):
    """Base exception for OIDC ID token integrity failures.

    Always fatal to the attempt, even when the code exchange succeeded.
    """


class MissingIdTokenError(IdTokenError):
    """The token response carried no ``id_token``."""


class IdTokenValidationError(IdTokenError):
    """The ID token signature, claims, or nonce failed validation."""


class TokenTamperError(IdTokenError):
    """The access token does not match the ID token's ``at_hash`` claim."""
