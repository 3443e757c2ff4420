"""Tests for pkceauth.exceptions module.

These tests verify the exception hierarchy, message formatting,
context storage, and inheritance relationships.
"""

from __future__ import annotations

import pytest

from pkceauth.exceptions import (
    AuthenticationError,
    ConfigurationError,
    CsrfMismatchError,
    DiscoveryError,
    EmptyResponseError,
    ExchangeError,
    IdTokenError,
    IdTokenValidationError,
    IncompleteStateError,
    MalformedResponseError,
    MissingCodeError,
    MissingIdTokenError,
    MissingStateError,
    NoActiveChallengeError,
    PkceAuthException,
    StorageError,
    TokenTamperError,
)


class TestPkceAuthException:
    """Test base exception class behavior."""

    def test_message_only(self) -> None:
        """Exception with just a message stores it correctly."""
        exc = PkceAuthException("Something went wrong")
        assert exc.message == "Something went wrong"
        assert not exc.context
        assert str(exc) == "Something went wrong"

    def test_with_context(self) -> None:
        """Context values appear in the string representation."""
        exc = PkceAuthException("Failed", provider="idp.example", retries=2)
        assert exc.context == {"provider": "idp.example", "retries": 2}
        exc_str = str(exc)
        assert exc_str.startswith("Failed (")
        assert "provider='idp.example'" in exc_str
        assert "retries=2" in exc_str

    def test_none_context_omitted(self) -> None:
        """Context entries set to None are left out of the message."""
        exc = PkceAuthException("Failed", provider=None)
        assert str(exc) == "Failed"

    def test_args_preserved(self) -> None:
        """Standard exception args are preserved."""
        exc = PkceAuthException("message")
        assert exc.args == ("message",)


class TestAuthenticationError:
    """Tests for the authentication error base."""

    def test_provider_and_attempt(self) -> None:
        """Provider and attempt id are exposed as attributes and context."""
        exc = AuthenticationError("nope", provider="idp.example", attempt_id="a1b2")
        assert exc.provider == "idp.example"
        assert exc.attempt_id == "a1b2"
        assert "attempt_id='a1b2'" in str(exc)

    def test_defaults(self) -> None:
        """Provider and attempt id default to None."""
        exc = AuthenticationError("nope")
        assert exc.provider is None
        assert exc.attempt_id is None
        assert str(exc) == "nope"

    def test_configuration_error_is_separate(self) -> None:
        """Configuration errors are not authentication failures."""
        assert not issubclass(ConfigurationError, AuthenticationError)
        assert issubclass(ConfigurationError, PkceAuthException)


class TestSpecificErrors:
    """Tests for errors carrying extra attributes."""

    def test_exchange_error(self) -> None:
        """ExchangeError keeps status and body verbatim."""
        exc = ExchangeError("bad", status_code=400, body='{"error":"invalid_grant"}')
        assert exc.status_code == 400
        assert exc.body == '{"error":"invalid_grant"}'
        assert exc.context["status_code"] == 400

    def test_incomplete_state_error(self) -> None:
        """IncompleteStateError lists the missing keys."""
        exc = IncompleteStateError("partial", missing_keys=["csrf"])
        assert exc.missing_keys == ["csrf"]
        assert "missing_keys=['csrf']" in str(exc)


class TestExceptionHierarchy:
    """Test inheritance relationships."""

    @pytest.mark.parametrize(
        ("child", "parent"),
        [
            (DiscoveryError, AuthenticationError),
            (StorageError, AuthenticationError),
            (IncompleteStateError, StorageError),
            (NoActiveChallengeError, AuthenticationError),
            (MalformedResponseError, AuthenticationError),
            (EmptyResponseError, MalformedResponseError),
            (MissingCodeError, MalformedResponseError),
            (MissingStateError, MalformedResponseError),
            (CsrfMismatchError, AuthenticationError),
            (ExchangeError, AuthenticationError),
            (IdTokenError, AuthenticationError),
            (MissingIdTokenError, IdTokenError),
            (IdTokenValidationError, IdTokenError),
            (TokenTamperError, IdTokenError),
        ],
    )
    def test_inheritance(self, child: type, parent: type) -> None:
        """Each error sits under its category."""
        assert issubclass(child, parent)
        assert issubclass(child, PkceAuthException)

    def test_catch_all(self) -> None:
        """Any flow failure can be caught as AuthenticationError."""
        with pytest.raises(AuthenticationError):
            raise TokenTamperError("tampered")
