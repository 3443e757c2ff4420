"""Tests for logging helpers."""

from __future__ import annotations

import logging

from typing import TYPE_CHECKING

import pytest

from pkceauth import log


if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture(autouse=True)
def _restore_logger() -> Generator[None, None, None]:
    """Put the logger back to its defaults after each test."""
    yield
    log.set_level(logging.WARNING)
    log.set_format(log.DEFAULT_FORMAT)


class TestLogger:
    """Tests for the pkceauth logger."""

    def test_singleton(self) -> None:
        """get_logger returns the same configured logger."""
        assert log.get_logger() is log.get_logger()
        assert log.get_logger().name == "pkceauth"
        assert log.get_logger().handlers

    def test_set_level_by_name(self) -> None:
        """Levels can be given by name."""
        log.set_level("info")
        assert log.get_logger().level == logging.INFO

    def test_set_format(self) -> None:
        """The format applies to every handler."""
        log.set_format("%(levelname)s|%(message)s")
        for handler in log.get_logger().handlers:
            assert handler.formatter._fmt == "%(levelname)s|%(message)s"  # noqa: SLF001

    def test_warn_emits(self, caplog: pytest.LogCaptureFixture) -> None:
        """Warnings reach the pkceauth logger."""
        with caplog.at_level(logging.WARNING, logger="pkceauth"):
            log.warn("careful")
        assert "careful" in caplog.text

    def test_auth_logger_is_child(self) -> None:
        """Flow modules log under pkceauth.auth."""
        assert logging.getLogger("pkceauth.auth").parent is log.get_logger()


class TestRedactSensitiveData:
    """Tests for redact_sensitive_data()."""

    def test_token_fields(self) -> None:
        """Token-like keys are masked."""
        data = {
            "access_token": "a",
            "refresh_token": "r",
            "id_token": "i",
            "token_type": "Bearer",
            "expires_in": 3600,
        }
        result = log.redact_sensitive_data(data)
        assert result["access_token"] == "[REDACTED]"
        assert result["refresh_token"] == "[REDACTED]"
        assert result["id_token"] == "[REDACTED]"
        assert result["expires_in"] == 3600

    def test_flow_secrets(self) -> None:
        """Verifier, csrf, nonce, code and state are masked."""
        data = {"code_verifier": "v", "csrf": "c", "nonce": "n", "code": "x", "state": "s"}
        assert set(log.redact_sensitive_data(data).values()) == {"[REDACTED]"}

    def test_exact_keys_only(self) -> None:
        """Exact-match keys do not mask look-alikes."""
        data = {"code_challenge_method": "S256", "session_state": "q"}
        assert log.redact_sensitive_data(data) == data

    def test_nested(self) -> None:
        """Nested structures are traversed."""
        data = {"outer": [{"client_secret": "s", "name": "n"}]}
        assert log.redact_sensitive_data(data) == {
            "outer": [{"client_secret": "[REDACTED]", "name": "n"}]
        }

    def test_depth_limit(self) -> None:
        """Deep structures are cut off."""
        assert log.redact_sensitive_data({"a": {"b": 1}}, max_depth=1) == {"a": "[MAX_DEPTH]"}

    def test_passthrough(self) -> None:
        """Scalars and None are returned unchanged."""
        assert log.redact_sensitive_data(None) is None
        assert log.redact_sensitive_data("plain") == "plain"
