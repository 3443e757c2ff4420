"""PKCE (Proof Key for Code Exchange) challenge material.

RFC 7636 - Proof Key for Code Exchange for OAuth 2.0 public clients.
Uses S256 challenge method (SHA-256 hash of the code verifier). The
material also carries the CSRF token sent as ``state`` and, for OpenID
Connect, the nonce bound into the ID token.
"""

from __future__ import annotations

import hashlib
import secrets

from base64 import urlsafe_b64encode
from dataclasses import dataclass

from ..exceptions import IncompleteStateError, NoActiveChallengeError


KEY_VERIFIER = "verifier"
KEY_CSRF = "csrf"
KEY_NONCE = "nonce"

# RFC 7636 recommends at least 32 bytes of entropy for the verifier
MIN_VERIFIER_BYTES = 32


def compute_challenge(verifier: str) -> str:
    """Derive the S256 code challenge for a verifier.

    Parameters
    ----------
    verifier : str
        The code verifier.

    Returns
    -------
    str
        Base64url-encoded SHA-256 digest of the verifier, without padding.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class ChallengeMaterial:
    """Secrets generated for one authorization attempt.

    Attributes
    ----------
    verifier : str
        The code verifier (high-entropy random string).
    challenge : str
        The code challenge (base64url-encoded SHA-256 hash of verifier).
    csrf_token : str
        Random value sent as ``state`` and checked on the redirect.
    nonce : str or None
        Random value bound into the ID token (OIDC only).
    method : str
        The challenge method, always "S256".
    """

    verifier: str
    challenge: str
    csrf_token: str
    nonce: str | None = None
    method: str = "S256"

    @classmethod
    def generate(cls, require_nonce: bool = False, length: int = 64) -> ChallengeMaterial:
        """Generate fresh challenge material.

        Parameters
        ----------
        require_nonce : bool
            Also generate a nonce (OpenID Connect flows).
        length : int
            Number of random bytes for the verifier (default 64).

        Returns
        -------
        ChallengeMaterial
            New material for a single authorization attempt.

        Raises
        ------
        ValueError
            If ``length`` is below the RFC 7636 minimum.
        """
        if length < MIN_VERIFIER_BYTES:
            msg = f"Verifier length must be at least {MIN_VERIFIER_BYTES} bytes, got {length}"
            raise ValueError(msg)
        verifier = secrets.token_urlsafe(length)
        return cls(
            verifier=verifier,
            challenge=compute_challenge(verifier),
            csrf_token=secrets.token_urlsafe(32),
            nonce=secrets.token_urlsafe(32) if require_nonce else None,
        )

    @property
    def fingerprint(self) -> str:
        """Non-secret identifier of the attempt, safe to log."""
        return hashlib.sha256(self.csrf_token.encode("utf-8")).hexdigest()[:12]

    def serialize(self) -> dict[str, str]:
        """Map the set fields to store keys.

        The challenge is not stored; it is derived from the verifier.
        """
        data = {KEY_VERIFIER: self.verifier, KEY_CSRF: self.csrf_token}
        if self.nonce is not None:
            data[KEY_NONCE] = self.nonce
        return data

    @classmethod
    def deserialize(
        cls,
        data: dict[str, str | None],
        require_nonce: bool = False,
    ) -> ChallengeMaterial:
        """Rebuild challenge material from store values.

        Parameters
        ----------
        data : dict[str, str | None]
            Values read from the store; ``None`` marks an absent key.
        require_nonce : bool
            Whether the nonce is part of the expected record.

        Returns
        -------
        ChallengeMaterial
            The restored material.

        Raises
        ------
        NoActiveChallengeError
            If none of the expected keys are present.
        IncompleteStateError
            If only some of the expected keys are present.
        """
        expected = [KEY_VERIFIER, KEY_CSRF]
        if require_nonce:
            expected.append(KEY_NONCE)

        missing = [key for key in expected if data.get(key) is None]
        if len(missing) == len(expected):
            msg = "No authorization attempt is in progress"
            raise NoActiveChallengeError(msg)
        if missing:
            msg = f"Stored challenge is incomplete, missing: {', '.join(missing)}"
            raise IncompleteStateError(msg, missing_keys=missing)

        verifier = str(data[KEY_VERIFIER])
        return cls(
            verifier=verifier,
            challenge=compute_challenge(verifier),
            csrf_token=str(data[KEY_CSRF]),
            nonce=data.get(KEY_NONCE),
        )
