"""Parsing of the provider's redirect back to the application."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

from ..exceptions import EmptyResponseError, MissingCodeError, MissingStateError
from ..types import AuthorizationResponse


PARAM_CODE = "code"
PARAM_STATE = "state"


def parse_response(url: str) -> AuthorizationResponse:
    """Extract ``code`` and ``state`` from a redirect URL.

    Checks run in a fixed order: empty query, then code, then state.
    Other query parameters are ignored.

    Parameters
    ----------
    url : str
        The full URL the provider redirected the user agent to.

    Returns
    -------
    AuthorizationResponse
        The authorization code and returned state.

    Raises
    ------
    EmptyResponseError
        If the URL has no query parameters.
    MissingCodeError
        If ``code`` is absent. A provider ``error`` parameter, if any, is
        attached to the exception context.
    MissingStateError
        If ``state`` is absent.
    """
    query = parse_qs(urlparse(url).query, keep_blank_values=True)
    if not query:
        msg = "No response is present in the given URL"
        raise EmptyResponseError(msg)

    if PARAM_CODE not in query:
        msg = "There was no authorization code present in the provided URL"
        raise MissingCodeError(
            msg,
            error=query.get("error", [None])[0],
            error_description=query.get("error_description", [None])[0],
        )

    if PARAM_STATE not in query:
        msg = "There was no state present in the provided URL"
        raise MissingStateError(msg)

    return AuthorizationResponse(code=query[PARAM_CODE][0], state=query[PARAM_STATE][0])
