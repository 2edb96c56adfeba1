"""
CardSwap error taxonomy.

Local failures (file ingestion, credential entry) are raised before anything
reaches the network. Remote failures are raised by the Gemini clients and
caught at the SessionController boundary.
"""

import re
from typing import Optional


class CardSwapError(Exception):
    """Base class for all CardSwap errors."""


# ── Local file ingestion ─────────────────────────────────────────

class UnreadableFileError(CardSwapError):
    """The uploaded payload could not be read."""


class UndecodableImageError(CardSwapError):
    """The payload was read but its pixel dimensions could not be determined."""


# ── Credentials ──────────────────────────────────────────────────

class CredentialMissingError(CardSwapError):
    """No usable credential at the time of a generate/refine attempt."""


class InvalidCredentialError(CardSwapError):
    """A manually entered key was rejected locally (empty after trimming)."""


class AuthenticationFailure(CardSwapError):
    """The remote service rejected the credential (401/403/entity not found).

    Raised by the Gemini clients in place of the SDK error, which stays
    attached as ``__cause__``.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# ── Remote responses ─────────────────────────────────────────────

class ModelRefusalError(CardSwapError):
    """The model answered with text instead of an image."""

    def __init__(self, text: str):
        super().__init__(text)
        self.text = text


class EmptyResponseError(CardSwapError):
    """The response carried neither an image nor text."""


AUTH_STATUS_CODES = (401, 403)
ENTITY_NOT_FOUND_MARKER = "Requested entity was not found"
_AUTH_STATUS_IN_TEXT = re.compile(r"\b40[13]\b")


def is_authentication_failure(exc: BaseException) -> bool:
    """
    Classify a remote failure as an authentication-class failure.

    An exception carrying an integer HTTP ``code`` (google-genai ``APIError``)
    is judged on that code and the "Requested entity was not found" message
    only. Exceptions without a code fall back to a word-bounded 401/403 match
    in their text.
    """
    if isinstance(exc, AuthenticationFailure):
        return True
    text = str(exc)
    if ENTITY_NOT_FOUND_MARKER in text:
        return True
    code = getattr(exc, "code", None)
    if isinstance(code, int):
        return code in AUTH_STATUS_CODES
    return _AUTH_STATUS_IN_TEXT.search(text) is not None
