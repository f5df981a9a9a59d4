"""Error classification for remote generation calls.

Decides whether a failure is worth retrying, whether it is a credential
problem the user must fix, or whether it is simply fatal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ErrorKind(str, Enum):
    """Coarse failure category."""

    TRANSIENT = "transient"
    FATAL = "fatal"
    CREDENTIAL = "credential"


RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 503, 504})

# Matched case-sensitively against the error message.
RETRYABLE_MESSAGE_MARKERS: tuple[str, ...] = ("429", "503", "overloaded", "quota")

CREDENTIAL_STATUS_CODES: frozenset[int] = frozenset({401, 403})

# Matched case-insensitively against the error message.
CREDENTIAL_MESSAGE_MARKERS: tuple[str, ...] = (
    "api key",
    "api_key",
    "permission denied",
    "permission_denied",
    "requested entity was not found",
    "quota",
    "resource_exhausted",
)


def extract_status_code(error: BaseException) -> int | None:
    """Pull an HTTP-style status code off an exception, if it carries one.

    Looks at ``status_code``, ``code`` and ``status`` in that order and only
    accepts integers (client libraries often put a text status in ``status``).
    """
    for attr in ("status_code", "code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def extract_message(error: BaseException) -> str:
    text = str(error)
    message = getattr(error, "message", None)
    if isinstance(message, str) and message and message not in text:
        return f"{text} {message}"
    return text


@dataclass(frozen=True)
class ErrorClassifier:
    """Pluggable failure classifier used by ResilientCall and the pipeline."""

    retryable_status_codes: frozenset[int] = RETRYABLE_STATUS_CODES
    retryable_markers: tuple[str, ...] = RETRYABLE_MESSAGE_MARKERS
    credential_status_codes: frozenset[int] = CREDENTIAL_STATUS_CODES
    credential_markers: tuple[str, ...] = field(default=CREDENTIAL_MESSAGE_MARKERS)

    def is_retryable(self, error: BaseException) -> bool:
        status = extract_status_code(error)
        if status is not None and status in self.retryable_status_codes:
            return True
        message = extract_message(error)
        return any(marker in message for marker in self.retryable_markers)

    def is_credential(self, error: BaseException) -> bool:
        status = extract_status_code(error)
        if status is not None and status in self.credential_status_codes:
            return True
        message = extract_message(error).lower()
        return any(marker in message for marker in self.credential_markers)

    def classify(self, error: BaseException) -> ErrorKind:
        """Classify an error that ended an operation.

        Credential markers are checked first, so an exhausted quota reports
        as CREDENTIAL even though it was retried as transient.
        """
        if self.is_credential(error):
            return ErrorKind.CREDENTIAL
        if self.is_retryable(error):
            return ErrorKind.TRANSIENT
        return ErrorKind.FATAL


DEFAULT_CLASSIFIER = ErrorClassifier()
