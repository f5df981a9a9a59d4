"""Tests for error classification."""

from __future__ import annotations

import pytest

from historian.core.errors import EmptyResponseError, MalformedResponseError, RemoteServiceError
from historian.core.retry import DEFAULT_CLASSIFIER, ErrorClassifier, ErrorKind, extract_status_code


class CodedError(Exception):
    """Client-library style error carrying a ``code`` attribute."""

    def __init__(self, message: str, code: object = None, status: object = None) -> None:
        super().__init__(message)
        self.code = code
        self.status = status


class TestExtractStatusCode:
    """Tests for status code extraction."""

    def test_status_code_attribute(self):
        assert extract_status_code(RemoteServiceError("x", status_code=503)) == 503

    def test_code_attribute(self):
        assert extract_status_code(CodedError("x", code=429)) == 429

    def test_text_status_ignored(self):
        """Test a textual status (e.g. 'UNAVAILABLE') is not treated as a code."""
        assert extract_status_code(CodedError("x", status="UNAVAILABLE")) is None

    def test_bool_ignored(self):
        assert extract_status_code(CodedError("x", code=True)) is None

    def test_plain_exception(self):
        assert extract_status_code(ValueError("x")) is None


class TestRetryable:
    """Tests for transient failure detection."""

    @pytest.mark.parametrize("status", [429, 500, 503, 504])
    def test_retryable_status_codes(self, status: int):
        assert DEFAULT_CLASSIFIER.is_retryable(RemoteServiceError("failed", status_code=status))

    @pytest.mark.parametrize(
        "message",
        [
            "429 Too Many Requests",
            "503 Service Unavailable",
            "The model is overloaded. Please try again later.",
            "You exceeded your current quota",
        ],
    )
    def test_retryable_message_markers(self, message: str):
        assert DEFAULT_CLASSIFIER.is_retryable(RuntimeError(message))

    def test_markers_are_case_sensitive(self):
        """Test message markers match exact case only."""
        assert not DEFAULT_CLASSIFIER.is_retryable(RuntimeError("Model Overloaded"))

    def test_other_status_not_retryable(self):
        assert not DEFAULT_CLASSIFIER.is_retryable(RemoteServiceError("bad", status_code=400))

    def test_empty_and_malformed_responses_are_fatal(self):
        """Test missing payloads and schema mismatches are not retried."""
        assert not DEFAULT_CLASSIFIER.is_retryable(EmptyResponseError("No image generated"))
        assert not DEFAULT_CLASSIFIER.is_retryable(MalformedResponseError("Unexpected plan"))


class TestClassify:
    """Tests for error kind classification."""

    def test_transient(self):
        assert DEFAULT_CLASSIFIER.classify(RemoteServiceError("x", status_code=503)) is ErrorKind.TRANSIENT

    def test_fatal(self):
        assert DEFAULT_CLASSIFIER.classify(ValueError("bad plan")) is ErrorKind.FATAL

    @pytest.mark.parametrize("status", [401, 403])
    def test_credential_status(self, status: int):
        assert DEFAULT_CLASSIFIER.classify(RemoteServiceError("denied", status_code=status)) is ErrorKind.CREDENTIAL

    @pytest.mark.parametrize(
        "message",
        [
            "API key not valid. Please pass a valid API key.",
            "PERMISSION_DENIED: caller does not have permission",
            "Requested entity was not found.",
        ],
    )
    def test_credential_markers_case_insensitive(self, message: str):
        assert DEFAULT_CLASSIFIER.classify(RuntimeError(message)) is ErrorKind.CREDENTIAL

    def test_quota_is_credential_even_though_retryable(self):
        """Test an exhausted quota is retried but reported as a credential problem."""
        error = RemoteServiceError("RESOURCE_EXHAUSTED: quota exceeded", status_code=429)

        assert DEFAULT_CLASSIFIER.is_retryable(error)
        assert DEFAULT_CLASSIFIER.classify(error) is ErrorKind.CREDENTIAL

    def test_custom_classifier(self):
        """Test classifier rules are pluggable."""
        classifier = ErrorClassifier(
            retryable_status_codes=frozenset({418}),
            retryable_markers=("teapot",),
            credential_status_codes=frozenset(),
            credential_markers=(),
        )

        assert classifier.classify(RemoteServiceError("x", status_code=418)) is ErrorKind.TRANSIENT
        assert classifier.classify(RemoteServiceError("x", status_code=503)) is ErrorKind.FATAL
        assert classifier.classify(RuntimeError("API key not valid")) is ErrorKind.FATAL
