"""Retry and error classification for remote calls."""

from historian.core.retry.classifier import (
    DEFAULT_CLASSIFIER,
    ErrorClassifier,
    ErrorKind,
    extract_status_code,
)
from historian.core.retry.resilient import ResilientCall

__all__ = [
    "DEFAULT_CLASSIFIER",
    "ErrorClassifier",
    "ErrorKind",
    "ResilientCall",
    "extract_status_code",
]
