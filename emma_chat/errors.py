"""
Failure kinds of one chat turn. Callers branch on failure_type; reason is for logs only.
"""
from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    CHAT_ERROR = "CHAT_ERROR"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    TIMEOUT = "TIMEOUT"
    MODEL_INVALID_OUTPUT = "MODEL_INVALID_OUTPUT"
    MALFORMED_BLOCK = "MALFORMED_BLOCK"


class ChatError(Exception):
    """A turn that could not produce a usable reply, or a reply part that had to be dropped."""

    failure_type: FailureKind = FailureKind.CHAT_ERROR

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    @property
    def log_fields(self) -> str:
        """key=value pair string shared by every failure log line."""
        return f"failure_type={self.failure_type.value!r} reason={self.reason!r}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}<{self.failure_type.value}>({self.reason!r})"


class ProviderError(ChatError):
    """Completion endpoint failed (non-2xx, auth, missing key). Not retried."""

    failure_type = FailureKind.PROVIDER_ERROR


class LLMTimeoutError(ChatError):
    failure_type = FailureKind.TIMEOUT


class ModelInvalidOutput(ChatError):
    """Completion came back without any reply text."""

    failure_type = FailureKind.MODEL_INVALID_OUTPUT


class MalformedBlock(ChatError):
    """A marker whose JSON is unusable. Recovered inside the extractor, never returned to callers."""

    failure_type = FailureKind.MALFORMED_BLOCK

    def __init__(self, marker: str, reason: str) -> None:
        super().__init__(f"{marker}: {reason}")
        self.marker = marker
