"""Exception types raised by the fusion and reranking stages."""

from __future__ import annotations


class RagFuseError(Exception):
    """Base class for all ragfuse errors."""


class InvalidInput(RagFuseError, ValueError):
    """Malformed call arguments, detected before any computation."""


class ScoringFailure(RagFuseError):
    """The injected relevance scorer raised or returned an unusable value.

    The original exception (if any) is available as ``__cause__``.
    """

    def __init__(self, message: str, item_id: str | None = None) -> None:
        super().__init__(message)
        self.item_id = item_id
