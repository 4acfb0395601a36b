"""Error taxonomy for the sync core."""

from __future__ import annotations

import threading
from typing import Optional


class SyncError(Exception):
    """Base error. Carries the collection and page being processed, when known."""

    def __init__(
        self,
        message: str,
        *,
        collection: Optional[str] = None,
        page: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.collection = collection
        self.page = page

    def with_context(self, collection: str, page: Optional[str] = None) -> "SyncError":
        """Fill in collection/page context without overwriting what is already set."""
        if self.collection is None:
            self.collection = collection
        if self.page is None:
            self.page = page
        return self

    def __str__(self) -> str:
        parts = [self.message]
        if self.collection:
            parts.append(f"collection={self.collection}")
        if self.page:
            parts.append(f"page={self.page}")
        return " ".join(parts)


class TransportError(SyncError):
    """Network or HTTP failure. Not retried by the core."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        url: str = "",
        **kwargs,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.url = url


class DecodeError(SyncError):
    """Response body could not be deserialized into the expected shape."""


class MalformedCursor(SyncError):
    """Pagination token not produced by this codec, or minted for another collection."""


class EmptyUpstream(SyncError):
    """The agent enumeration pass returned no identifiers."""


class InvalidResourceID(SyncError):
    """A resource identifier is missing or outside the numeric id domain."""


class Cancelled(SyncError):
    """The caller aborted the operation."""

    def __init__(self, message: str = "operation cancelled", **kwargs) -> None:
        super().__init__(message, **kwargs)


class GrantError(SyncError):
    """A grant request that the target collection cannot apply."""


def raise_if_cancelled(cancel: Optional[threading.Event], **context) -> None:
    if cancel is not None and cancel.is_set():
        raise Cancelled(**context)
