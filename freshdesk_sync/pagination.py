"""Resumable page tokens and per-collection sync state.

A token wraps one collection's upstream page marker together with the
collection tag it was minted for. Tokens are handed to external callers and
replayed later, possibly by another process, so the encoding is a versioned,
key-sorted JSON document in unpadded base64url.
"""

from __future__ import annotations

import base64
import binascii
import enum
import json
from dataclasses import dataclass

from freshdesk_sync.errors import MalformedCursor

DEFAULT_PAGE_SIZE = 50
TOKEN_VERSION = 1


@dataclass(frozen=True)
class PageToken:
    """Caller-held pagination position plus the desired page size."""

    size: int = DEFAULT_PAGE_SIZE
    token: str = ""

    @property
    def page_size(self) -> int:
        return self.size if self.size and self.size > 0 else DEFAULT_PAGE_SIZE


def encode_token(resource_type: str, marker: str) -> str:
    """Wrap an upstream page marker. An empty marker means exhausted and encodes to ""."""
    if not marker:
        return ""
    doc = {"v": TOKEN_VERSION, "rt": resource_type, "page": marker}
    raw = json.dumps(doc, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_token(token: str, expected_resource_type: str) -> str:
    """Return the upstream page marker held by ``token``.

    An empty token is the start of the collection. Raises MalformedCursor for
    anything this codec did not produce, and for tokens minted for a
    collection other than ``expected_resource_type``.
    """
    if not token:
        return ""

    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        doc = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise MalformedCursor(
            f"undecodable page token: {exc}", collection=expected_resource_type
        ) from exc

    if not isinstance(doc, dict) or doc.get("v") != TOKEN_VERSION:
        raise MalformedCursor(
            "unrecognised page token", collection=expected_resource_type
        )

    resource_type = doc.get("rt")
    marker = doc.get("page")
    if not isinstance(resource_type, str) or not isinstance(marker, str) or not marker:
        raise MalformedCursor(
            "page token is missing its collection or marker",
            collection=expected_resource_type,
        )
    if resource_type != expected_resource_type:
        raise MalformedCursor(
            f"page token was minted for {resource_type!r}",
            collection=expected_resource_type,
        )
    return marker


class SyncPhase(enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"


@dataclass
class SyncState:
    """Cursor and exhaustion flag for one collection."""

    cursor: str = ""
    exhausted: bool = False
    started: bool = False

    @property
    def phase(self) -> SyncPhase:
        if self.exhausted:
            return SyncPhase.DONE
        if self.started:
            return SyncPhase.IN_PROGRESS
        return SyncPhase.NOT_STARTED

    def advance(self, next_cursor: str) -> None:
        """Record the cursor returned by a page fetch."""
        self.started = True
        self.cursor = next_cursor
        self.exhausted = not next_cursor

    def resume(self, token: str) -> None:
        """Re-enter InProgress at a caller-held token."""
        self.started = True
        self.cursor = token
        self.exhausted = False
