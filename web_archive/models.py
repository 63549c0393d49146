"""Data models for the archiving pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator


class DocumentKind(str, Enum):
    """The language a document is scanned as."""

    MARKUP = "markup"
    STYLESHEET = "stylesheet"


class ReferenceKind(str, Enum):
    """What a reference points at.

    ``url(...)`` occurrences inside stylesheets are all ``IMAGE``: fonts and
    other stylesheet assets are embedded the same opaque way as images.
    """

    IMAGE = "image"
    STYLESHEET = "stylesheet"
    SCRIPT = "script"


class ResourceStatus(str, Enum):
    FETCHED = "fetched"
    FAILED = "failed"


@dataclass(frozen=True)
class Page:
    """The root document of an archiving run."""

    base_url: str
    body: str


@dataclass(frozen=True)
class Reference:
    """A pointer from a document to an external resource, before fetching.

    ``start`` and ``end`` delimit ``raw_value`` inside the text of the
    document it was found in.  ``quoted`` is ``False`` for unquoted markup
    attribute values, which need quoting once rewritten.
    """

    raw_value: str
    resolved_url: str
    kind: ReferenceKind
    start: int
    end: int
    quoted: bool = True


@dataclass(frozen=True)
class Resource:
    """The outcome of fetching one resolved URL."""

    url: str
    content: bytes = b""
    mimetype: str = "application/octet-stream"
    status: ResourceStatus = ResourceStatus.FETCHED
    reason: str | None = None

    @property
    def fetched(self) -> bool:
        return self.status is ResourceStatus.FETCHED

    @property
    def text(self) -> str:
        """Content decoded as UTF-8, undecodable bytes kept as surrogates."""
        return self.content.decode("utf-8", errors="surrogateescape")

    @classmethod
    def failed(cls, url: str, reason: str) -> Resource:
        return cls(url=url, status=ResourceStatus.FAILED, reason=reason)


@dataclass(frozen=True)
class Failure:
    """A resource or reference that could not be embedded."""

    url: str
    reason: str

    def __iter__(self) -> Iterator[str]:
        # Unpacks as ``url, reason = failure``.
        return iter((self.url, self.reason))
