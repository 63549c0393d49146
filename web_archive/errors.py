"""Exceptions raised while archiving a page.

Only :class:`RootFetchFailed` and :class:`UnsupportedOption` ever reach the
caller.  :class:`ResourceFetchFailed` and :class:`UnresolvableReference` are
raised internally for a single resource or reference and turned into
:class:`~web_archive.models.Failure` records on the archive.
"""

from __future__ import annotations


class ArchiveError(Exception):
    """Base class for every web-archive error."""


class RootFetchFailed(ArchiveError):
    """The page being archived could not be fetched.  Fatal."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"could not fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class ResourceFetchFailed(ArchiveError):
    """A single resource could not be fetched."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"could not fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class UnresolvableReference(ArchiveError):
    """A reference could not be resolved to an absolute HTTP(S) URL."""

    def __init__(self, raw_value: str, reason: str) -> None:
        super().__init__(f"cannot resolve {raw_value!r}: {reason}")
        self.raw_value = raw_value
        self.reason = reason


class UnsupportedOption(ArchiveError, ValueError):
    """An archive option is unknown or has an invalid value."""
