"""web-archive: capture a web page as a single self-contained document.

Fetches a page, discovers the images, stylesheets and scripts it references
(and the ``url(...)`` references inside those stylesheets), fetches them, and
inlines each one as a ``data:`` URI::

    from web_archive import blocking_archive

    archive = blocking_archive("http://example.com")
    html = archive.embed_resources()
    for url, reason in archive.failures():
        print(url, reason)

``archive`` is the ``async`` variant and fetches resources concurrently.
"""

from web_archive.archiver import archive, blocking_archive
from web_archive.embedder import embed
from web_archive.errors import (
    ArchiveError,
    ResourceFetchFailed,
    RootFetchFailed,
    UnresolvableReference,
    UnsupportedOption,
)
from web_archive.fetcher import blocking_fetch_all, fetch_all
from web_archive.models import (
    DocumentKind,
    Failure,
    Page,
    Reference,
    ReferenceKind,
    Resource,
    ResourceStatus,
)
from web_archive.options import ArchiveOptions, ProxyConfig
from web_archive.page_archive import Archive
from web_archive.parsing import discover, resolve_url
from web_archive.sniffer import sniff

__all__ = [
    "archive",
    "blocking_archive",
    "Archive",
    "ArchiveOptions",
    "ProxyConfig",
    "discover",
    "resolve_url",
    "fetch_all",
    "blocking_fetch_all",
    "embed",
    "sniff",
    "Page",
    "Reference",
    "ReferenceKind",
    "DocumentKind",
    "Resource",
    "ResourceStatus",
    "Failure",
    "ArchiveError",
    "RootFetchFailed",
    "ResourceFetchFailed",
    "UnresolvableReference",
    "UnsupportedOption",
]
