"""Archiving pipeline: fetch a page and everything it references.

    fetch root → discover page references → fetch them
               → discover ``url(...)`` inside fetched stylesheets → fetch those
               → Archive

``archive`` runs the fetch rounds concurrently on an ``httpx.AsyncClient``;
``blocking_archive`` runs them one request at a time on an ``httpx.Client``.
Discovery and bookkeeping are shared, so both produce the same archive for
the same responses.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any, Dict, List, Mapping

import httpx

from web_archive.errors import RootFetchFailed, UnresolvableReference
from web_archive.fetcher import (
    blocking_fetch_all,
    blocking_fetch_root,
    build_async_client,
    build_client,
    fetch_all,
    fetch_root,
)
from web_archive.models import DocumentKind, Failure, Page, Reference, ReferenceKind, Resource
from web_archive.options import ArchiveOptions
from web_archive.page_archive import Archive
from web_archive.parsing import discover, resolve_url

logger = logging.getLogger(__name__)

OptionsArg = ArchiveOptions | Mapping[str, Any] | None


# ---------------------------------------------------------------------------
# Shared bookkeeping
# ---------------------------------------------------------------------------

def _root_url(url: str) -> str:
    try:
        return resolve_url(url, "")
    except UnresolvableReference as exc:
        raise RootFetchFailed(url, f"invalid URL: {exc.reason}") from exc


class _ArchiveBuilder:
    """Tracks references and failures across the two fetch rounds."""

    def __init__(self, page: Page, options: ArchiveOptions) -> None:
        self.page = page
        self.options = options
        self.failures: List[Failure] = []
        self.references = discover(page.body, DocumentKind.MARKUP, page.base_url, self.failures)
        self.stylesheet_references: Dict[str, List[Reference]] = {}

    def page_urls(self) -> List[str]:
        return list(dict.fromkeys(r.resolved_url for r in self.references))

    def stylesheet_urls(self, resources: Mapping[str, Resource]) -> List[str]:
        """Discover references inside fetched stylesheets; return the URLs still to fetch."""
        for reference in self.references:
            url = reference.resolved_url
            resource = resources.get(url)
            if reference.kind is not ReferenceKind.STYLESHEET or url in self.stylesheet_references:
                continue
            if resource is None or not resource.fetched:
                continue
            self.stylesheet_references[url] = discover(
                resource.text, DocumentKind.STYLESHEET, url, self.failures
            )
        nested = (
            r.resolved_url
            for refs in self.stylesheet_references.values()
            for r in refs
        )
        return [url for url in dict.fromkeys(nested) if url not in resources]

    def build(self, resources: Dict[str, Resource]) -> Archive:
        ordered = self.references + [
            r for refs in self.stylesheet_references.values() for r in refs
        ]
        reported = set()
        for reference in ordered:
            resource = resources.get(reference.resolved_url)
            if resource is None or resource.fetched or resource.url in reported:
                continue
            reported.add(resource.url)
            self.failures.append(Failure(resource.url, resource.reason or "unknown error"))

        archive = Archive(
            page=self.page,
            references=self.references,
            stylesheet_references=self.stylesheet_references,
            resources=resources,
            errors=self.failures,
            options=self.options,
        )
        logger.info(
            "Archived %s: %d resource(s), %d failure(s)",
            self.page.base_url,
            sum(1 for r in resources.values() if r.fetched),
            len(self.failures),
        )
        return archive


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def archive(
    url: str,
    options: OptionsArg = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> Archive:
    """Fetch *url* and every resource it references, concurrently.

    Args:
        url: Absolute URL of the page to archive.
        options: :class:`~web_archive.options.ArchiveOptions` or a mapping of
            option names to values.  Unknown names are rejected.
        client: Optional pre-configured client.  It is used as-is (options
            that configure the transport are ignored) and left open.

    Returns:
        The :class:`~web_archive.page_archive.Archive`; call
        :meth:`~web_archive.page_archive.Archive.embed_resources` on it for
        the self-contained document.

    Raises:
        UnsupportedOption: If *options* are invalid.
        RootFetchFailed: If the page itself cannot be fetched.
    """
    options = ArchiveOptions.coerce(options)
    root_url = _root_url(url)
    logger.info("Archiving %s", root_url)

    if client is None:
        http = build_async_client(options)
    else:
        http = contextlib.nullcontext(client)

    async with http as session:
        page = await fetch_root(session, root_url)
        builder = _ArchiveBuilder(page, options)
        resources = await fetch_all(builder.page_urls(), session)
        resources.update(await fetch_all(builder.stylesheet_urls(resources), session))
    return builder.build(resources)


def blocking_archive(
    url: str,
    options: OptionsArg = None,
    *,
    client: httpx.Client | None = None,
) -> Archive:
    """Sequential counterpart of :func:`archive`, with identical results."""
    options = ArchiveOptions.coerce(options)
    root_url = _root_url(url)
    logger.info("Archiving %s (sequential)", root_url)

    if client is None:
        http = build_client(options)
    else:
        http = contextlib.nullcontext(client)

    with http as session:
        page = blocking_fetch_root(session, root_url)
        builder = _ArchiveBuilder(page, options)
        resources = blocking_fetch_all(builder.page_urls(), session)
        resources.update(blocking_fetch_all(builder.stylesheet_urls(resources), session))
    return builder.build(resources)
