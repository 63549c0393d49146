"""HTTP fetching for the root document and its resources.

Both a concurrent (``httpx.AsyncClient`` + ``asyncio.gather``) and a
sequential (``httpx.Client``) flavour are provided.  They return identical
mappings for identical responses: results are keyed by URL, so completion
order never matters.

A resource that cannot be fetched is returned as a failed
:class:`~web_archive.models.Resource`; only the root document raises.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable

import httpx

from web_archive.errors import ResourceFetchFailed, RootFetchFailed
from web_archive.models import Page, Resource
from web_archive.options import ArchiveOptions
from web_archive.sniffer import guess_mimetype

logger = logging.getLogger(__name__)

# httpx.InvalidURL is not an HTTPError subclass.
_TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


# ---------------------------------------------------------------------------
# Client construction
# ---------------------------------------------------------------------------

def _client_kwargs(options: ArchiveOptions) -> dict[str, Any]:
    """Translate *options* into keyword arguments shared by both httpx clients."""
    return {
        "headers": {"User-Agent": options.user_agent},
        "timeout": httpx.Timeout(options.timeout, pool=None),
        "verify": options.verify_tls,
        "proxy": options.proxy.url if options.proxy else None,
        "follow_redirects": True,
    }


def build_client(options: ArchiveOptions) -> httpx.Client:
    """Return a blocking client configured from *options*."""
    return httpx.Client(**_client_kwargs(options))


def build_async_client(options: ArchiveOptions) -> httpx.AsyncClient:
    """Return an async client configured from *options*."""
    return httpx.AsyncClient(**_client_kwargs(options))


# ---------------------------------------------------------------------------
# Response handling
# ---------------------------------------------------------------------------

def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


def _check_response(url: str, response: httpx.Response) -> None:
    if not response.is_success:
        raise ResourceFetchFailed(url, f"HTTP {response.status_code}")


def _to_resource(url: str, response: httpx.Response) -> Resource:
    _check_response(url, response)
    content = response.content
    return Resource(url=url, content=content, mimetype=guess_mimetype(content, url))


def _failed(exc: ResourceFetchFailed) -> Resource:
    logger.warning("Resource fetch failed: %s", exc)
    return Resource.failed(exc.url, exc.reason)


def _to_page(url: str, response: httpx.Response) -> Page:
    if not response.is_success:
        raise RootFetchFailed(url, f"HTTP {response.status_code}")
    return Page(base_url=str(response.url), body=response.text)


# ---------------------------------------------------------------------------
# Concurrent
# ---------------------------------------------------------------------------

async def _fetch_one(client: httpx.AsyncClient, url: str) -> Resource:
    logger.debug("GET %s", url)
    try:
        try:
            response = await client.get(url)
        except _TRANSPORT_ERRORS as exc:
            raise ResourceFetchFailed(url, _describe(exc)) from exc
        return _to_resource(url, response)
    except ResourceFetchFailed as exc:
        return _failed(exc)


async def fetch_all(urls: Iterable[str], client: httpx.AsyncClient) -> Dict[str, Resource]:
    """Fetch every URL in *urls* concurrently.

    One task per URL; concurrency is bounded only by the client's connection
    limits.  Per-URL failures are captured in the returned mapping.
    """
    unique = list(dict.fromkeys(urls))
    results = await asyncio.gather(*(_fetch_one(client, url) for url in unique))
    return {resource.url: resource for resource in results}


async def fetch_root(client: httpx.AsyncClient, url: str) -> Page:
    """Fetch the document being archived.

    Raises:
        RootFetchFailed: On any transport error, timeout or non-2xx status.
    """
    logger.debug("GET %s (root)", url)
    try:
        response = await client.get(url)
    except _TRANSPORT_ERRORS as exc:
        raise RootFetchFailed(url, _describe(exc)) from exc
    return _to_page(url, response)


# ---------------------------------------------------------------------------
# Sequential
# ---------------------------------------------------------------------------

def _blocking_fetch_one(client: httpx.Client, url: str) -> Resource:
    logger.debug("GET %s", url)
    try:
        try:
            response = client.get(url)
        except _TRANSPORT_ERRORS as exc:
            raise ResourceFetchFailed(url, _describe(exc)) from exc
        return _to_resource(url, response)
    except ResourceFetchFailed as exc:
        return _failed(exc)


def blocking_fetch_all(urls: Iterable[str], client: httpx.Client) -> Dict[str, Resource]:
    """Fetch every URL in *urls*, one at a time."""
    resources: Dict[str, Resource] = {}
    for url in dict.fromkeys(urls):
        resources[url] = _blocking_fetch_one(client, url)
    return resources


def blocking_fetch_root(client: httpx.Client, url: str) -> Page:
    """Blocking counterpart of :func:`fetch_root`."""
    logger.debug("GET %s (root)", url)
    try:
        response = client.get(url)
    except _TRANSPORT_ERRORS as exc:
        raise RootFetchFailed(url, _describe(exc)) from exc
    return _to_page(url, response)
