"""Rewriting references into inline ``data:`` URIs."""

from __future__ import annotations

import base64
import logging
from typing import List, Mapping, Sequence

from web_archive.models import Reference, ReferenceKind, Resource

logger = logging.getLogger(__name__)

# Text formats carry no magic bytes, so the reference site decides their type.
_KIND_MIMETYPES = {
    ReferenceKind.STYLESHEET: "text/css",
    ReferenceKind.SCRIPT: "text/javascript",
}


def to_data_uri(mimetype: str, data: bytes) -> str:
    """Encode *data* as ``data:<mimetype>;base64,<payload>``."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mimetype};base64,{encoded}"


def _payload(
    reference: Reference,
    resource: Resource,
    resources: Mapping[str, Resource],
    stylesheets: Mapping[str, Sequence[Reference]] | None,
) -> str:
    if reference.kind is ReferenceKind.STYLESHEET and stylesheets is not None:
        # Inline the stylesheet's own references first.  The nested call gets
        # no stylesheet mapping, so recursion stops here.
        css = embed(resource.text, stylesheets.get(resource.url, ()), resources)
        return to_data_uri(
            _KIND_MIMETYPES[reference.kind], css.encode("utf-8", errors="surrogateescape")
        )
    mimetype = _KIND_MIMETYPES.get(reference.kind, resource.mimetype)
    return to_data_uri(mimetype, resource.content)


def embed(
    text: str,
    references: Sequence[Reference],
    resources: Mapping[str, Resource],
    *,
    stylesheets: Mapping[str, Sequence[Reference]] | None = None,
    placeholder: str | None = None,
) -> str:
    """Return *text* with every fetched reference replaced by a ``data:`` URI.

    Each reference is replaced at its own span, so identical raw values
    elsewhere in the text are untouched.  References whose resource is
    missing or failed are kept as-is, or replaced by *placeholder* when one
    is given.

    Args:
        text: The document the references were discovered in.
        references: References into *text* (any order).
        resources: Fetched resources keyed by resolved URL.
        stylesheets: Stylesheet URL to the references discovered inside that
            stylesheet.  When given, stylesheets are made self-contained
            before being embedded.
        placeholder: Replacement for references that could not be fetched.
    """
    pieces: List[str] = []
    cursor = len(text)
    # Back to front so earlier spans stay valid.
    for reference in sorted(references, key=lambda r: r.start, reverse=True):
        if reference.end > cursor:
            logger.debug("Skipping overlapping reference %r", reference.raw_value)
            continue
        resource = resources.get(reference.resolved_url)
        if resource is not None and resource.fetched:
            replacement = _payload(reference, resource, resources, stylesheets)
        elif placeholder is not None:
            replacement = placeholder
        else:
            continue
        if not reference.quoted:
            replacement = f'"{replacement}"'
        pieces.append(text[reference.end:cursor])
        pieces.append(replacement)
        cursor = reference.start
    pieces.append(text[:cursor])
    return "".join(reversed(pieces))
