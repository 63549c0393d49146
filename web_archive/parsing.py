"""Resource discovery: find the references a document makes to other resources.

Markup is parsed with BeautifulSoup (``html.parser`` backend, which records the
source position of every tag) so that tags inside comments or script bodies
are never mistaken for references.  The exact span of each attribute value is
then read from the raw tag text, because embedding rewrites the original text
in place rather than re-serialising a parse tree.

Stylesheets are scanned with a regular expression for ``url(...)``.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Iterator, List
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

from web_archive.errors import UnresolvableReference
from web_archive.models import DocumentKind, Failure, Reference, ReferenceKind

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_TAG_NAME_RE = re.compile(r"<[^\s/>]+")
_ATTRIBUTE_RE = re.compile(
    r"""(?P<name>[^\s/>"'=][^\s/>=]*)"""
    r"""(?:\s*=\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<uq>[^\s>]+)))?"""
)
_CSS_URL_RE = re.compile(
    r"""url\(\s*(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<uq>[^)\s"']*))\s*\)""",
    re.IGNORECASE,
)
_CSS_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_CSS_IMPORT_RE = re.compile(r"@import\b[^;]*", re.IGNORECASE)

_FETCHABLE_SCHEMES = ("http", "https")


# ---------------------------------------------------------------------------
# URL resolution
# ---------------------------------------------------------------------------

def _is_inline(value: str) -> bool:
    """Return ``True`` for values that need no fetch: empty, ``data:``, ``#...``."""
    value = value.strip()
    return not value or value.startswith("#") or value[:5].lower() == "data:"


def resolve_url(value: str, base_url: str) -> str:
    """Resolve *value* against *base_url* and return an absolute HTTP(S) URL.

    Absolute values come back unchanged; relative paths, absolute paths and
    protocol-relative values follow standard relative resolution.

    Raises:
        UnresolvableReference: If the value cannot be parsed or does not
            resolve to an ``http``/``https`` URL.
    """
    value = value.strip()
    try:
        resolved = urljoin(base_url, value)
        parts = urlsplit(resolved)
        parts.port  # noqa: B018  raises ValueError for a bad port
    except ValueError as exc:
        raise UnresolvableReference(value, str(exc)) from exc
    if parts.scheme.lower() not in _FETCHABLE_SCHEMES or not parts.hostname:
        raise UnresolvableReference(value, f"not an http(s) URL: {resolved!r}")
    return resolved


# ---------------------------------------------------------------------------
# Markup helpers
# ---------------------------------------------------------------------------

def _line_offsets(text: str) -> List[int]:
    """Return the offset of the first character of every line in *text*.

    Lines are split on ``\\n`` only, which is how ``html.parser`` counts them.
    """
    offsets = [0]
    offsets.extend(m.end() for m in re.finditer("\n", text))
    return offsets


def _iter_attributes(text: str, tag_start: int) -> Iterator[tuple[str, int, int, bool]]:
    """Yield ``(name, start, end, quoted)`` for each attribute of the tag at *tag_start*.

    ``start``/``end`` delimit the raw attribute value.  Valueless attributes
    are skipped.
    """
    match = _TAG_NAME_RE.match(text, tag_start)
    if match is None:
        return
    pos = match.end()
    while pos < len(text):
        char = text[pos]
        if char == ">":
            return
        if char.isspace() or char == "/":
            pos += 1
            continue
        attr = _ATTRIBUTE_RE.match(text, pos)
        if attr is None:
            pos += 1
            continue
        for group in ("dq", "sq", "uq"):
            if attr.group(group) is not None:
                yield attr.group("name").lower(), attr.start(group), attr.end(group), group != "uq"
                break
        pos = attr.end()


def _attribute_span(text: str, tag_start: int, name: str) -> tuple[int, int, bool] | None:
    # The first occurrence wins, as in browsers.
    for attr_name, start, end, quoted in _iter_attributes(text, tag_start):
        if attr_name == name:
            return start, end, quoted
    return None


def _reference_attribute(tag: Tag) -> tuple[str, ReferenceKind] | None:
    """Return the resource-bearing attribute of *tag* and its kind, if any."""
    if tag.name == "img":
        return "src", ReferenceKind.IMAGE
    if tag.name == "script":
        return "src", ReferenceKind.SCRIPT
    if tag.name == "link":
        rel = tag.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "stylesheet" in (r.lower() for r in rel):
            return "href", ReferenceKind.STYLESHEET
    return None


def _effective_base_url(soup: BeautifulSoup, base_url: str) -> str:
    """Honour the first ``<base href>`` in the document, if it resolves."""
    base = soup.find("base", href=True)
    if base is None:
        return base_url
    try:
        return resolve_url(html.unescape(base["href"]), base_url)
    except UnresolvableReference:
        logger.debug("Ignoring unusable <base href=%r>", base["href"])
        return base_url


def _discover_markup(text: str, base_url: str, failures: List[Failure]) -> List[Reference]:
    soup = BeautifulSoup(text, "html.parser")
    base_url = _effective_base_url(soup, base_url)
    line_offsets = _line_offsets(text)

    references: List[Reference] = []
    for tag in soup.find_all(["img", "link", "script"]):
        target = _reference_attribute(tag)
        if target is None or tag.sourceline is None:
            continue
        attr_name, kind = target

        tag_start = line_offsets[tag.sourceline - 1] + tag.sourcepos
        if not text.startswith("<", tag_start):
            logger.debug("Lost track of <%s> at line %s", tag.name, tag.sourceline)
            continue
        span = _attribute_span(text, tag_start, attr_name)
        if span is None:
            continue
        start, end, quoted = span

        raw_value = text[start:end]
        value = html.unescape(raw_value)
        if _is_inline(value):
            continue
        try:
            resolved = resolve_url(value, base_url)
        except UnresolvableReference as exc:
            logger.warning("Skipping <%s %s=%r>: %s", tag.name, attr_name, raw_value, exc.reason)
            failures.append(Failure(raw_value, exc.reason))
            continue
        references.append(Reference(raw_value, resolved, kind, start, end, quoted))
    return references


# ---------------------------------------------------------------------------
# Stylesheet helpers
# ---------------------------------------------------------------------------

def _discover_stylesheet(text: str, base_url: str, failures: List[Failure]) -> List[Reference]:
    comments = [m.span() for m in _CSS_COMMENT_RE.finditer(text)]

    # @import targets stay external; nested stylesheets are not followed.
    masked = _CSS_COMMENT_RE.sub(lambda m: " " * len(m.group()), text)
    imports = [m.span() for m in _CSS_IMPORT_RE.finditer(masked)]

    references: List[Reference] = []
    for match in _CSS_URL_RE.finditer(text):
        if any(start <= match.start() < end for start, end in comments):
            continue
        if any(start <= match.start() < end for start, end in imports):
            logger.debug("Leaving @import %s in %s external", match.group(0), base_url)
            continue
        group = next(g for g in ("dq", "sq", "uq") if match.group(g) is not None)
        raw_value = match.group(group)
        if _is_inline(raw_value):
            continue
        try:
            resolved = resolve_url(raw_value, base_url)
        except UnresolvableReference as exc:
            logger.warning("Skipping url(%r) in %s: %s", raw_value, base_url, exc.reason)
            failures.append(Failure(raw_value, exc.reason))
            continue
        references.append(
            Reference(
                raw_value,
                resolved,
                ReferenceKind.IMAGE,
                match.start(group),
                match.end(group),
            )
        )
    return references


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def discover(
    text: str,
    kind: DocumentKind,
    base_url: str,
    failures: List[Failure] | None = None,
) -> List[Reference]:
    """Return every external reference in *text*, in document order.

    Duplicates are kept: the same URL referenced twice yields two references.
    Inline values (``data:`` URIs, ``#fragment``, empty) are skipped.
    References that cannot be resolved are dropped and, when *failures* is
    given, recorded there.

    Args:
        text: Document text.
        kind: Whether *text* is markup or a stylesheet.
        base_url: Absolute URL the document was fetched from.
        failures: Optional list that unresolvable references are appended to.
    """
    if failures is None:
        failures = []
    if kind is DocumentKind.MARKUP:
        references = _discover_markup(text, base_url, failures)
    else:
        references = _discover_stylesheet(text, base_url, failures)
    logger.debug("Discovered %d reference(s) in %s %s", len(references), kind.value, base_url)
    return references
