"""Content-type sniffing from leading bytes.

The server's ``Content-Type`` header is never consulted: misconfigured servers
routinely send images as ``text/plain`` or ``application/octet-stream``, and a
``data:`` URI with the wrong type will not render.
"""

from __future__ import annotations

from urllib.parse import urlsplit

FALLBACK_MIMETYPE = "application/octet-stream"

# Only this many leading bytes are ever inspected.
SNIFF_LENGTH = 32

# Ordered (parts, mimetype) table; every (offset, bytes) part must match.
# Specific signatures come before generic ones: ``<svg`` before ``<?xml``.
_SIGNATURES: list[tuple[tuple[tuple[int, bytes], ...], str]] = [
    # Image
    (((0, b"GIF87a"),), "image/gif"),
    (((0, b"GIF89a"),), "image/gif"),
    (((0, b"\xff\xd8\xff"),), "image/jpeg"),
    (((0, b"\x89PNG\r\n\x1a\n"),), "image/png"),
    (((0, b"RIFF"), (8, b"WEBP")), "image/webp"),
    (((4, b"ftypavif"),), "image/avif"),
    (((0, b"BM"),), "image/bmp"),
    (((0, b"\x00\x00\x01\x00"),), "image/x-icon"),
    (((0, b"<svg"),), "image/svg+xml"),
    # Audio
    (((0, b"ID3"),), "audio/mpeg"),
    (((0, b"\xff\xfb"),), "audio/mpeg"),
    (((0, b"\xff\xf3"),), "audio/mpeg"),
    (((0, b"\xff\xf2"),), "audio/mpeg"),
    (((0, b"OggS"),), "audio/ogg"),
    (((0, b"RIFF"), (8, b"WAVE")), "audio/wav"),
    (((0, b"fLaC"),), "audio/x-flac"),
    # Video
    (((0, b"RIFF"), (8, b"AVI ")), "video/avi"),
    (((4, b"ftypqt"),), "video/quicktime"),
    (((4, b"moov"),), "video/quicktime"),
    (((4, b"ftyp"),), "video/mp4"),
    (((0, b"\x00\x00\x01\xba"),), "video/mpeg"),
    (((0, b"\x00\x00\x01\xb3"),), "video/mpeg"),
    (((0, b"\x1a\x45\xdf\xa3"),), "video/webm"),
    # Font
    (((0, b"wOFF"),), "font/woff"),
    (((0, b"wOF2"),), "font/woff2"),
    (((0, b"\x00\x01\x00\x00"),), "font/ttf"),
    (((0, b"OTTO"),), "font/otf"),
    # Document
    (((0, b"%PDF-"),), "application/pdf"),
    (((0, b"<!DOCTYPE html"),), "text/html"),
    (((0, b"<!doctype html"),), "text/html"),
    (((0, b"<html"),), "text/html"),
    (((0, b"<?xml"),), "application/xml"),
]


def _matches(prefix: bytes, parts: tuple[tuple[int, bytes], ...]) -> bool:
    return all(prefix[offset:offset + len(magic)] == magic for offset, magic in parts)


def sniff(data: bytes) -> str:
    """Return the best-guess mimetype of *data* from its leading bytes.

    Never raises: empty or unrecognised content yields
    ``application/octet-stream``.
    """
    prefix = bytes(data[:SNIFF_LENGTH])
    for parts, mimetype in _SIGNATURES:
        if _matches(prefix, parts):
            return mimetype
    return FALLBACK_MIMETYPE


def guess_mimetype(data: bytes, url: str) -> str:
    """Sniff *data*, letting an ``.svg`` URL path refine a generic result.

    SVG files usually start with an XML declaration or a comment rather than
    ``<svg``, so the bytes alone only say "XML" (or nothing).
    """
    mimetype = sniff(data)
    if mimetype in (FALLBACK_MIMETYPE, "application/xml"):
        if urlsplit(url).path.lower().endswith(".svg"):
            return "image/svg+xml"
    return mimetype
