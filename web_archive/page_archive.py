"""The result of one archiving run."""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from typing import Dict, List

from web_archive.embedder import embed
from web_archive.models import Failure, Page, Reference, Resource
from web_archive.options import ArchiveOptions


@dataclass
class Archive:
    """A fetched page together with everything it references.

    Built by :func:`~web_archive.archive` or
    :func:`~web_archive.blocking_archive`; holds no connection, so
    :meth:`embed_resources` is a pure transformation and may be called any
    number of times.
    """

    page: Page
    references: List[Reference] = field(default_factory=list)
    stylesheet_references: Dict[str, List[Reference]] = field(default_factory=dict)
    resources: Dict[str, Resource] = field(default_factory=dict)
    errors: List[Failure] = field(default_factory=list)
    options: ArchiveOptions = field(default_factory=ArchiveOptions)

    def embed_resources(self) -> str:
        """Return the page with every fetched resource inlined as a ``data:`` URI.

        Stylesheets have their own ``url(...)`` references inlined before
        being embedded themselves.
        """
        return embed(
            self.page.body,
            self.references,
            self.resources,
            stylesheets=self.stylesheet_references,
            placeholder=self._placeholder(),
        )

    def _placeholder(self) -> str | None:
        # Written into an HTML attribute value.
        placeholder = self.options.placeholder
        return None if placeholder is None else html.escape(placeholder, quote=True)

    def failures(self) -> List[Failure]:
        """Return the references and resources that could not be embedded."""
        return list(self.errors)
