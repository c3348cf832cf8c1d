"""
Open document registry.

Documents are tracked with full-document synchronization: every change
notification carries the complete new text, so an entry is replaced,
never patched.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass, field
from functools import cached_property
from itertools import count

from lsprotocol.types import Position


LINE_BREAK = re.compile(r"\r\n|\r|\n")


class DocumentNotOpen(KeyError):
    """Raised when a change arrives for a URI that is not open."""


@dataclass(frozen=True)
class Document:
    """
    Snapshot of an open text document.

    Attributes:
        uri: Stable document identifier
        text: Full document content
        version: Version number sent by the client
        generation: Identifies one open/close lifetime of the URI
    """

    uri: str
    text: str
    version: int
    generation: int = field(default=0, compare=False)

    @cached_property
    def line_offsets(self) -> list[int]:
        offsets = [0]
        offsets.extend(m.end() for m in LINE_BREAK.finditer(self.text))
        return offsets

    def position_at(self, offset: int) -> Position:
        """
        Convert a string offset into an LSP position.

        The character is counted in UTF-16 code units, which is the
        position encoding clients use by default.
        """
        offset = max(0, min(offset, len(self.text)))
        line = bisect_right(self.line_offsets, offset) - 1
        prefix = self.text[self.line_offsets[line]:offset]
        return Position(
            line=line,
            character=len(prefix.encode("utf-16-le")) // 2,
        )


class DocumentStore:
    """
    Mapping from URI to the current Document.

    Only text synchronization notifications update the store.
    """

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._generations = count(1)

    def open(self, uri: str, text: str, version: int) -> Document:
        document = Document(uri, text, version, next(self._generations))
        self._documents[uri] = document
        return document

    def change(self, uri: str, text: str, version: int) -> Document:
        """Replace the text of an open document (last write wins)."""
        current = self._documents.get(uri)
        if current is None:
            raise DocumentNotOpen(uri)

        document = Document(uri, text, version, current.generation)
        self._documents[uri] = document
        return document

    def close(self, uri: str) -> Document | None:
        return self._documents.pop(uri, None)

    def get(self, uri: str) -> Document | None:
        return self._documents.get(uri)

    def all(self) -> list[Document]:
        return list(self._documents.values())

    def __contains__(self, uri: object) -> bool:
        return uri in self._documents

    def __len__(self) -> int:
        return len(self._documents)
