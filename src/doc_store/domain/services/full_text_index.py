"""Inverted full-text index over string fields.

Tokenization lowercases the text and extracts maximal runs that start
with a Unicode letter and continue with letters or digits. A token maps
to the set of document ids whose indexed fields contain it.

Persisted layout:
    {"<token>": {"<document id>": true}}

Search is AND semantics: a document matches when it contains every
query token.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from doc_store.domain.entities import get_path
from doc_store.domain.value_objects import ID_FIELD, DocumentId
from doc_store.infrastructure.logging import get_logger

logger = get_logger(__name__)

TOKEN_PATTERN = re.compile(r"\b[^\W\d_][^\W_]*\b")


def tokenize(text: str) -> list[str]:
    """Lowercased word tokens of ``text`` with duplicates removed, in order.

    A word must start with a letter; words led by other numeric characters
    such as "²" or "Ⅻ" are skipped.
    """
    words = TOKEN_PATTERN.findall(text.lower())
    return list(dict.fromkeys(w for w in words if w[0].isalpha()))


class FullTextIndex:
    """Token -> document id inverted index.

    Usage:
        index = FullTextIndex()
        index.index_document({"_id": "a", "body": "Hello world"}, ["body"])
        index.search("hello")  # -> {"a"}
    """

    def __init__(self) -> None:
        self._postings: dict[str, dict[DocumentId, bool]] = {}
        self._search_count = 0

    def __len__(self) -> int:
        return len(self._postings)

    def __contains__(self, token: str) -> bool:
        return token in self._postings

    @property
    def search_count(self) -> int:
        return self._search_count

    def index_document(self, doc: Mapping[str, Any], fields: Iterable[str]) -> int:
        """Add ``doc``'s tokens from the string values of ``fields``.

        Non-string values are skipped. Returns the number of distinct tokens added.
        """
        doc_id = doc.get(ID_FIELD)
        if not doc_id:
            return 0
        added = 0
        for path in fields:
            value = get_path(doc, path)
            if not isinstance(value, str):
                continue
            for token in tokenize(value):
                postings = self._postings.setdefault(token, {})
                if doc_id not in postings:
                    postings[DocumentId(doc_id)] = True
                    added += 1
        return added

    def remove_document(self, doc_id: DocumentId) -> None:
        """Remove ``doc_id`` from every posting list, dropping empty tokens."""
        for token in list(self._postings):
            postings = self._postings[token]
            if doc_id in postings:
                del postings[doc_id]
                if not postings:
                    del self._postings[token]

    def rebuild(self, documents: Iterable[Mapping[str, Any]], fields: Iterable[str]) -> None:
        """Discard all postings and index ``documents`` from scratch."""
        index_fields = list(fields)
        self._postings = {}
        count = 0
        for doc in documents:
            self.index_document(doc, index_fields)
            count += 1
        logger.info(
            "full_text_index_built",
            fields=index_fields,
            documents=count,
            tokens=len(self._postings),
        )

    def search(self, query: str) -> set[DocumentId]:
        """Ids of documents containing every token of ``query``.

        A query without tokens matches nothing.
        """
        self._search_count += 1
        tokens = tokenize(query)
        if not tokens:
            return set()
        result: set[DocumentId] | None = None
        for token in tokens:
            ids = set(self._postings.get(token, {}))
            result = ids if result is None else result & ids
            if not result:
                return set()
        return result or set()

    def to_dict(self) -> dict[str, dict[str, bool]]:
        return {token: dict(postings) for token, postings in self._postings.items()}

    def load_dict(self, data: Mapping[str, Any] | None) -> None:
        self._postings = {
            token: {DocumentId(doc_id): True for doc_id in postings}
            for token, postings in (data or {}).items()
        }
