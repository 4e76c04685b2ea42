"""
Document Store - embedded, file-backed NoSQL collection engine

A single-collection document store with a chainable query builder,
secondary and full-text indexing, soft deletes, revision history and
single-writer transactions with snapshot rollback.
"""

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"

from doc_store.application import Collection, open_collection

__all__ = ["Collection", "open_collection", "__version__"]
