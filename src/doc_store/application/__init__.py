"""Application layer for the document store.

The application layer orchestrates domain logic to fulfill use cases.

Exports:
    Collection:
        - Collection: Main entry point, one named document collection
        - open_collection: Create a collection and load its artifacts
"""

from doc_store.application.collection import Collection, open_collection

__all__ = [
    "Collection",
    "open_collection",
]
