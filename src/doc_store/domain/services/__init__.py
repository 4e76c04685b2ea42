"""Domain services for business logic.

Services implement complex domain logic that doesn't naturally
fit within a single entity. They coordinate between entities
and value objects to perform operations.
"""

from doc_store.domain.services.field_cipher import DecryptionError, FieldCipher
from doc_store.domain.services.full_text_index import FullTextIndex, tokenize
from doc_store.domain.services.index_manager import (
    SecondaryIndex,
    SecondaryIndexManager,
    composite_key,
    serialize_index_value,
)
from doc_store.domain.services.query_engine import (
    QueryEngine,
    loose_equals,
    matches,
    order_documents,
    visible,
)
from doc_store.domain.services.relations import belongs_to, has_many, relate
from doc_store.domain.services.schema_inference import infer_schema
from doc_store.domain.services.transaction_manager import SingleWriterTransactionManager

__all__ = [
    "DecryptionError",
    "FieldCipher",
    "FullTextIndex",
    "QueryEngine",
    "SecondaryIndex",
    "SecondaryIndexManager",
    "SingleWriterTransactionManager",
    "belongs_to",
    "composite_key",
    "has_many",
    "infer_schema",
    "loose_equals",
    "matches",
    "order_documents",
    "relate",
    "serialize_index_value",
    "tokenize",
    "visible",
]
