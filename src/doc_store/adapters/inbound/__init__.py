"""Inbound adapters for the document store.

Inbound adapters handle incoming requests and convert them to
collection operations.

Exports:
    REST API:
        - create_app: Create a FastAPI application for one collection
        - run_server: Run the REST API server with uvicorn
"""

from doc_store.adapters.inbound.rest_api import (
    DocumentResponse,
    QueryRequest,
    create_app,
    run_server,
)

__all__ = [
    "create_app",
    "run_server",
    "QueryRequest",
    "DocumentResponse",
]
