"""REST API adapter for a document collection.

This module provides a FastAPI-based REST API over one Collection.

Endpoints:
    GET    /health              - Health check
    GET    /documents/{id}      - Fetch one document
    POST   /documents           - Insert a document
    PATCH  /documents/{id}      - Deep-merge a patch into a document
    DELETE /documents/{id}      - Delete (or tombstone) a document
    POST   /query               - Run a query built from conditions
    POST   /query/explain       - Explain a query without running it
    GET    /search?q=           - Full-text search

Usage:
    from doc_store.adapters.inbound.rest_api import create_app
    from doc_store.application import open_collection

    users = await open_collection("users", data_dir="/path/to/data")
    app = create_app(users)
    # Run with uvicorn: uvicorn app:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from typing import Any, Literal

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from doc_store import __version__
from doc_store.application.collection import Collection
from doc_store.infrastructure.logging import get_logger
from doc_store.ports.inbound.document_store import ValidationError
from doc_store.ports.inbound.transaction_manager import TransactionLockError

logger = get_logger(__name__)


class ConditionModel(BaseModel):
    """One field/operator/value condition."""

    field: str = Field(..., description="Dot-path of the document field")
    operator: str = Field("=", description="Comparison operator")
    value: Any = Field(None, description="Operand")


class QueryRequest(BaseModel):
    """Request model for /query and /query/explain."""

    where: list[ConditionModel] = Field(default_factory=list, description="AND conditions")
    or_where: list[list[ConditionModel]] = Field(
        default_factory=list, description="OR groups, each ANDed with the rest"
    )
    order_by: str | None = Field(None, description="Field to order by")
    direction: Literal["asc", "desc"] = Field("asc", description="Order direction")
    skip: int = Field(0, ge=0, description="Documents to skip")
    limit: int | None = Field(None, ge=0, description="Maximum documents to return")
    trashed: Literal["exclude", "include", "only"] = Field(
        "exclude", description="Tombstone visibility"
    )


class DocumentResponse(BaseModel):
    """Response model for document lists."""

    count: int = Field(..., description="Number of documents returned")
    documents: list[dict[str, Any]] = Field(default_factory=list, description="Documents")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")
    collection: str = Field(..., description="Collection name")


def _apply_query(collection: Collection, request: QueryRequest) -> Collection:
    """Translate a QueryRequest into builder calls."""
    for condition in request.where:
        collection.where(condition.field, condition.operator, condition.value)
    for group in request.or_where:
        collection.or_where([c.model_dump() for c in group])
    if request.order_by:
        collection.order_by(request.order_by, request.direction)
    if request.skip:
        collection.skip(request.skip)
    if request.limit is not None:
        collection.limit(request.limit)
    if request.trashed == "include":
        collection.with_trashed()
    elif request.trashed == "only":
        collection.only_deleted()
    return collection


def create_app(collection: Collection) -> FastAPI:
    """Create a FastAPI application for a collection.

    Args:
        collection: The collection to serve.

    Returns:
        A configured FastAPI application.
    """
    app = FastAPI(
        title="Doc Store API",
        description=f"REST API for the {collection.name!r} collection",
        version=__version__,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", version=__version__, collection=collection.name)

    @app.get("/documents/{doc_id}", tags=["Documents"])
    async def get_document(doc_id: str) -> dict[str, Any]:
        doc = await collection.find_by_id(doc_id)
        if doc is None:
            raise HTTPException(status_code=404, detail=f"Document {doc_id} not found")
        return doc

    @app.post("/documents", status_code=201, tags=["Documents"])
    async def insert_document(document: dict[str, Any]) -> dict[str, Any]:
        try:
            return await collection.insert(document)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except TransactionLockError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.patch("/documents/{doc_id}", tags=["Documents"])
    async def update_document(doc_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        try:
            updated = await collection.update({"_id": doc_id}, patch)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except TransactionLockError as e:
            raise HTTPException(status_code=409, detail=str(e))
        if not updated:
            raise HTTPException(status_code=404, detail=f"Document {doc_id} not found")
        return updated[0]

    @app.delete("/documents/{doc_id}", tags=["Documents"])
    async def delete_document(doc_id: str) -> dict[str, Any]:
        try:
            deleted = await collection.delete(doc_id)
        except TransactionLockError as e:
            raise HTTPException(status_code=409, detail=str(e))
        if not deleted:
            raise HTTPException(status_code=404, detail=f"Document {doc_id} not found")
        return {"deleted": True, "_id": doc_id}

    @app.post("/query", response_model=DocumentResponse, tags=["Query"])
    async def run_query(request: QueryRequest) -> DocumentResponse:
        documents = await _apply_query(collection, request).get()
        return DocumentResponse(count=len(documents), documents=documents)

    @app.post("/query/explain", tags=["Query"])
    async def explain_query(request: QueryRequest) -> dict[str, Any]:
        _apply_query(collection, request)
        plan = collection.explain_query()
        collection.reset_query()
        return plan.to_dict()

    @app.get("/search", response_model=DocumentResponse, tags=["Query"])
    async def search(q: str = Query(..., min_length=1, description="Search text")) -> DocumentResponse:
        documents = await collection.full_text_search(q)
        return DocumentResponse(count=len(documents), documents=documents)

    return app


def run_server(
    collection: Collection,
    host: str = "0.0.0.0",
    port: int = 8000,
) -> None:
    """Run the REST API server.

    Args:
        collection: The collection to serve.
        host: Host to bind to.
        port: Port to bind to.
    """
    import uvicorn

    app = create_app(collection)
    logger.info("server_starting", collection=collection.name, host=host, port=port)
    uvicorn.run(app, host=host, port=port)


def main() -> None:
    """Serve the configured collection with logging, tracing and metrics enabled."""
    import asyncio

    from doc_store.application.collection import open_collection
    from doc_store.infrastructure.config import get_config
    from doc_store.infrastructure.observability import setup_observability

    config = get_config()
    config.ensure_directories()
    metrics = setup_observability(config)
    collection = asyncio.run(
        open_collection(config.server.collection, config=config, metrics=metrics)
    )
    run_server(collection, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
