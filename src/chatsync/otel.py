"""Tracing decorator for document stores."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import contextmanager
from typing import Any, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, TracerProvider

from chatsync.store import DocumentSnapshot, DocumentStore, Query

T = TypeVar("T")


class TracingDocumentStore:
    """DocumentStore wrapper that creates a CLIENT span per operation.

    Example:
        store = TracingDocumentStore(InMemoryDocumentStore())
        await store.merge("chats", "a_b", {"last_message": "hi"})  # Span created
    """

    def __init__(
        self,
        store: DocumentStore,
        tracer_provider: TracerProvider | None = None,
        db_system: str = "chatsync",
    ) -> None:
        self._store = store
        provider = tracer_provider or trace.get_tracer_provider()
        self._tracer = provider.get_tracer("chatsync.otel")
        self._system = db_system

    def _attributes(self, operation: str, collection: str) -> dict[str, Any]:
        return {
            "db.system": self._system,
            "db.operation.name": operation,
            "db.collection.name": collection,
        }

    async def _traced(
        self,
        operation: str,
        collection: str,
        call: Callable[[], Awaitable[T]],
        doc_id: str | None = None,
    ) -> T:
        with self._tracer.start_as_current_span(
            f"{operation} {collection}",
            kind=SpanKind.CLIENT,
            attributes=self._attributes(operation, collection),
        ) as span:
            if doc_id is not None:
                span.set_attribute("db.document.id", doc_id)
            with _record_errors(span):
                result = await call()
            span.set_status(Status(StatusCode.OK))
            return result

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        return await self._traced(
            "get", collection, lambda: self._store.get(collection, doc_id), doc_id
        )

    async def get_or_create(
        self,
        collection: str,
        doc_id: str,
        defaults: Mapping[str, Any] | None = None,
    ) -> DocumentSnapshot:
        return await self._traced(
            "get_or_create",
            collection,
            lambda: self._store.get_or_create(collection, doc_id, defaults),
            doc_id,
        )

    async def merge(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> DocumentSnapshot:
        return await self._traced(
            "merge", collection, lambda: self._store.merge(collection, doc_id, fields), doc_id
        )

    async def update(
        self, collection: str, doc_id: str, fields: Mapping[str, Any]
    ) -> DocumentSnapshot:
        return await self._traced(
            "update",
            collection,
            lambda: self._store.update(collection, doc_id, fields),
            doc_id,
        )

    async def append(
        self, collection: str, record: Mapping[str, Any]
    ) -> DocumentSnapshot:
        return await self._traced(
            "append", collection, lambda: self._store.append(collection, record)
        )

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        return await self._traced(
            "query", query.collection, lambda: self._store.query(query)
        )

    def watch(self, query: Query) -> AsyncIterator[list[DocumentSnapshot]]:
        """Watch with one span covering the whole subscription.

        Each delivered result is recorded as a span event.
        """
        return self._watch_iter(query, self._store.watch(query))

    async def _watch_iter(
        self,
        query: Query,
        inner: AsyncIterator[list[DocumentSnapshot]],
    ) -> AsyncIterator[list[DocumentSnapshot]]:
        span = self._tracer.start_span(
            f"watch {query.collection}",
            kind=SpanKind.CLIENT,
            attributes=self._attributes("watch", query.collection),
        )
        try:
            with _record_errors(span):
                async for snapshots in inner:
                    span.add_event(
                        "snapshot", {"db.response.returned_rows": len(snapshots)}
                    )
                    yield snapshots
        finally:
            span.end()

    async def close(self) -> None:
        """Close the underlying store."""
        await self._store.close()

    async def __aenter__(self) -> TracingDocumentStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()


@contextmanager
def _record_errors(span: Span):
    try:
        yield
    except Exception as e:
        span.set_status(Status(StatusCode.ERROR, str(e)))
        span.set_attribute("error.type", type(e).__name__)
        raise
