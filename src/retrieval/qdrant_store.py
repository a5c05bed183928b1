"""Qdrant-backed context retrieval and document indexing.

Two collections are used: one for candidate documents (filtered by document
id and type) and one for the shared reference corpus (filtered by type only).
Embeddings come from an OpenAI-compatible endpoint via LangChain.
"""

from __future__ import annotations

import uuid

import structlog
from langchain_openai import OpenAIEmbeddings
from qdrant_client import AsyncQdrantClient
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PointStruct,
    VectorParams,
)

from src.config import RetrievalConfig, Settings, get_screening_settings, get_settings
from src.errors import RetrievalError
from src.interfaces import RetrievalScope
from src.retrieval.chunking import chunk_text

logger = structlog.get_logger(__name__)


def create_embeddings(
    settings: Settings | None = None, config: RetrievalConfig | None = None
) -> OpenAIEmbeddings:
    settings = settings or get_settings()
    config = config or get_screening_settings().retrieval
    return OpenAIEmbeddings(
        model=config.embedding_model,
        api_key=settings.embedding_api_key or settings.llm_api_key,
        base_url=settings.embedding_base_url,
        # Token-length checks assume OpenAI tokenizers.
        check_embedding_ctx_length=settings.embedding_base_url is None,
    )


def _point_id(key: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, key))


def _scope_filter(scope: RetrievalScope) -> Filter:
    conditions = [FieldCondition(key="document_type", match=MatchValue(value=scope.document_type))]
    if not scope.is_reference:
        conditions.append(
            FieldCondition(key="document_id", match=MatchValue(value=scope.document_id))
        )
    return Filter(must=conditions)


def _document_filter(scope: RetrievalScope, key: str) -> Filter:
    """Matches every stored chunk of one indexed document."""
    if scope.is_reference:
        return Filter(
            must=[
                FieldCondition(key="document_type", match=MatchValue(value=scope.document_type)),
                FieldCondition(key="key", match=MatchValue(value=key)),
            ]
        )
    return _scope_filter(scope)


class QdrantRetriever:
    """ContextRetriever over Qdrant collections.

    Args:
        client: Async Qdrant client.
        embeddings: Embedding model for queries and chunks.
        config: Collection names and vector size.
    """

    def __init__(
        self,
        client: AsyncQdrantClient,
        embeddings: OpenAIEmbeddings,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._client = client
        self._embeddings = embeddings
        self._config = config or get_screening_settings().retrieval

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> QdrantRetriever:
        settings = settings or get_settings()
        config = get_screening_settings().retrieval
        client = AsyncQdrantClient(url=settings.qdrant_url, api_key=settings.qdrant_api_key)
        return cls(client, create_embeddings(settings, config), config)

    def _collection(self, scope: RetrievalScope) -> str:
        if scope.is_reference:
            return self._config.reference_collection
        return self._config.documents_collection

    async def ensure_collection(self, name: str) -> None:
        if not await self._client.collection_exists(name):
            await self._client.create_collection(
                collection_name=name,
                vectors_config=VectorParams(
                    size=self._config.embedding_size, distance=Distance.COSINE
                ),
            )
            logger.info("collection_created", collection=name)

    async def query(self, scope: RetrievalScope, text: str, top_n: int) -> list[str]:
        collection = self._collection(scope)
        if not await self._client.collection_exists(collection):
            logger.debug("collection_missing", collection=collection)
            return []

        try:
            vector = await self._embeddings.aembed_query(text)
            response = await self._client.query_points(
                collection_name=collection,
                query=vector,
                limit=top_n,
                query_filter=_scope_filter(scope),
                with_payload=True,
            )
        except Exception as exc:
            raise RetrievalError(f"Query on {collection} failed: {exc}") from exc
        passages = [
            point.payload["text"]
            for point in response.points
            if point.payload and point.payload.get("text")
        ]
        logger.debug(
            "context_query",
            collection=collection,
            document_type=scope.document_type,
            document_id=scope.document_id,
            hits=len(passages),
        )
        return passages

    async def index_document(
        self, document_id: str | None, text: str, document_type: str, key: str | None = None
    ) -> int:
        """Chunk, embed and upsert a document. Returns the number of chunks stored.

        With no ``document_id`` the chunks go to the reference corpus. ``key``
        names the point ids (defaults to the document id). Chunks left from an
        earlier indexing of the same document are deleted first.
        """
        document_type = str(document_type)
        scope = RetrievalScope(document_type=document_type, document_id=document_id)
        collection = self._collection(scope)
        await self.ensure_collection(collection)

        id_prefix = key or document_id or f"ref-{document_type}"
        await self._client.delete(
            collection_name=collection,
            points_selector=FilterSelector(filter=_document_filter(scope, id_prefix)),
        )

        chunks = chunk_text(text)
        if not chunks:
            logger.warning("document_empty", document_id=document_id, document_type=document_type)
            return 0

        contents = [
            f"{document_type.upper()} CHUNK {index + 1}:\n{chunk}"
            for index, chunk in enumerate(chunks)
        ]
        vectors = await self._embeddings.aembed_documents(contents)
        points = [
            PointStruct(
                id=_point_id(f"{id_prefix}-chunk-{index}"),
                vector=vector,
                payload={
                    "document_id": document_id,
                    "document_type": document_type,
                    "key": id_prefix,
                    "chunk_index": index,
                    "total_chunks": len(chunks),
                    "text": content,
                },
            )
            for index, (content, vector) in enumerate(zip(contents, vectors))
        ]
        await self._client.upsert(collection_name=collection, points=points)
        logger.info(
            "document_indexed",
            collection=collection,
            document_id=document_id,
            document_type=document_type,
            chunks=len(points),
        )
        return len(points)

    async def ping(self) -> bool:
        """True when Qdrant answers."""
        try:
            await self._client.get_collections()
        except Exception:
            logger.warning("qdrant_unreachable", exc_info=True)
            return False
        return True

    async def close(self) -> None:
        await self._client.close()
