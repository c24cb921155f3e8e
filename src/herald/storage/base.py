"""Qdrant plumbing shared by the subscription and heartbeat stores.

Herald keeps records in Qdrant as payload-only points. Qdrant will not
create a collection without vectors, so every point carries the same
one-dimensional placeholder and lookups go through payload filters.
"""

from __future__ import annotations

import hashlib
import uuid
from typing import Any, TypeVar

from pydantic import BaseModel
from qdrant_client import AsyncQdrantClient, models

from herald.config import settings

ModelT = TypeVar("ModelT", bound=BaseModel)

# Collection kind -> keyword fields that need a payload index
PAYLOAD_INDEXES: dict[str, dict[str, models.PayloadSchemaType]] = {
    "subscriptions": {
        "profile_id": models.PayloadSchemaType.KEYWORD,
        "events": models.PayloadSchemaType.KEYWORD,
        "is_active": models.PayloadSchemaType.BOOL,
    },
    "heartbeats": {
        "source": models.PayloadSchemaType.KEYWORD,
    },
}

PLACEHOLDER_VECTOR = [1.0]

SCROLL_PAGE_SIZE = 256


class StorageBase:
    """Connection handling and payload helpers for Herald's Qdrant collections.

    Mixins add the per-record operations; this class only knows how to
    open the client, lay out collections and move payloads in and out.
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        prefix: str | None = None,
        location: str | None = None,
    ) -> None:
        """Remember where to connect. Nothing is opened until initialize().

        Args:
            url: Qdrant endpoint, falling back to settings.qdrant_url.
            api_key: Optional key, falling back to settings.qdrant_api_key.
            prefix: Prepended to every collection name (settings.collection_prefix).
            location: Embedded qdrant-client location such as ":memory:".
                Takes precedence over url when given.
        """
        self._url = url or settings.qdrant_url
        self._api_key = api_key or settings.qdrant_api_key
        self._prefix = prefix or settings.collection_prefix
        self._location = location
        self._client: AsyncQdrantClient | None = None

    @property
    def client(self) -> AsyncQdrantClient:
        if self._client is None:
            raise RuntimeError("HeraldStorage used before initialize() was awaited")
        return self._client

    async def initialize(self) -> None:
        """Open the client and create any missing collections."""
        if self._location is not None:
            client = AsyncQdrantClient(location=self._location)
        else:
            client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
        self._client = client
        await self._create_missing_collections()

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.close()

    async def __aenter__(self) -> StorageBase:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _collection_name(self, kind: str) -> str:
        return f"{self._prefix}_{kind}"

    @staticmethod
    def _key_to_point_id(key: str) -> str:
        """Map an arbitrary record key onto a stable UUID point id.

        Point ids must be UUIDs or unsigned ints, so record ids such as
        "whk_ab12" are hashed rather than used directly.
        """
        digest = hashlib.sha256(key.encode()).digest()
        return str(uuid.UUID(bytes=digest[:16]))

    async def _create_missing_collections(self) -> None:
        response = await self.client.get_collections()
        present = {collection.name for collection in response.collections}

        for kind, indexes in PAYLOAD_INDEXES.items():
            name = self._collection_name(kind)
            if name in present:
                continue

            await self.client.create_collection(
                collection_name=name,
                vectors_config=models.VectorParams(
                    size=len(PLACEHOLDER_VECTOR),
                    distance=models.Distance.DOT,
                ),
            )
            for field, schema in indexes.items():
                await self.client.create_payload_index(
                    collection_name=name, field_name=field, field_schema=schema
                )

    async def _upsert(self, kind: str, key: str, payload: dict[str, Any]) -> None:
        point = models.PointStruct(
            id=self._key_to_point_id(key),
            vector=PLACEHOLDER_VECTOR,
            payload=payload,
        )
        await self.client.upsert(collection_name=self._collection_name(kind), points=[point])

    async def _retrieve(self, kind: str, key: str) -> dict[str, Any] | None:
        """Payload stored under key, or None when there is no such point."""
        points = await self.client.retrieve(
            collection_name=self._collection_name(kind),
            ids=[self._key_to_point_id(key)],
            with_payload=True,
        )
        payload = points[0].payload if points else None
        return dict(payload) if payload is not None else None

    async def _scroll_all(self, kind: str, scroll_filter: models.Filter) -> list[dict[str, Any]]:
        """Page through a collection and collect every matching payload."""
        payloads: list[dict[str, Any]] = []
        offset: Any = None
        while True:
            points, offset = await self.client.scroll(
                collection_name=self._collection_name(kind),
                scroll_filter=scroll_filter,
                limit=SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
            )
            payloads.extend(dict(p.payload) for p in points if p.payload is not None)
            if offset is None:
                return payloads

    @staticmethod
    def _model_to_payload(model: BaseModel) -> dict[str, Any]:
        return model.model_dump(mode="json")

    @staticmethod
    def _payload_to_model(payload: dict[str, Any], model_class: type[ModelT]) -> ModelT:
        return model_class.model_validate(payload)
