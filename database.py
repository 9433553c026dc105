from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from settings import Settings

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Server-side 'now' in UTC, naive, the way Mongo hands datetimes back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Store:
    """Handle on the document store, built once at startup and passed down."""

    def __init__(self, client: Any, database_name: str):
        self.client = client
        self.db: AsyncIOMotorDatabase = client[database_name]

    @classmethod
    def from_settings(cls, settings: Settings) -> "Store":
        return cls(AsyncIOMotorClient(settings.DATABASE_URL), settings.DATABASE_NAME)

    @property
    def products(self) -> AsyncIOMotorCollection:
        return self.db["products"]

    @property
    def orders(self) -> AsyncIOMotorCollection:
        return self.db["orders"]

    @property
    def users(self) -> AsyncIOMotorCollection:
        return self.db["users"]

    async def ensure_indexes(self) -> None:
        await self.orders.create_index([("order_number", ASCENDING)], unique=True)
        await self.orders.create_index([("created_at", DESCENDING)])
        await self.products.create_index([("category", ASCENDING)])
        await self.users.create_index([("email", ASCENDING)], unique=True)
        logger.info("Indexes ensured on database %s", self.db.name)

    async def ping(self) -> bool:
        try:
            await self.db.command("ping")
        except Exception as e:
            logger.warning("Database ping failed: %s", e)
            return False
        return True

    def close(self) -> None:
        self.client.close()


def get_store(request: Request) -> Store:
    return request.app.state.store


def parse_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def to_client(doc: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Swap Mongo's ``_id`` for a string ``id`` and stringify nested ObjectIds."""
    if doc is None:
        return None
    out = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        else:
            out[key] = _stringify_ids(value)
    return out


def _stringify_ids(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [_stringify_ids(v) for v in value]
    if isinstance(value, dict):
        return {k: _stringify_ids(v) for k, v in value.items()}
    return value


async def create_document(collection: AsyncIOMotorCollection, data: dict[str, Any], now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or utcnow()
    data_with_meta = {**data, "created_at": now, "updated_at": now}
    result = await collection.insert_one(data_with_meta)
    inserted = await collection.find_one({"_id": result.inserted_id})
    return to_client(inserted) or {}


async def get_document(collection: AsyncIOMotorCollection, doc_id: str) -> Optional[dict[str, Any]]:
    oid = parse_object_id(doc_id)
    if oid is None:
        return None
    return await collection.find_one({"_id": oid})


async def get_documents(collection: AsyncIOMotorCollection, filter_dict: dict[str, Any] | None = None, sort: list[tuple[str, int]] | None = None, skip: int = 0, limit: int = 100) -> list[dict[str, Any]]:
    cursor = collection.find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    cursor = cursor.skip(skip).limit(limit)
    docs = []
    async for d in cursor:
        docs.append(to_client(d))
    return docs


async def aggregate(collection: AsyncIOMotorCollection, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [doc async for doc in collection.aggregate(pipeline)]
