from __future__ import annotations
import logging
import math
import re
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from database import Store, create_document, get_document, get_documents, parse_object_id, to_client, utcnow
from errors import NotFoundError, ValidationError
from schemas import Product, ProductUpdate

logger = logging.getLogger(__name__)

DEFAULT_SORT = [("created_at", DESCENDING)]
DEFAULT_LIMIT = 20

_SORT_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")


def parse_sort(sort: Optional[str]) -> list[tuple[str, int]]:
    """``-field`` or ``field:desc`` sorts descending; ``field`` or ``field:asc`` ascending."""
    if not sort:
        return list(DEFAULT_SORT)
    sort = sort.strip()
    direction = ASCENDING
    if sort.startswith("-"):
        field = sort[1:]
        direction = DESCENDING
    elif ":" in sort:
        field, order = sort.split(":", 1)
        direction = DESCENDING if order.strip().lower() == "desc" else ASCENDING
    else:
        field = sort
    field = field.strip()
    if not _SORT_FIELD_RE.match(field):
        raise ValidationError(f"Invalid sort field '{field}'")
    return [(field, direction)]


async def paginate(collection: AsyncIOMotorCollection, query: dict[str, Any], sort: list[tuple[str, int]], page: int = 1, limit: int = DEFAULT_LIMIT) -> dict[str, Any]:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    total = await collection.count_documents(query)
    items = await get_documents(collection, query, sort=sort, skip=(page - 1) * limit, limit=limit)
    return {
        "items": items,
        "count": len(items),
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit),
    }


def build_product_query(category: Optional[str] = None, search: Optional[str] = None, in_stock: Optional[bool] = None) -> dict[str, Any]:
    query: dict[str, Any] = {}
    if category:
        query["category"] = category
    if in_stock is not None:
        query["in_stock"] = in_stock
    if search:
        pattern = re.escape(search.strip())
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    return query


async def list_products(store: Store, category: Optional[str] = None, search: Optional[str] = None, in_stock: Optional[bool] = None, sort: Optional[str] = None, page: int = 1, limit: int = DEFAULT_LIMIT) -> dict[str, Any]:
    query = build_product_query(category, search, in_stock)
    return await paginate(store.products, query, parse_sort(sort), page, limit)


async def list_orders(store: Store, status: Optional[str] = None, sort: Optional[str] = None, page: int = 1, limit: int = DEFAULT_LIMIT) -> dict[str, Any]:
    query: dict[str, Any] = {}
    if status:
        query["status"] = status
    return await paginate(store.orders, query, parse_sort(sort), page, limit)


async def list_categories(store: Store) -> list[str]:
    categories = await store.products.distinct("category")
    return sorted(c for c in categories if c)


async def get_product(store: Store, product_id: str) -> dict[str, Any]:
    doc = await get_document(store.products, product_id)
    if not doc:
        raise NotFoundError("Product not found")
    return to_client(doc)


async def create_product(store: Store, product: Product) -> dict[str, Any]:
    created = await create_document(store.products, product.model_dump(mode="json"))
    logger.info("Created product %s (%s)", created["id"], created["name"])
    return created


async def update_product(store: Store, product_id: str, changes: ProductUpdate) -> dict[str, Any]:
    oid = parse_object_id(product_id)
    if oid is None:
        raise NotFoundError("Product not found")
    update = changes.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    update["updated_at"] = utcnow()
    doc = await store.products.find_one_and_update(
        {"_id": oid},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise NotFoundError("Product not found")
    return to_client(doc)


async def delete_product(store: Store, product_id: str) -> None:
    oid = parse_object_id(product_id)
    if oid is None:
        raise NotFoundError("Product not found")
    result = await store.products.delete_one({"_id": oid})
    if result.deleted_count == 0:
        raise NotFoundError("Product not found")
    logger.info("Deleted product %s", product_id)
