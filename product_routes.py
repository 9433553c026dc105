from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Query

import catalog
from database import Store, get_store
from envelope import listing, ok
from schemas import Product, ProductUpdate
from security import Permission, require_permission

router = APIRouter(prefix="/api/products", tags=["products"])

manage_products = [Depends(require_permission(Permission.MANAGE_PRODUCTS))]


@router.get("")
async def get_products(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    in_stock: Optional[bool] = Query(None),
    sort: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(catalog.DEFAULT_LIMIT, ge=1),
    store: Store = Depends(get_store),
):
    result = await catalog.list_products(store, category, search, in_stock, sort, page, limit)
    return listing(result)


@router.get("/categories")
async def get_categories(store: Store = Depends(get_store)):
    return ok(await catalog.list_categories(store))


@router.get("/{product_id}")
async def get_product(product_id: str, store: Store = Depends(get_store)):
    return ok(await catalog.get_product(store, product_id))


@router.post("", status_code=201, dependencies=manage_products)
async def create_product(payload: Product, store: Store = Depends(get_store)):
    return ok(await catalog.create_product(store, payload))


@router.put("/{product_id}", dependencies=manage_products)
async def update_product(product_id: str, payload: ProductUpdate, store: Store = Depends(get_store)):
    return ok(await catalog.update_product(store, product_id, payload))


@router.delete("/{product_id}", dependencies=manage_products)
async def delete_product(product_id: str, store: Store = Depends(get_store)):
    await catalog.delete_product(store, product_id)
    return ok(message="Product deleted successfully")
