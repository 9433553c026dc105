from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

import analytics
import catalog
import orders
from database import Store, get_store
from envelope import listing, ok
from schemas import Order, StatusUpdate
from security import Permission, require_customer_session, require_permission

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@router.post("", status_code=201)
async def create_order(
    payload: Order,
    customer_name: str = Depends(require_customer_session),
    store: Store = Depends(get_store),
):
    order = await orders.create_order(
        store,
        customer_name=customer_name,
        phone=payload.phone,
        email=payload.email,
        items=payload.items,
        subtotal=payload.subtotal,
        total=payload.total,
    )
    return ok(order)


@router.get("", dependencies=[Depends(require_permission(Permission.VIEW_ORDERS))])
async def get_orders(
    status: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(catalog.DEFAULT_LIMIT, ge=1),
    store: Store = Depends(get_store),
):
    return listing(await catalog.list_orders(store, status, sort, page, limit))


@router.get("/analytics", dependencies=[Depends(require_permission(Permission.VIEW_ANALYTICS))])
async def get_order_analytics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    store: Store = Depends(get_store),
):
    return ok(await analytics.order_analytics(store, _naive_utc(start_date), _naive_utc(end_date)))


@router.get("/public/{order_id}")
async def get_public_order(order_id: str, store: Store = Depends(get_store)):
    return ok(await orders.get_order(store, order_id))


@router.get("/{order_id}", dependencies=[Depends(require_permission(Permission.VIEW_ORDERS))])
async def get_order(order_id: str, store: Store = Depends(get_store)):
    return ok(await orders.get_order(store, order_id))


@router.put("/{order_id}/status", dependencies=[Depends(require_permission(Permission.UPDATE_ORDER_STATUS))])
async def update_order_status(order_id: str, payload: StatusUpdate, store: Store = Depends(get_store)):
    return ok(await orders.update_order_status(store, order_id, payload.status))
