"""
Order intake and order lifecycle.

``create_order`` validates every cart line against the live product
before anything is written, so a rejected cart never leaves a partial
order behind. Line items are snapshots: name, price, unit and image are
copied from the product at creation time and later product edits do not
touch existing orders.
"""
from __future__ import annotations
import logging
from datetime import date, datetime
from typing import Any, Optional, Sequence

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import Store, create_document, get_document, parse_object_id, to_client, utcnow
from errors import (
    InternalError,
    InvalidQuantityError,
    InvalidStatusTransitionError,
    BusinessRuleError,
    NotFoundError,
    OutOfStockError,
    ValidationError,
)
from order_numbers import next_order_number
from schemas import CartItem, OrderStatus
from settings import settings

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.pending: frozenset({OrderStatus.preparing, OrderStatus.cancelled}),
    OrderStatus.preparing: frozenset({OrderStatus.ready, OrderStatus.cancelled}),
    OrderStatus.ready: frozenset({OrderStatus.completed, OrderStatus.cancelled}),
    OrderStatus.completed: frozenset(),
    OrderStatus.cancelled: frozenset(),
}


def resolve_total_amount(computed_total: float, client_total: Optional[float], trust_client_total: bool) -> float:
    """Pick the stored order total.

    With ``trust_client_total`` on, a truthy client total wins over the
    computed one. Turn ``TRUST_CLIENT_TOTAL`` off to always store the
    server-side sum.
    """
    if trust_client_total and client_total:
        return client_total
    return computed_total


def snapshot_item(product: dict[str, Any], quantity: float) -> dict[str, Any]:
    return {
        "product_id": product["_id"],
        "name": product["name"],
        "price": product["price"],
        "quantity": quantity,
        "unit": product["unit"],
        "image": product.get("image"),
    }


async def validate_cart(store: Store, items: Sequence[CartItem]) -> tuple[list[dict[str, Any]], float]:
    """Check each line against its product; return (snapshots, computed total)."""
    order_items = []
    computed_total = 0.0
    for item in items:
        product = await get_document(store.products, item.product_id)
        if not product:
            raise NotFoundError(f"Product with ID {item.product_id} not found")

        if not product.get("in_stock", False):
            raise OutOfStockError(f"Product {product['name']} is out of stock")

        max_quantity = product.get("max_quantity", 0)
        if item.quantity <= 0 or item.quantity > max_quantity:
            raise InvalidQuantityError(
                f"Invalid quantity for {product['name']}. Maximum allowed: {max_quantity:g}"
            )

        order_items.append(snapshot_item(product, item.quantity))
        computed_total += product["price"] * item.quantity
    return order_items, round(computed_total, 2)


async def create_order(
    store: Store,
    customer_name: str,
    phone: Optional[str],
    items: Sequence[CartItem],
    email: Optional[str] = None,
    subtotal: Optional[float] = None,
    total: Optional[float] = None,
    now: Optional[datetime] = None,
    today: Optional[date] = None,
    trust_client_total: Optional[bool] = None,
) -> dict[str, Any]:
    if not customer_name or not customer_name.strip():
        raise ValidationError("Customer name is required")
    if not phone or not phone.strip():
        raise ValidationError("Phone number is required")
    if not items:
        raise ValidationError("Order must contain at least one item")

    order_items, computed_total = await validate_cart(store, items)

    if trust_client_total is None:
        trust_client_total = settings.TRUST_CLIENT_TOTAL
    total_amount = resolve_total_amount(computed_total, total, trust_client_total)
    if total_amount < 0:
        raise ValidationError("Total amount cannot be negative")
    if subtotal is not None and round(subtotal, 2) != computed_total:
        logger.info("Client subtotal %s differs from computed %s", subtotal, computed_total)

    order_number = await next_order_number(store.orders, today or datetime.now().date())
    try:
        order = await create_document(store.orders, {
            "customer_name": customer_name.strip(),
            "phone": phone.strip(),
            "email": (email or "").strip(),
            "items": order_items,
            "total_amount": total_amount,
            "status": OrderStatus.pending.value,
            "order_number": order_number,
        }, now=now)
    except DuplicateKeyError:
        logger.error("Order number %s already taken by a concurrent order", order_number)
        raise InternalError("Could not allocate an order number, please retry")

    logger.info("Created order %s for %s, total %s", order_number, order["customer_name"], total_amount)
    return order


async def get_order(store: Store, order_id: str) -> dict[str, Any]:
    doc = await get_document(store.orders, order_id)
    if not doc:
        raise NotFoundError("Order not found")
    return to_client(doc)


async def update_order_status(store: Store, order_id: str, status: str) -> dict[str, Any]:
    try:
        target = OrderStatus(status)
    except ValueError:
        raise BusinessRuleError("Invalid status")

    oid = parse_object_id(order_id)
    doc = await store.orders.find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFoundError("Order not found")

    current = OrderStatus(doc["status"])
    if target == current:
        return to_client(doc)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(
            f"Cannot change order status from {current.value} to {target.value}"
        )

    updated = await store.orders.find_one_and_update(
        {"_id": oid},
        {"$set": {"status": target.value, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("Order %s: %s -> %s", doc["order_number"], current.value, target.value)
    return to_client(updated)
