"""
Dashboard and period analytics over the orders collection.

Everything here is read-only. Revenue always excludes cancelled orders;
order counts and status distributions include them. Day buckets use the
UTC calendar date of ``created_at``.

Growth and trend percentages compare a value with the same value over the
preceding period of equal length and are 0 whenever that previous value
is 0. Reported money and percentages are whole numbers, rounded
half-up; growth is computed before rounding.
"""
from __future__ import annotations
import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from database import Store, aggregate, utcnow
from errors import ValidationError
from schemas import OrderStatus

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_DAYS = 30
TOP_PRODUCTS_LIMIT = 5

NOT_CANCELLED = {"status": {"$ne": OrderStatus.cancelled.value}}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def growth_percentage(current: float, previous: float) -> int:
    if not previous:
        return 0
    return round_half_up((current - previous) / previous * 100)


def ratio_percentage(part: float, whole: float) -> int:
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


def average(total: float, count: int) -> int:
    if not count:
        return 0
    return round_half_up(total / count)


def created_between(start: Optional[datetime], end: Optional[datetime], inclusive_end: bool = False) -> dict[str, Any]:
    bounds: dict[str, Any] = {}
    if start is not None:
        bounds["$gte"] = start
    if end is not None:
        bounds["$lte" if inclusive_end else "$lt"] = end
    return {"created_at": bounds} if bounds else {}


# Aggregations

async def sum_revenue(store: Store, match: dict[str, Any]) -> float:
    rows = await aggregate(store.orders, [
        {"$match": {**match, **NOT_CANCELLED}},
        {"$group": {"_id": None, "total": {"$sum": "$total_amount"}}},
    ])
    return rows[0]["total"] if rows else 0


async def status_counts(store: Store, match: dict[str, Any]) -> dict[str, int]:
    rows = await aggregate(store.orders, [
        {"$match": match},
        {"$group": {"_id": "$status", "count": {"$sum": 1}}},
    ])
    return {row["_id"]: row["count"] for row in rows}


async def daily_totals(store: Store, match: dict[str, Any]) -> list[dict[str, Any]]:
    rows = await aggregate(store.orders, [
        {"$match": match},
        {"$group": {
            "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$created_at"}},
            "orders": {"$sum": 1},
            "revenue": {"$sum": "$total_amount"},
        }},
        {"$sort": {"_id": 1}},
    ])
    return [
        {"date": row["_id"], "orders": row["orders"], "revenue": round_half_up(row["revenue"])}
        for row in rows
    ]


async def top_products(store: Store, match: dict[str, Any], limit: int = TOP_PRODUCTS_LIMIT) -> list[dict[str, Any]]:
    rows = await aggregate(store.orders, [
        {"$match": {**match, **NOT_CANCELLED}},
        {"$unwind": "$items"},
        {"$group": {
            "_id": "$items.product_id",
            "name": {"$first": "$items.name"},
            "total_quantity": {"$sum": "$items.quantity"},
            "total_revenue": {"$sum": {"$multiply": ["$items.price", "$items.quantity"]}},
        }},
        {"$sort": {"total_revenue": -1}},
        {"$limit": limit},
    ])
    return [
        {
            "product_id": str(row["_id"]),
            "name": row["name"],
            "total_quantity": row["total_quantity"],
            "total_revenue": round_half_up(row["total_revenue"]),
        }
        for row in rows
    ]


def revenue_extremes(days: list[dict[str, Any]]) -> tuple[Optional[dict[str, Any]], Optional[dict[str, Any]]]:
    """Highest and lowest revenue day; on ties the earliest day wins."""
    if not days:
        return None, None
    highest = max(days, key=lambda d: d["revenue"])
    lowest = min(days, key=lambda d: d["revenue"])
    return (
        {"date": highest["date"], "revenue": highest["revenue"]},
        {"date": lowest["date"], "revenue": lowest["revenue"]},
    )


def status_distribution(counts: dict[str, int], total: int) -> dict[str, dict[str, int]]:
    return {
        status: {"count": count, "percentage": ratio_percentage(count, total)}
        for status, count in counts.items()
    }


# Reports

async def dashboard_stats(store: Store, now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or utcnow()
    one_week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)
    current_week = created_between(one_week_ago, now, inclusive_end=True)
    previous_week = created_between(two_weeks_ago, one_week_ago, inclusive_end=True)

    current_orders = await store.orders.count_documents(current_week)
    previous_orders = await store.orders.count_documents(previous_week)
    current_revenue = await sum_revenue(store, current_week)
    previous_revenue = await sum_revenue(store, previous_week)

    return {
        "total_orders": await store.orders.count_documents({}),
        "total_revenue": round_half_up(await sum_revenue(store, {})),
        "total_products": await store.products.count_documents({}),
        "pending_orders": await store.orders.count_documents({"status": OrderStatus.pending.value}),
        "status_distribution": await status_counts(store, {}),
        "orders_trend": growth_percentage(current_orders, previous_orders),
        "revenue_trend": growth_percentage(current_revenue, previous_revenue),
    }


def resolve_period(from_date: Optional[date], to_date: Optional[date], now: datetime) -> tuple[datetime, datetime]:
    """Return [start, end) where end is one day past ``to_date`` so it is inclusive."""
    start = datetime.combine(from_date, time.min) if from_date else now - timedelta(days=DEFAULT_PERIOD_DAYS)
    end = (datetime.combine(to_date, time.min) if to_date else now) + timedelta(days=1)
    if end <= start:
        raise ValidationError("'from' must not be after 'to'")
    return start, end


def previous_period(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    days = round_half_up((end - start) / timedelta(days=1))
    return start - timedelta(days=days), start


async def _period_figures(store: Store, match: dict[str, Any]) -> dict[str, Any]:
    order_count = await store.orders.count_documents(match)
    revenue = await sum_revenue(store, match)
    completed = await store.orders.count_documents({**match, "status": OrderStatus.completed.value})
    return {
        "order_count": order_count,
        "total_revenue": revenue,
        "average_order_value": average(revenue, order_count),
        "completion_rate": ratio_percentage(completed, order_count),
    }


async def period_analytics(store: Store, from_date: Optional[date] = None, to_date: Optional[date] = None, now: Optional[datetime] = None) -> dict[str, Any]:
    now = now or utcnow()
    start, end = resolve_period(from_date, to_date, now)
    prev_start, prev_end = previous_period(start, end)
    match = created_between(start, end)

    current = await _period_figures(store, match)
    previous = await _period_figures(store, created_between(prev_start, prev_end))

    days = await daily_totals(store, {**match, **NOT_CANCELLED})
    highest_day, lowest_day = revenue_extremes(days)
    counts = await status_counts(store, match)

    return {
        "period": {
            "start": start,
            "end": end,
            "previous_start": prev_start,
            "previous_end": prev_end,
        },
        "order_count": current["order_count"],
        "previous_order_count": previous["order_count"],
        "order_growth": growth_percentage(current["order_count"], previous["order_count"]),
        "total_revenue": round_half_up(current["total_revenue"]),
        "previous_total_revenue": round_half_up(previous["total_revenue"]),
        "revenue_growth": growth_percentage(current["total_revenue"], previous["total_revenue"]),
        "average_order_value": current["average_order_value"],
        "previous_average_order_value": previous["average_order_value"],
        "aov_growth": growth_percentage(current["average_order_value"], previous["average_order_value"]),
        "completion_rate": current["completion_rate"],
        "previous_completion_rate": previous["completion_rate"],
        "completion_rate_growth": growth_percentage(current["completion_rate"], previous["completion_rate"]),
        "daily_revenue": {
            "data": days,
            "highest_day": highest_day,
            "lowest_day": lowest_day,
        },
        "status_distribution": status_distribution(counts, current["order_count"]),
        "top_products": await top_products(store, match),
    }


async def order_analytics(store: Store, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict[str, Any]:
    """Order summary over optional inclusive ``created_at`` bounds."""
    match = created_between(start, end, inclusive_end=True)
    return {
        "total_orders": await store.orders.count_documents(match),
        "orders_by_status": await status_counts(store, match),
        "total_revenue": round_half_up(await sum_revenue(store, match)),
        "daily_data": await daily_totals(store, match),
        "top_products": await top_products(store, match),
    }
