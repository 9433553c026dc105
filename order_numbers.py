"""
Daily sequential order numbers: ``ORD-YYYYMMDD-NNNN``.

Allocation reads the highest number issued for the day and adds one. It
is not atomic: two concurrent creations can read the same latest number.
The unique index on ``orders.order_number`` makes the second insert fail
instead of storing a duplicate; the caller surfaces that failure without
retrying.

A day holds at most ``MAX_SEQUENCE`` orders; allocation past that fails.
"""
from __future__ import annotations
import re
from datetime import date
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING

from errors import InternalError

PREFIX = "ORD"
SEQUENCE_WIDTH = 4
MAX_SEQUENCE = 10 ** SEQUENCE_WIDTH - 1

_ORDER_NUMBER_RE = re.compile(r"^ORD-(\d{8})-(\d+)$")


def date_key(day: date) -> str:
    return day.strftime("%Y%m%d")


def format_order_number(day: date, sequence: int) -> str:
    return f"{PREFIX}-{date_key(day)}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(order_number: str) -> Optional[int]:
    match = _ORDER_NUMBER_RE.match(order_number or "")
    if not match:
        return None
    return int(match.group(2))


async def latest_order_number(orders: AsyncIOMotorCollection, day: date) -> Optional[str]:
    # Only fixed-width suffixes match, so lexicographic order is numeric order.
    pattern = f"^{PREFIX}-{date_key(day)}-\\d{{{SEQUENCE_WIDTH}}}$"
    cursor = orders.find({"order_number": {"$regex": pattern}}, {"order_number": 1}).sort([("order_number", DESCENDING)]).limit(1)
    async for doc in cursor:
        return doc["order_number"]
    return None


async def next_order_number(orders: AsyncIOMotorCollection, today: date) -> str:
    latest = await latest_order_number(orders, today)
    sequence = 1
    if latest:
        sequence = (parse_sequence(latest) or 0) + 1
    if sequence > MAX_SEQUENCE:
        raise InternalError(f"Daily order limit of {MAX_SEQUENCE} reached for {date_key(today)}")
    return format_order_number(today, sequence)
