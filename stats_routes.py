from __future__ import annotations
from datetime import date, datetime, timezone
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query

import analytics
from database import Store, get_store
from envelope import ok
from security import Permission, require_permission

router = APIRouter(
    prefix="/api/stats",
    tags=["stats"],
    dependencies=[Depends(require_permission(Permission.VIEW_ANALYTICS))],
)


def _utc_day(value: Union[date, datetime, None]) -> Optional[date]:
    """Reduce a date or ISO datetime bound to its UTC calendar day."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


@router.get("/dashboard")
async def get_dashboard_stats(store: Store = Depends(get_store)):
    return ok(await analytics.dashboard_stats(store))


@router.get("/analytics")
async def get_analytics(
    from_date: Union[date, datetime, None] = Query(None, alias="from"),
    to_date: Union[date, datetime, None] = Query(None, alias="to"),
    store: Store = Depends(get_store),
):
    return ok(await analytics.period_analytics(store, _utc_day(from_date), _utc_day(to_date)))
