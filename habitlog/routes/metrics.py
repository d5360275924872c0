from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from habitlog import metrics
from habitlog.auth import require_backend_token
from habitlog.context import HabitLogContext, get_context
from habitlog.schemas import BucketPoint, CountPair, local_naive

router = APIRouter(dependencies=[Depends(require_backend_token)])


@router.get("/v1/metrics/summary")
async def metrics_summary(ctx: HabitLogContext = Depends(get_context)):
    payload = metrics.summary(ctx.store.entries)
    return {
        "events_this_week": payload["events_this_week"],
        "events_this_month": payload["events_this_month"],
        "weekly_events": [BucketPoint(start=bucket_start, count=count) for bucket_start, count in payload["weekly_events"]],
        "ai_insights_enabled": ctx.settings.ai_insights_enabled,
    }


@router.get("/v1/metrics/trailing")
async def metrics_trailing(days: int = Query(7), ctx: HabitLogContext = Depends(get_context)):
    return {"days": days, "count": metrics.trailing_days(ctx.store.entries, days)}


@router.get("/v1/metrics/buckets")
async def metrics_buckets(
    unit: str = Query(metrics.WEEK),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    ctx: HabitLogContext = Depends(get_context),
):
    if unit not in {metrics.WEEK, metrics.MONTH}:
        raise HTTPException(status_code=400, detail="unit must be 'week' or 'month'")
    series = metrics.bucketed_counts(ctx.store.entries, unit, span_start=local_naive(start), span_end=local_naive(end))
    return {"unit": unit, "items": [BucketPoint(start=bucket_start, count=count) for bucket_start, count in series]}


@router.get("/v1/metrics/categories")
async def metrics_categories(
    start: datetime = Query(...),
    end: datetime = Query(...),
    ctx: HabitLogContext = Depends(get_context),
):
    start, end = local_naive(start), local_naive(end)
    if end < start:
        raise HTTPException(status_code=400, detail="End date must be after start date")
    pairs = metrics.category_breakdown(ctx.store.entries, start, end)
    return {"items": [CountPair(label=label, count=count) for label, count in pairs]}
