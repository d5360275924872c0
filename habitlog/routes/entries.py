from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from habitlog.auth import require_backend_token
from habitlog.context import HabitLogContext, get_context
from habitlog.csv_codec import encode_entries
from habitlog.schemas import EntryCreate, EntryPatch, HabitEntry, local_naive

router = APIRouter(dependencies=[Depends(require_backend_token)])


def _resolve_category(ctx: HabitLogContext, name: str):
    category = ctx.store.find_category(name)
    if category is None:
        raise HTTPException(status_code=400, detail=f"Unknown category: {name}")
    return category


@router.get("/v1/entries")
async def list_entries(
    week: Optional[datetime] = Query(None),
    ctx: HabitLogContext = Depends(get_context),
):
    if week is not None:
        items = ctx.store.entries_for_week(local_naive(week))
    else:
        items = sorted(ctx.store.entries, key=lambda entry: entry.date, reverse=True)
    return {"items": [item.model_dump(mode="json") for item in items]}


@router.get("/v1/entries/weeks")
async def list_weeks(ctx: HabitLogContext = Depends(get_context)):
    return {"items": [value.isoformat() for value in ctx.store.week_starts()]}


@router.post("/v1/entries")
async def create_entry(payload: EntryCreate, ctx: HabitLogContext = Depends(get_context)):
    fields = {
        "category": _resolve_category(ctx, payload.category),
        "notes": payload.notes.strip(),
        "custom_fields": payload.custom_fields,
    }
    if payload.date is not None:
        fields["date"] = payload.date
    entry = ctx.store.add_entry(HabitEntry(**fields))
    return entry.model_dump(mode="json")


@router.patch("/v1/entries/{entry_id}")
async def update_entry(entry_id: str, payload: EntryPatch, ctx: HabitLogContext = Depends(get_context)):
    existing = ctx.store.get_entry(entry_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Entry not found")
    patch = {}
    if payload.date is not None:
        patch["date"] = payload.date
    if payload.category is not None:
        patch["category"] = _resolve_category(ctx, payload.category)
    if payload.notes is not None:
        patch["notes"] = payload.notes.strip()
    if payload.custom_fields is not None:
        patch["custom_fields"] = payload.custom_fields
    updated = HabitEntry.model_validate({**existing.model_dump(), **patch})
    ctx.store.update_entry(updated)
    return updated.model_dump(mode="json")


@router.delete("/v1/entries/{entry_id}")
async def delete_entry(entry_id: str, ctx: HabitLogContext = Depends(get_context)):
    existing = ctx.store.get_entry(entry_id)
    if existing is not None:
        ctx.store.delete_entry(existing)
    return {"ok": True}


@router.get("/v1/export.csv", response_class=PlainTextResponse)
async def export_csv(ctx: HabitLogContext = Depends(get_context)):
    body = encode_entries(ctx.store.entries, ctx.store.custom_columns)
    return PlainTextResponse(body, media_type="text/csv")
