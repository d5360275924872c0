from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from habitlog.auth import require_backend_token
from habitlog.context import HabitLogContext, get_context
from habitlog.schemas import CategoryCreate, CustomColumnCreate

router = APIRouter(dependencies=[Depends(require_backend_token)])


def _clean_name(raw_value: str) -> str:
    return " ".join(str(raw_value or "").split()).strip()


@router.get("/v1/categories")
async def list_categories(ctx: HabitLogContext = Depends(get_context)):
    return {"items": [item.model_dump(mode="json") for item in ctx.store.categories]}


@router.post("/v1/categories")
async def create_category(payload: CategoryCreate, ctx: HabitLogContext = Depends(get_context)):
    name = _clean_name(payload.name)
    if not name:
        raise HTTPException(status_code=400, detail="Category name cannot be empty")
    if "," in name:
        raise HTTPException(status_code=400, detail="Category name cannot contain commas")
    return ctx.store.add_category(name).model_dump(mode="json")


@router.delete("/v1/categories/{category_id}")
async def delete_category(category_id: str, ctx: HabitLogContext = Depends(get_context)):
    category = ctx.store.get_category(category_id)
    if category is not None:
        ctx.store.delete_category(category)
    return {"ok": True}


@router.get("/v1/columns")
async def list_columns(ctx: HabitLogContext = Depends(get_context)):
    return {"items": [item.model_dump(mode="json") for item in ctx.store.custom_columns]}


@router.post("/v1/columns")
async def create_column(payload: CustomColumnCreate, ctx: HabitLogContext = Depends(get_context)):
    name = _clean_name(payload.name)
    if not name:
        raise HTTPException(status_code=400, detail="Column name cannot be empty")
    if "," in name:
        raise HTTPException(status_code=400, detail="Column name cannot contain commas")
    return ctx.store.add_custom_column(name, payload.type).model_dump(mode="json")


@router.delete("/v1/columns/{column_id}")
async def delete_column(column_id: str, ctx: HabitLogContext = Depends(get_context)):
    for column in ctx.store.custom_columns:
        if column.id == column_id:
            ctx.store.remove_custom_column(column)
            break
    return {"ok": True}
