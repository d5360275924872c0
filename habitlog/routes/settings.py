from __future__ import annotations

from fastapi import APIRouter, Depends

from habitlog.auth import require_backend_token
from habitlog.context import HabitLogContext, get_context
from habitlog.schemas import HabitNamePayload

router = APIRouter(dependencies=[Depends(require_backend_token)])


@router.get("/v1/settings")
async def get_app_settings(ctx: HabitLogContext = Depends(get_context)):
    return {
        "habit_name": ctx.store.habit_name,
        "ai_insights_enabled": ctx.settings.ai_insights_enabled,
        "drive_configured": ctx.settings.drive_configured,
    }


@router.put("/v1/settings/habit-name")
async def set_habit_name(payload: HabitNamePayload, ctx: HabitLogContext = Depends(get_context)):
    ctx.store.set_habit_name(payload.name.strip())
    return {"ok": True}


@router.post("/v1/settings/clear")
async def clear_all_data(ctx: HabitLogContext = Depends(get_context)):
    ctx.store.clear_all()
    return {"ok": True}
