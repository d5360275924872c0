from __future__ import annotations

from fastapi import APIRouter, Depends

from habitlog.auth import require_backend_token
from habitlog.context import HabitLogContext, get_context

router = APIRouter(dependencies=[Depends(require_backend_token)])


@router.get("/v1/sync/status")
async def sync_status(ctx: HabitLogContext = Depends(get_context)):
    return ctx.sync.status()


@router.post("/v1/sync/pull")
async def sync_pull(ctx: HabitLogContext = Depends(get_context)):
    ok = await ctx.sync.pull()
    return {"ok": ok, "status": ctx.sync.status()}


@router.post("/v1/sync/push")
async def sync_push(ctx: HabitLogContext = Depends(get_context)):
    ok = await ctx.sync.push()
    return {"ok": ok, "status": ctx.sync.status()}


@router.post("/v1/sync/sign-out")
async def sync_sign_out(ctx: HabitLogContext = Depends(get_context)):
    ctx.sync.sign_out()
    return {"ok": True}
