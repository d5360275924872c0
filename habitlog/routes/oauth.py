from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from habitlog.auth import require_backend_token
from habitlog.context import HabitLogContext, get_context

router = APIRouter()


@router.get("/v1/oauth/google/connect", dependencies=[Depends(require_backend_token)])
async def google_connect(ctx: HabitLogContext = Depends(get_context)):
    if not ctx.settings.drive_configured:
        raise HTTPException(status_code=400, detail="Drive OAuth not configured")
    return {"url": ctx.drive.build_connect_url()}


@router.get("/v1/oauth/google/callback")
async def google_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    ctx: HabitLogContext = Depends(get_context),
):
    ok = await ctx.sync.sign_in(code, error=error)
    return {"ok": ok, "status": ctx.sync.status()}
