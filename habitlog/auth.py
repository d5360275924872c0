from __future__ import annotations

from fastapi import Depends, Header, HTTPException

from habitlog.context import HabitLogContext, get_context


async def require_backend_token(
    x_backend_token: str | None = Header(default=None, alias="X-Backend-Token"),
    ctx: HabitLogContext = Depends(get_context),
) -> None:
    secret = ctx.settings.backend_session_secret
    if not secret:
        return
    if not x_backend_token or x_backend_token != secret:
        raise HTTPException(status_code=401, detail="Invalid backend token")
