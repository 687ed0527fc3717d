"""Contract usage history endpoints."""

from fastapi import APIRouter, Request

from astro_story.models import UsageHistory

router = APIRouter()


@router.get("/contracts/history")
async def get_history(request: Request):
    """Recently used contracts and scenarios, newest first."""
    return request.app.state.host.contracts.store.load()


@router.get("/contracts/active")
async def get_active(request: Request):
    """The session's active contract and scenario, or null."""
    return request.app.state.host.contracts.active


@router.delete("/contracts/history")
async def reset_history(request: Request):
    """Forget all recorded usage."""
    request.app.state.host.contracts.store.save(UsageHistory())
    return {"ok": True}
