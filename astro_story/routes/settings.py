"""Health check and settings endpoints."""

from fastapi import APIRouter, Request

from astro_story.config import get_config, update_config

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings(request: Request):
    """Get app settings (generation, story, timings, history, chart)."""
    return get_config(request.app.state.data_dir)


@router.patch("/settings")
async def update_settings(request: Request, body: dict):
    """Update app settings (partial merge). Takes effect for the next app instance."""
    return update_config(request.app.state.data_dir, body)
