"""FastAPI API endpoints under /api.

Endpoint groups: health and settings, the story session (start, choose,
custom option, retry, clear, state) and the contract usage history. The app
hosts a single story session; its StoryHost lives on app.state.host.
"""

from fastapi import APIRouter

from .contracts import router as contracts_router
from .settings import router as settings_router
from .story import router as story_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(story_router)
router.include_router(contracts_router)
