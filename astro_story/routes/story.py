"""Story session endpoints.

Each command awaits the whole choreography, so the response already carries
the resulting session state. Choice reveal continues on timers afterwards;
poll GET /story to follow it.
"""

import logging

from fastapi import APIRouter, HTTPException, Request

from astro_story.host import StoryHost

from .models import ChooseBody, CustomOptionBody, DialogueBody

logger = logging.getLogger(__name__)

router = APIRouter()


def _host(request: Request) -> StoryHost:
    return request.app.state.host


@router.get("/story")
async def get_story(request: Request):
    """Current session state: phase, timeline, typing, choices, meta, finale, error."""
    return _host(request).snapshot()


@router.post("/story/dialogue")
async def play_dialogue(request: Request, body: DialogueBody):
    """Play planet dialogue lines into the timeline."""
    host = _host(request)
    await host.play_dialogue([(line.author, line.text) for line in body.lines])
    return host.snapshot()


@router.post("/story/dialogue/generate")
async def generate_dialogue(request: Request):
    """Generate the planets' dialogue from the chart and play it.

    A failed generation is reported in the snapshot's `error`; POST /story/retry repeats it.
    """
    host = _host(request)
    await host.start_dialogue()
    return host.snapshot()


@router.post("/story/start")
async def start_story(request: Request):
    """Start a new story: Moon introduction, first arc and its choices."""
    host = _host(request)
    await host.start_story()
    return host.snapshot()


@router.post("/story/choose")
async def choose(request: Request, body: ChooseBody):
    """Continue the story with one of the offered options."""
    host = _host(request)
    try:
        await host.choose(body.option_id)
    except ValueError as e:
        raise HTTPException(409, str(e))
    return host.snapshot()


@router.post("/story/custom-option")
async def custom_option(request: Request, body: CustomOptionBody):
    """Continue the story with the user's own answer."""
    host = _host(request)
    try:
        await host.submit_custom_option(body.transcript)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return host.snapshot()


@router.post("/story/retry")
async def retry(request: Request):
    """Retry the failed planet dialogue or finale."""
    host = _host(request)
    try:
        await host.retry()
    except ValueError as e:
        raise HTTPException(409, str(e))
    return host.snapshot()


@router.post("/story/clear")
async def clear(request: Request):
    """Reset the session to an empty idle timeline and drop the active contract."""
    host = _host(request)
    host.clear()
    return host.snapshot()
