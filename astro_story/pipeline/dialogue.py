"""Planet dialogue: the planets argue about which story to tell.

The dialogue is generated from the natal chart. Unlike arcs there is no
canned fallback: a failed call, an unparseable reply or too few usable lines
raise, and the host offers a retry.
"""

import json
import logging
from typing import Any

from pydantic import BaseModel

from astro_story.chart import ChartProvider
from astro_story.llm import (
    AIMessage,
    CancelToken,
    GatewayRequest,
    GenerationCancelled,
    LLMError,
    ProviderCredentials,
    TextGateway,
)
from astro_story.models import MOON, PLANETS
from astro_story.parsing import clamp, parse_json_with_recovery
from astro_story.prompts import render_prompt
from astro_story.templates import PLANET_DIALOGUE_PROMPT, PLANET_DIALOGUE_SYSTEM_PROMPT

from .normalize import StoryGenerationError, _line

logger = logging.getLogger(__name__)

MIN_DIALOGUE_LINES = 20
MAX_DIALOGUE_LINES = 30
LINE_LIMIT = 100

PLANET_TRAITS: dict[str, str] = {
    "Луна": "эмпатичная, чувствительная, заботливая",
    "Плутон": "тёмный, провокационный, любит копать глубоко",
    "Венера": "романтичная, про любовь и отношения",
    "Марс": "агрессивный, прямолинейный, за действия",
    "Сатурн": "строгий, серьёзный, учитель",
    "Меркурий": "логичный, аналитичный, структурный",
    "Нептун": "туманный, мечтательный, запутывающий",
    "Уран": "непредсказуемый, революционный, хаотичный",
    "Юпитер": "философский, видит большую картину",
    "Хирон": "знает про раны и исцеление",
}

SPEAKERS: tuple[str, ...] = (MOON, *PLANETS)


class DialogueLine(BaseModel):
    planet: str
    message: str


def normalize_dialogue(raw: Any) -> list[DialogueLine]:
    """Keep lines with a known speaker and a non-empty message, clamped to one line."""
    if isinstance(raw, dict):
        items = raw.get("dialogue")
    else:
        items = raw
    if not isinstance(items, list):
        return []

    lines = []
    for item in items:
        if not isinstance(item, dict):
            continue
        planet = _line(item.get("planet"))
        message = _line(item.get("message"))
        if planet not in SPEAKERS or not message:
            continue
        lines.append(DialogueLine(planet=planet, message=clamp(message, LINE_LIMIT)))
    return lines


def _dialogue_context(chart: ChartProvider | None) -> dict[str, Any]:
    ctx: dict[str, Any] = {
        "speakers": ", ".join(SPEAKERS),
        "characters": [{"name": name, "traits": traits} for name, traits in PLANET_TRAITS.items()],
        "min_lines": MIN_DIALOGUE_LINES,
        "max_lines": MAX_DIALOGUE_LINES,
        "line_limit": LINE_LIMIT,
    }
    if chart is not None:
        analysis = chart.analysis()
        ctx.update({
            "birth_data": chart.birth_data(),
            "placements": analysis.core_placements,
            "hard_aspects": analysis.hard_aspects,
        })
    return ctx


async def generate_planet_dialogue(
    *,
    gateway: TextGateway,
    chart: ChartProvider | None = None,
    credentials: ProviderCredentials | None = None,
    cancel_token: CancelToken | None = None,
    temperature: float = 0.9,
    max_tokens: int = 2500,
    min_lines: int = MIN_DIALOGUE_LINES,
) -> list[DialogueLine]:
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    try:
        result = await gateway.call(GatewayRequest(
            system=PLANET_DIALOGUE_SYSTEM_PROMPT,
            messages=[AIMessage(role="user", content=render_prompt(PLANET_DIALOGUE_PROMPT, _dialogue_context(chart)))],
            temperature=temperature,
            max_tokens=max_tokens,
            credentials=credentials or ProviderCredentials(),
            cancel_token=cancel_token,
        ))
        lines = normalize_dialogue(parse_json_with_recovery(result.text, "planet-dialogue"))
    except GenerationCancelled:
        raise
    except (LLMError, json.JSONDecodeError) as e:
        logger.error("Planet dialogue generation failed: %s", e)
        raise

    if cancel_token is not None:
        cancel_token.raise_if_cancelled()
    if len(lines) < min_lines:
        raise StoryGenerationError(f"Planet dialogue has {len(lines)} usable lines, need {min_lines}")
    logger.info("Generated planet dialogue: %d lines via %s", len(lines), result.provider)
    return lines
