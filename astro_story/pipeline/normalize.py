"""Normalisation of parsed model output into StoryResponse.

Arc responses never come back incomplete: each missing or empty field is
replaced by its fixed default, independently of the others. Finale responses
have no defaults; an incomplete finale raises StoryGenerationError.
"""

from typing import Any

from astro_story.models import (
    HistoryStoryMeta,
    HistoryStoryOption,
    StoryFinale,
    StoryNode,
    StoryResponse,
)
from astro_story.parsing import clamp, enforce_single_line

TITLE_LIMIT = 48
DESCRIPTION_LIMIT = 140
MOON_SUMMARY_LIMIT = 300

FALLBACK_TITLE = "История без названия"
FALLBACK_MOON_SUMMARY = "Сейчас расскажу вам историю..."
FALLBACK_SCENE = (
    "Ты вырываешься из сна, понимая, что комната чужая, а окна заколочены. "
    "В воздухе пахнет озоном и мокрыми стенами, как после грозы, которой никто не слышал. "
    "Перед тобой дрожит синеватый свет, сзади тянется тень, будто у неё собственное мнение. "
    "Ты не знаешь, в какой момент всё пошло иначе, но выбора больше нет."
)
FALLBACK_OPTIONS: tuple[HistoryStoryOption, HistoryStoryOption] = (
    HistoryStoryOption(
        id="open-the-door",
        title="Приоткрыть дверь",
        description="Ты решаешь проверить источник света, затаив дыхание и охватывая ручку пальцами.",
    ),
    HistoryStoryOption(
        id="hide-in-shadow",
        title="Раствориться в тени",
        description="Ты скользишь к стене, надеясь исчезнуть в темноте прежде, чем свет увидит тебя.",
    ),
)


class StoryGenerationError(RuntimeError):
    """Raised when a finale or the planet dialogue could not be generated completely."""


def _line(value: Any) -> str:
    return enforce_single_line(value) if isinstance(value, str) else ""


def sanitize_option(raw: Any, fallback: HistoryStoryOption) -> HistoryStoryOption:
    """Field-by-field fallback; title and description forced single-line and clamped."""
    if not isinstance(raw, dict):
        return fallback
    option_id = _line(raw.get("id"))
    title = _line(raw.get("title"))
    description = _line(raw.get("description"))
    return HistoryStoryOption(
        id=option_id or fallback.id,
        title=clamp(title, TITLE_LIMIT) if title else fallback.title,
        description=clamp(description, DESCRIPTION_LIMIT) if description else fallback.description,
    )


def normalize_options(raw_options: Any) -> list[HistoryStoryOption]:
    items = raw_options if isinstance(raw_options, list) else []
    options = [
        sanitize_option(items[i] if i < len(items) else None, fallback)
        for i, fallback in enumerate(FALLBACK_OPTIONS)
    ]
    if options[0].id == options[1].id:
        options[1] = options[1].model_copy(update={"id": f"{options[1].id}-2"})
    return options


def normalize_meta(raw: Any, defaults: HistoryStoryMeta) -> HistoryStoryMeta:
    """Fill meta from model output; arc_limit always comes from the request."""
    data = raw if isinstance(raw, dict) else {}
    moon_summary = _line(data.get("moon_summary") or data.get("moonSummary"))
    return HistoryStoryMeta(
        author=_line(data.get("author")) or defaults.author,
        title=_line(data.get("title")) or defaults.title,
        genre=_line(data.get("genre")) or defaults.genre,
        contract=_line(data.get("contract")) or defaults.contract,
        arc_limit=defaults.arc_limit,
        moon_summary=clamp(moon_summary, MOON_SUMMARY_LIMIT) if moon_summary else defaults.moon_summary,
    )


def normalize_arc_response(
    raw: Any, meta: HistoryStoryMeta, *, arc: int, stage: str, keep_meta: bool = False
) -> StoryResponse:
    data = raw if isinstance(raw, dict) else {}
    node = data.get("node") if isinstance(data.get("node"), dict) else {}
    options = data.get("options") if data.get("options") is not None else data.get("choices")

    return StoryResponse(
        meta=meta if keep_meta else normalize_meta(data.get("meta"), meta),
        node=StoryNode(
            arc=arc,
            stage=_line(node.get("stage")) or stage,
            scene=_line(node.get("scene")) or FALLBACK_SCENE,
        ),
        options=normalize_options(options),
    )


def fallback_arc_response(meta: HistoryStoryMeta, *, arc: int, stage: str) -> StoryResponse:
    return StoryResponse(
        meta=meta,
        node=StoryNode(arc=arc, stage=stage, scene=FALLBACK_SCENE),
        options=list(FALLBACK_OPTIONS),
    )


def normalize_finale_response(raw: Any, meta: HistoryStoryMeta) -> StoryResponse:
    data = raw if isinstance(raw, dict) else {}
    finale = data.get("finale") if isinstance(data.get("finale"), dict) else data

    fields = {}
    for key in ("resolution", "human_interpretation", "astrological_interpretation"):
        value = finale.get(key)
        if not isinstance(value, str) or not value.strip():
            raise StoryGenerationError(f"Finale is missing '{key}'")
        fields[key] = value.strip()

    return StoryResponse(meta=meta, finale=StoryFinale(**fields))
