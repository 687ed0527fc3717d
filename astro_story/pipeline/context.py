"""Story context: narrative stages and segment folding.

Only the last MAX_VERBATIM_SEGMENTS segments go into a prompt verbatim.
Older ones are condensed into the free-text summary, which is capped at
SUMMARY_LIMIT characters.
"""

from typing import Any, NamedTuple

from astro_story.models import ContextSegment
from astro_story.parsing import enforce_single_line

MAX_VERBATIM_SEGMENTS = 4
SUMMARY_LIMIT = 420
ELLIPSIS = "…"


class StoryStage(NamedTuple):
    label: str
    directive: str


STAGES: tuple[StoryStage, ...] = (
    StoryStage(
        "Погружение",
        "Погрузи героиню в сцену через действие и ощущения; обозначь, что привычный порядок нарушен.",
    ),
    StoryStage(
        "Конфликт",
        "Столкни героиню с внешним препятствием, которое отражает центральный вопрос контракта.",
    ),
    StoryStage(
        "Рефлексия",
        "Дай героине заметить собственную ловушку: привычную реакцию, которая больше не работает.",
    ),
    StoryStage(
        "Испытание",
        "Подними ставки: выбор должен стоить героине чего-то важного.",
    ),
    StoryStage(
        "Поворот",
        "Открой неожиданную сторону ситуации, которая меняет смысл прежних выборов.",
    ),
    StoryStage(
        "Финал",
        "Подведи историю к развязке: последний выбор отвечает на центральный вопрос.",
    ),
)


def stage_for_arc(arc: int) -> StoryStage:
    """Stage by position, clamped to the last stage."""
    return STAGES[min(max(arc, 1) - 1, len(STAGES) - 1)]


def summarize_segment(segment: ContextSegment) -> str:
    text = enforce_single_line(segment.text)
    first_sentence = text.split(". ", 1)[0].rstrip(".")
    line = f"Дуга {segment.arc}: {first_sentence}."
    if segment.option_title:
        line += f" Выбор: «{segment.option_title}»."
    return line


def clip_summary(text: str, limit: int = SUMMARY_LIMIT) -> str:
    text = enforce_single_line(text)
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + ELLIPSIS


def fold_segments(
    segments: list[ContextSegment], summary: str | None = None
) -> tuple[str, list[ContextSegment]]:
    """Split into (summary, recent) with at most MAX_VERBATIM_SEGMENTS recent."""
    older = segments[:-MAX_VERBATIM_SEGMENTS] if len(segments) > MAX_VERBATIM_SEGMENTS else []
    recent = segments[-MAX_VERBATIM_SEGMENTS:]

    parts = [summary.strip()] if summary and summary.strip() else []
    parts.extend(summarize_segment(s) for s in older)
    return clip_summary(" ".join(parts)), list(recent)


def segments_context(segments: list[ContextSegment], summary: str | None = None) -> dict[str, Any]:
    """Template variables for the story-so-far block."""
    folded_summary, recent = fold_segments(segments, summary)
    offset = len(segments) - len(recent)
    return {
        "summary": folded_summary,
        "segments": [
            {
                "step": offset + i + 1,
                "text": s.text,
                "option_title": s.option_title or "",
                "option_description": s.option_description or "",
            }
            for i, s in enumerate(recent)
        ],
    }
