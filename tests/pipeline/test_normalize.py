"""Tests for arc/finale normalisation of parsed model output."""

import pytest

from astro_story.models import HistoryStoryMeta, HistoryStoryOption
from astro_story.pipeline.normalize import (
    DESCRIPTION_LIMIT,
    FALLBACK_OPTIONS,
    FALLBACK_SCENE,
    MOON_SUMMARY_LIMIT,
    TITLE_LIMIT,
    StoryGenerationError,
    fallback_arc_response,
    normalize_arc_response,
    normalize_finale_response,
    normalize_meta,
    normalize_options,
    sanitize_option,
)

DEFAULTS = HistoryStoryMeta(
    author="История",
    title="История без названия",
    genre="психологическая драма",
    contract="Вопрос",
    arc_limit=7,
    moon_summary="Сейчас расскажу вам историю...",
)


def test_long_multiline_fields_are_clamped():
    raw = {
        "meta": {"moon_summary": "Луна\nговорит " + "очень " * 80},
        "node": {"scene": "Сцена\nв две строки."},
        "options": [
            {"id": "a", "title": "Очень длинное название варианта, которое не помещается в кнопку", "description": "x\n" * 100},
            {"id": "b", "title": "Коротко", "description": "Пойти."},
        ],
    }
    response = normalize_arc_response(raw, DEFAULTS, arc=1, stage="Погружение")

    assert "\n" not in response.meta.moon_summary
    assert len(response.meta.moon_summary) <= MOON_SUMMARY_LIMIT
    assert response.node.scene == "Сцена в две строки."
    for option in response.options:
        assert len(option.title) <= TITLE_LIMIT
        assert len(option.description) <= DESCRIPTION_LIMIT
        assert "\n" not in option.description


def test_choices_key_accepted():
    raw = {"choices": [
        {"id": "x", "title": "Икс", "description": "Первый"},
        {"id": "y", "title": "Игрек", "description": "Второй"},
    ]}
    response = normalize_arc_response(raw, DEFAULTS, arc=2, stage="Конфликт")
    assert [o.id for o in response.options] == ["x", "y"]


def test_each_field_falls_back_independently():
    raw = {
        "meta": {"title": "Новая история"},
        "node": {"stage": "Свой этап"},
        "options": [{"title": "Только название"}],
    }
    response = normalize_arc_response(raw, DEFAULTS, arc=1, stage="Погружение")

    assert response.meta.title == "Новая история"
    assert response.meta.genre == DEFAULTS.genre
    assert response.meta.moon_summary == DEFAULTS.moon_summary
    assert response.node.stage == "Свой этап"
    assert response.node.scene == FALLBACK_SCENE
    assert response.options[0].title == "Только название"
    assert response.options[0].id == FALLBACK_OPTIONS[0].id
    assert response.options[0].description == FALLBACK_OPTIONS[0].description
    assert response.options[1] == FALLBACK_OPTIONS[1]


def test_always_two_options():
    many = [{"id": str(i), "title": "t", "description": "d"} for i in range(5)]
    assert len(normalize_options(many)) == 2
    assert normalize_options(None) == list(FALLBACK_OPTIONS)


def test_duplicate_option_ids_made_unique():
    same = [{"id": "go", "title": "A", "description": "a"}, {"id": "go", "title": "B", "description": "b"}]
    assert [o.id for o in normalize_options(same)] == ["go", "go-2"]


def test_node_arc_comes_from_request():
    response = normalize_arc_response({"node": {"arc": 9, "scene": "s"}}, DEFAULTS, arc=3, stage="Рефлексия")
    assert response.node.arc == 3


def test_meta_arc_limit_not_overridden():
    assert normalize_meta({"arc_limit": 3, "moonSummary": "Привет"}, DEFAULTS).arc_limit == 7
    assert normalize_meta({"moonSummary": "Привет"}, DEFAULTS).moon_summary == "Привет"


def test_keep_meta_ignores_model_meta():
    response = normalize_arc_response({"meta": {"title": "Другое"}}, DEFAULTS, arc=2, stage="s", keep_meta=True)
    assert response.meta == DEFAULTS


def test_non_dict_input():
    response = normalize_arc_response(["not", "a", "dict"], DEFAULTS, arc=1, stage="Погружение")
    assert response == fallback_arc_response(DEFAULTS, arc=1, stage="Погружение")


def test_sanitize_option_rejects_non_dict():
    fallback = HistoryStoryOption(id="f", title="F", description="ff")
    assert sanitize_option("строка", fallback) == fallback


# ── finale ───────────────────────────────────────────────────


FINALE = {
    "resolution": " Развязка. ",
    "human_interpretation": "Смысл.",
    "astrological_interpretation": "Звёзды.",
}


def test_finale_nested_and_flat():
    nested = normalize_finale_response({"finale": FINALE}, DEFAULTS)
    flat = normalize_finale_response(FINALE, DEFAULTS)
    assert nested == flat
    assert nested.finale.resolution == "Развязка."
    assert nested.options == []


@pytest.mark.parametrize("key", list(FINALE))
def test_finale_missing_field(key):
    with pytest.raises(StoryGenerationError, match=key):
        normalize_finale_response({"finale": {**FINALE, key: "  "}}, DEFAULTS)


def test_finale_non_dict():
    with pytest.raises(StoryGenerationError):
        normalize_finale_response(None, DEFAULTS)
