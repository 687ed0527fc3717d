"""Tests for the JSON repair ladder and text clean-up helpers."""

import json
import logging

import pytest

from astro_story.parsing import (
    aggressive_cleanup,
    clamp,
    close_truncated,
    enforce_single_line,
    fix_smart_newlines,
    parse_json_with_recovery,
    strip_json_markdown,
)


# ── strip_json_markdown ──────────────────────────────────────


def test_strip_json_fence():
    assert strip_json_markdown('```json\n{"a": 1}\n```') == '{"a": 1}'


def test_strip_plain_fence_case_insensitive():
    assert strip_json_markdown('```JSON {"a": 1}```') == '{"a": 1}'
    assert strip_json_markdown('```\n{"a": 1}\n```') == '{"a": 1}'


# ── fix_smart_newlines ───────────────────────────────────────


def test_smart_fix_only_touches_strings():
    text = '{\n  "scene": "первая\nвторая"\n}'
    assert fix_smart_newlines(text) == '{\n  "scene": "первая вторая"\n}'


def test_smart_fix_respects_escaped_quotes():
    text = '{"a": "он сказал \\"да\n\\" и ушёл"}'
    fixed = fix_smart_newlines(text)
    assert json.loads(fixed) == {"a": 'он сказал "да " и ушёл'}


def test_smart_fix_after_escaped_backslash():
    text = '{"a": "x\\\\",\n "b": "y\nz"}'
    fixed = fix_smart_newlines(text)
    assert fixed == '{"a": "x\\\\",\n "b": "y z"}'
    assert json.loads(fixed) == {"a": "x\\", "b": "y z"}


def test_smart_fix_recovers_strict_content():
    original = {
        "scene": "Первая строка. Вторая строка.",
        "arc": 2,
        "options": [{"id": "a", "title": "Налево"}],
    }
    broken = json.dumps(original, ensure_ascii=False, indent=2).replace("строка. ", "строка.\n")
    with pytest.raises(json.JSONDecodeError):
        json.loads(broken)
    assert json.loads(fix_smart_newlines(broken)) == original
    assert parse_json_with_recovery(broken, "test") == original


def test_smart_fix_carriage_returns():
    assert fix_smart_newlines('{"a": "x\r\ny"}') == '{"a": "x  y"}'


# ── aggressive_cleanup / close_truncated ─────────────────────


def test_aggressive_cleanup_collapses_whitespace():
    assert aggressive_cleanup('{ "a" :\t"x\\ny" }') == '{"a":"x y"}'


def test_aggressive_cleanup_is_lossy_inside_strings():
    # leading space after an opening quote is squeezed out
    assert aggressive_cleanup('{"a": "  padded"}') == '{"a":"padded"}'


def test_close_truncated_balances():
    assert close_truncated('{"a": [1, 2') == '{"a": [1, 2]}'
    assert close_truncated('{"a": "{[x"') == '{"a": "{[x"}'
    assert close_truncated('{"a": "open') == '{"a": "open"}'


# ── parse_json_with_recovery ─────────────────────────────────


def test_strict_parse_after_fence():
    assert parse_json_with_recovery('```json\n{"ok": true}\n```', "t") == {"ok": True}


def test_aggressive_step_handles_tabs():
    assert parse_json_with_recovery('{"a": "x\ty"}', "t") == {"a": "x y"}


def test_truncation_recovery_keeps_prefix():
    text = '{"a": {"b": 1}, "c": "cut off mid'
    assert parse_json_with_recovery(text, "t") == {"a": {"b": 1}}


def test_truncation_recovery_drops_trailing_text():
    assert parse_json_with_recovery('{"a": 1} и ещё немного слов', "t") == {"a": 1}


def test_all_steps_fail_reraises_first_error():
    with pytest.raises(json.JSONDecodeError) as exc:
        parse_json_with_recovery("совсем не json", "t")
    assert exc.value.doc == "совсем не json"


def test_each_step_logged_with_label(caplog):
    with caplog.at_level(logging.WARNING, logger="astro_story.parsing"):
        with pytest.raises(json.JSONDecodeError):
            parse_json_with_recovery("nope", "arc-3")
    messages = [r.getMessage() for r in caplog.records]
    assert all("[arc-3]" in m for m in messages)
    assert any("smart newline fix failed" in m for m in messages)
    assert any("truncation recovery failed" in m for m in messages)


# ── enforce_single_line / clamp ──────────────────────────────


def test_enforce_single_line():
    assert enforce_single_line("  a\n\nb\r\n  c  ") == "a b c"


def test_clamp():
    assert clamp("короткий", 48) == "короткий"
    assert clamp("abc def", 4) == "abc"
    assert len(clamp("x" * 200, 140)) == 140
