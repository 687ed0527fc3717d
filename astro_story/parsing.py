"""JSON repair ladder and text clean-up for model output.

Models are told to answer with single-line JSON but do not always comply.
`parse_json_with_recovery` tries progressively more destructive repairs and
returns the first one that parses:

    1. strip ``` fences, strict parse
    2. replace raw newlines inside string literals with spaces
    3. aggressive cleanup: every newline, tab and literal "\\n" becomes a
       space and whitespace around JSON punctuation is squeezed out (lossy)
    4. cut at the last "}", squeeze and close any unbalanced quote/brackets

If every step fails the first JSONDecodeError is re-raised.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_JSON_RE = re.compile(r"```json\s*", re.IGNORECASE)
_NEWLINES_RE = re.compile(r"[\r\n]+")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_json_markdown(text: str) -> str:
    return _FENCE_JSON_RE.sub("", text).replace("```", "").strip()


def fix_smart_newlines(text: str) -> str:
    """Replace raw CR/LF inside string literals with a space.

    Structural whitespace outside strings is left untouched.
    """
    out = []
    inside_string = False
    escaped = False
    for char in text:
        if inside_string and char in "\r\n":
            out.append(" ")
            escaped = False
            continue
        out.append(char)
        if escaped:
            escaped = False
        elif inside_string and char == "\\":
            escaped = True
        elif char == '"':
            inside_string = not inside_string
    return "".join(out)


def aggressive_cleanup(text: str) -> str:
    text = text.replace("\\n", " ")
    text = _NEWLINES_RE.sub(" ", text)
    text = text.replace("\t", " ")
    text = _WHITESPACE_RE.sub(" ", text)
    text = re.sub(r'\s+"', '"', text)
    text = re.sub(r"\s+}", "}", text)
    text = re.sub(r"\s+]", "]", text)
    text = re.sub(r'"\s+', '"', text)
    text = re.sub(r"{\s+", "{", text)
    return re.sub(r"\[\s+", "[", text)


def close_truncated(text: str) -> str:
    """Close an unterminated string and any open objects/arrays."""
    result = text.strip()

    closers: list[str] = []
    inside_string = False
    escaped = False
    for char in result:
        if inside_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                inside_string = False
            continue
        if char == '"':
            inside_string = True
        elif char == "{":
            closers.append("}")
        elif char == "[":
            closers.append("]")
        elif char in "}]" and closers:
            closers.pop()

    if inside_string:
        result += '"'
    return result + "".join(reversed(closers))


def recover_truncated(text: str) -> str:
    last_brace = text.rfind("}")
    if last_brace <= 0:
        raise json.JSONDecodeError("No closing brace to recover from", text, 0)
    return close_truncated(aggressive_cleanup(text[: last_brace + 1]))


def parse_json_with_recovery(raw_text: str, label: str) -> Any:
    clean = strip_json_markdown(raw_text)
    try:
        return json.loads(clean)
    except json.JSONDecodeError as parse_error:
        logger.warning("[%s] JSON parse error: %s; raw head: %r", label, parse_error, clean[:500])
        first_error = parse_error

    repairs = (
        ("smart newline fix", fix_smart_newlines),
        ("aggressive cleanup", aggressive_cleanup),
        ("truncation recovery", recover_truncated),
    )
    for name, repair in repairs:
        try:
            parsed = json.loads(repair(clean))
        except json.JSONDecodeError as e:
            logger.warning("[%s] %s failed: %s", label, name, e)
            continue
        logger.warning("[%s] recovered JSON via %s", label, name)
        return parsed

    raise first_error


def enforce_single_line(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", _NEWLINES_RE.sub(" ", value)).strip()


def clamp(value: str, max_length: int) -> str:
    if len(value) <= max_length:
        return value
    return value[:max_length].rstrip()
