"""Autoscroll policy.

`decide_scroll` is a pure function of the session phase, the current arc and
what changed since the last observation. `ScrollTracker` keeps the previous
observation so a host can feed it snapshots instead of deltas.

The result is advisory: the host realises the scroll.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

ScrollTarget = Literal["none", "bottom", "last-moon"]

FIRST_ARC_CHOICES_DELAY = 1.0
STORY_DELAY = 0.2
FINALE_DELAY = 0.3


class ScrollDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: ScrollTarget = "none"
    delay: float = 0.0


class ScrollRequest(BaseModel):
    """A decision resolved against the timeline (anchor is a message id)."""

    model_config = ConfigDict(frozen=True)

    target: Literal["bottom", "last-moon"]
    delay: float = 0.0
    anchor_id: str | None = None


NO_SCROLL = ScrollDecision()


def decide_scroll(
    phase: str,
    current_arc: int,
    *,
    choices_appeared: bool = False,
    typing_started: bool = False,
    message_count_delta: int = 0,
) -> ScrollDecision:
    messages_changed = message_count_delta != 0

    if phase in ("dialogue", "moon"):
        if messages_changed or typing_started:
            return ScrollDecision(target="bottom")
        return NO_SCROLL

    if phase == "story":
        if current_arc == 1:
            # keep the Moon's introduction in view while the choices lay out
            if choices_appeared:
                return ScrollDecision(target="last-moon", delay=FIRST_ARC_CHOICES_DELAY)
            return NO_SCROLL
        if messages_changed or choices_appeared:
            return ScrollDecision(target="bottom", delay=STORY_DELAY)
        return NO_SCROLL

    if phase == "finale":
        if messages_changed:
            return ScrollDecision(target="bottom", delay=FINALE_DELAY)
        return NO_SCROLL

    # idle, choices
    return NO_SCROLL


class ScrollTracker:
    """Turns successive snapshots into scroll decisions."""

    def __init__(self) -> None:
        self._message_count = 0
        self._has_choices = False
        self._typing = False

    def observe(
        self,
        phase: str,
        current_arc: int,
        *,
        message_count: int,
        has_choices: bool,
        is_typing: bool,
    ) -> ScrollDecision:
        decision = decide_scroll(
            phase,
            current_arc,
            choices_appeared=has_choices and not self._has_choices,
            typing_started=is_typing and not self._typing,
            message_count_delta=message_count - self._message_count,
        )
        self._message_count = message_count
        self._has_choices = has_choices
        self._typing = is_typing
        return decision

    def reset(self) -> None:
        self._message_count = 0
        self._has_choices = False
        self._typing = False
