"""Session state machine for the chat timeline.

Owns the message timeline, the current phase, the single typing indicator and
the visible choice set. The host drives it through imperative commands and
receives two kinds of output:

    on_change()            after any timeline, typing, phase or choice mutation
    on_scroll(request)     advisory ScrollRequest derived from scroll.py

Phase transitions are unrestricted; the host decides what follows what.

Choices are revealed one at a time (plus one extra slot for the custom answer
button) on a fixed cadence. Every delayed callback is tracked in a TimerGroup
so clear_messages() and teardown() leave nothing behind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any

from astro_story.models import PHASES, ChatMessage, ChatPhase, HistoryStoryOption
from astro_story.scroll import STORY_DELAY, ScrollRequest, ScrollTracker
from astro_story.timers import LoopScheduler, Scheduler, TimerGroup

logger = logging.getLogger(__name__)

REVEAL_INTERVAL = 0.5
HIDE_DELAY = 0.5


class SessionStateMachine:
    def __init__(
        self,
        scheduler: Scheduler | None = None,
        *,
        reveal_interval: float = REVEAL_INTERVAL,
        hide_delay: float = HIDE_DELAY,
        on_change: Callable[[], None] | None = None,
        on_scroll: Callable[[ScrollRequest], None] | None = None,
    ) -> None:
        scheduler = scheduler or LoopScheduler()
        self._reveal_timers = TimerGroup(scheduler)
        self._hide_timers = TimerGroup(scheduler)
        self._reveal_interval = reveal_interval
        self._hide_delay = hide_delay
        self._on_change = on_change
        self._on_scroll = on_scroll
        self._scroll = ScrollTracker()
        self._torn_down = False

        self._messages: list[ChatMessage] = []
        self._phase: ChatPhase = "idle"
        self._typing: str | None = None
        self._choices: list[HistoryStoryOption] = []
        self._show_custom_button = True
        self._visible_count = 0
        self._hiding = False
        self._current_arc = 1

    # ------------------------------------------------------------------
    # Timeline
    # ------------------------------------------------------------------

    def add_message(self, message: ChatMessage) -> None:
        self.add_messages([message])

    def add_messages(self, messages: Iterable[ChatMessage]) -> None:
        messages = list(messages)
        if not messages:
            return
        self._messages.extend(messages)
        arc_changed = self._recompute_arc()
        self._notify()
        if arc_changed:
            self._sync_reveal()

    def clear_messages(self) -> None:
        """Reset to an empty idle session. Safe to call repeatedly."""
        self._reveal_timers.cancel_all()
        self._hide_timers.cancel_all()
        self._messages = []
        self._typing = None
        self._choices = []
        self._visible_count = 0
        self._hiding = False
        self._phase = "idle"
        self._current_arc = 1
        self._scroll.reset()
        self._notify()

    def get_messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def get_current_arc(self) -> int:
        return self._current_arc

    def last_moon_message_index(self) -> int | None:
        for i in range(len(self._messages) - 1, -1, -1):
            if self._messages[i].type == "moon":
                return i
        return None

    def _recompute_arc(self) -> bool:
        arcs = [
            m.arc_number
            for m in self._messages
            if m.type in ("story", "finale") and m.arc_number is not None
        ]
        arc = max(arcs, default=1)
        changed = arc != self._current_arc
        self._current_arc = arc
        return changed

    # ------------------------------------------------------------------
    # Typing / phase
    # ------------------------------------------------------------------

    @property
    def typing_author(self) -> str | None:
        return self._typing

    def set_typing(self, author: str | None) -> None:
        changed = author != self._typing
        self._typing = author
        self._notify()
        if changed:
            self._sync_reveal()

    def get_phase(self) -> ChatPhase:
        return self._phase

    def set_phase(self, phase: ChatPhase) -> None:
        if phase not in PHASES:
            raise ValueError(f"Unknown phase: {phase!r}")
        self._phase = phase
        self._notify()

    # ------------------------------------------------------------------
    # Choices
    # ------------------------------------------------------------------

    @property
    def choices(self) -> list[HistoryStoryOption]:
        return list(self._choices)

    @property
    def visible_count(self) -> int:
        return self._visible_count

    @property
    def hiding(self) -> bool:
        return self._hiding

    @property
    def show_custom_button(self) -> bool:
        return self._show_custom_button

    def visible_choices(self) -> list[HistoryStoryOption]:
        return self._choices[: self._visible_count]

    def custom_button_visible(self) -> bool:
        return self._show_custom_button and bool(self._choices) and self._visible_count > len(self._choices)

    def set_choices(self, options: Iterable[HistoryStoryOption], show_custom_button: bool = True) -> None:
        """Replace the choice set. An empty set hides choices immediately."""
        self._hide_timers.cancel_all()
        self._choices = list(options)
        self._show_custom_button = show_custom_button
        self._hiding = False
        self._visible_count = 0
        self._notify()
        self._sync_reveal()

    def hide_choices(self) -> None:
        """Start the exit animation; the set is cleared after the settle delay."""
        if self._hiding:
            return
        self._hiding = True
        self._notify()
        self._sync_reveal()
        self._hide_timers.schedule(self._hide_delay, self._finish_hide)

    def _finish_hide(self) -> None:
        if self._torn_down:
            return
        self._choices = []
        self._visible_count = 0
        self._hiding = False
        self._notify()
        self._sync_reveal()

    def _sync_reveal(self) -> None:
        self._reveal_timers.cancel_all()
        if not self._choices:
            self._visible_count = 0
            return
        if self._typing is not None or self._hiding:
            return

        self._visible_count = 0
        steps = len(self._choices) + (1 if self._show_custom_button else 0)
        for i in range(steps):
            self._reveal_timers.schedule(
                self._reveal_interval * (i + 1), partial(self._reveal_step, i + 1)
            )

    def _reveal_step(self, count: int) -> None:
        if self._torn_down:
            return
        self._visible_count = count
        self._notify()
        if self._current_arc != 1:
            self._emit_scroll(ScrollRequest(target="bottom", delay=STORY_DELAY))

    # ------------------------------------------------------------------
    # Lifecycle / host output
    # ------------------------------------------------------------------

    def teardown(self) -> None:
        self._reveal_timers.cancel_all()
        self._hide_timers.cancel_all()
        self._torn_down = True
        logger.debug("session torn down")

    def pending_timers(self) -> int:
        return len(self._reveal_timers) + len(self._hide_timers)

    def snapshot(self) -> dict[str, Any]:
        return {
            "phase": self._phase,
            "current_arc": self._current_arc,
            "typing": self._typing,
            "messages": [m.model_dump() for m in self._messages],
            "choices": [c.model_dump() for c in self._choices],
            "visible_count": self._visible_count,
            "hiding": self._hiding,
            "show_custom_button": self._show_custom_button,
        }

    def _notify(self) -> None:
        if self._torn_down:
            return
        if self._on_change is not None:
            self._on_change()

        decision = self._scroll.observe(
            self._phase,
            self._current_arc,
            message_count=len(self._messages),
            has_choices=bool(self._choices) and not self._hiding,
            is_typing=self._typing is not None,
        )
        if decision.target == "none":
            return
        if decision.target == "last-moon":
            index = self.last_moon_message_index()
            if index is not None:
                self._emit_scroll(ScrollRequest(
                    target="last-moon", delay=decision.delay, anchor_id=self._messages[index].id,
                ))
                return
        self._emit_scroll(ScrollRequest(target="bottom", delay=decision.delay))

    def _emit_scroll(self, request: ScrollRequest) -> None:
        if self._torn_down or self._on_scroll is None:
            return
        self._on_scroll(request)
