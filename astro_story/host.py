"""Story host: wires the session state machine to the generation pipeline.

The state machine never calls the pipeline. StoryHost runs the choreography
(typing indicators, pauses, message order, choice sets) around each pipeline
call and owns the story context (segments, meta, contract string). The
planets' dialogue, and a story started over a previous one, each begin a
fresh session: empty timeline, no active contract.

At most one request is in flight. Starting a new one cancels the previous
CancelToken; a cancelled request never touches the timeline.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from astro_story.chart import ChartProvider
from astro_story.contracts import ContractMemory
from astro_story.llm import CancelToken, GenerationCancelled, LLMError, ProviderCredentials, TextGateway
from astro_story.models import (
    MOON,
    STORY,
    AuthorStyle,
    ContextSegment,
    HistoryStoryMeta,
    HistoryStoryOption,
    MoonMessage,
    PlanetMessage,
    StoryFinale,
    StoryMessage,
    StoryResponse,
    UserMessage,
)
from astro_story.pacing import DialoguePacer
from astro_story.pipeline import (
    DialogueLine,
    GenerationSettings,
    StoryGenerationError,
    StoryRequest,
    generate_chunk,
    generate_custom_option,
    generate_planet_dialogue,
)
from astro_story.pipeline.normalize import FALLBACK_MOON_SUMMARY
from astro_story.session import SessionStateMachine

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = AuthorStyle(
    name="История",
    style_prompt="Пиши простым, современным языком. Используй короткие предложения. Избегай штампов.",
    genre="психологическая драма",
)

DEFAULT_TIMINGS = {
    "user_message_delay": 0.5,
    "typing_delay": 0.6,
    "typing_speed": 0.03,
}


class StoryHost:
    def __init__(
        self,
        machine: SessionStateMachine,
        gateway: TextGateway,
        contracts: ContractMemory,
        *,
        chart: ChartProvider | None = None,
        credentials: ProviderCredentials | None = None,
        author: AuthorStyle | None = None,
        arc_limit: int = 7,
        settings: GenerationSettings | None = None,
        timings: dict[str, Any] | None = None,
        pacer: DialoguePacer | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.machine = machine
        self._gateway = gateway
        self.contracts = contracts
        self._chart = chart
        self.credentials = credentials or ProviderCredentials()
        self.author = author or DEFAULT_AUTHOR
        self.arc_limit = arc_limit
        self._settings = settings or GenerationSettings()
        self._timings = {**DEFAULT_TIMINGS, **(timings or {})}
        self._pacer = pacer or DialoguePacer()
        self._sleep = sleep
        self._token: CancelToken | None = None
        self._reset_story()

    def _reset_story(self) -> None:
        self.segments: list[ContextSegment] = []
        self.meta: HistoryStoryMeta | None = None
        self.contract: str | None = None
        self.arc = 0
        self.finale: StoryFinale | None = None
        self.error: str | None = None
        self.custom_option: HistoryStoryOption | None = None
        self._pending_choice: HistoryStoryOption | None = None
        self._retry: Callable[[], Awaitable[Any]] | None = None

    def _fresh_session(self) -> None:
        """Empty timeline, new story context, no active contract."""
        self.machine.clear_messages()
        self._reset_story()
        self.contracts.clear()

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    def _begin(self) -> CancelToken:
        if self._token is not None:
            self._token.cancel()
        self._token = CancelToken()
        return self._token

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None

    async def _wait(self, delay: float, token: CancelToken) -> bool:
        """Sleep; False if the request was cancelled meanwhile."""
        await self._sleep(delay)
        return not token.cancelled

    async def _pause(self, key: str, token: CancelToken) -> bool:
        return await self._wait(self._timings[key], token)

    def _request(self, token: CancelToken, **fields: Any) -> StoryRequest:
        return StoryRequest(
            author=self.author,
            arc_limit=self.arc_limit,
            credentials=self.credentials,
            cancel_token=token,
            **fields,
        )

    async def _generate(self, request: StoryRequest) -> StoryResponse:
        return await generate_chunk(
            request,
            gateway=self._gateway,
            contracts=self.contracts,
            chart=self._chart,
            settings=self._settings,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def play_dialogue(self, lines: list[tuple[str, str]]) -> None:
        """Start a fresh session and play the given dialogue lines."""
        token = self._begin()
        self._fresh_session()
        await self._play_lines(lines, token)

    async def start_dialogue(self) -> list[DialogueLine] | None:
        """Generate the planets' dialogue from the chart and play it.

        A failed generation leaves an error in place for retry().
        """
        token = self._begin()
        self._fresh_session()
        self.machine.set_phase("dialogue")
        self.machine.set_typing(MOON)
        try:
            lines = await generate_planet_dialogue(
                gateway=self._gateway,
                chart=self._chart,
                credentials=self.credentials,
                cancel_token=token,
                temperature=self._settings.dialogue_temperature,
                max_tokens=self._settings.dialogue_max_tokens,
            )
        except GenerationCancelled:
            return None
        except (LLMError, json.JSONDecodeError, StoryGenerationError) as e:
            if token.cancelled:
                return None
            self._fail(e, self.start_dialogue)
            return None
        if token.cancelled:
            return None

        self.machine.set_typing(None)
        await self._play_lines([(line.planet, line.message) for line in lines], token)
        return lines

    async def start_story(self) -> None:
        token = self._begin()
        if any(m.type not in ("planet", "moon") for m in self.machine.get_messages()):
            # a previous story is still on screen; the planets' dialogue is kept
            self._fresh_session()
        else:
            self._reset_story()
            self.contracts.clear()
        self.machine.set_phase("moon")
        self.machine.set_typing(MOON)

        try:
            response = await self._generate(self._request(token, mode="arc", current_arc=1))
        except GenerationCancelled:
            logger.debug("start_story cancelled")
            return
        if token.cancelled:
            return

        self.meta = response.meta
        self.contract = response.meta.contract
        self.machine.set_typing(None)
        self.machine.add_message(MoonMessage(content=response.meta.moon_summary or FALLBACK_MOON_SUMMARY))
        self.machine.set_phase("story")
        self._show_arc(response)

    async def choose(self, option_id: str) -> None:
        option = next((c for c in self.machine.choices if c.id == option_id), None)
        if option is None:
            raise ValueError(f"Unknown option: {option_id}")
        token = self._begin()
        await self._continue_with(option, token)

    async def submit_custom_option(self, transcript: str) -> HistoryStoryOption | None:
        """Turn the user's own words into an option and continue the story with it."""
        token = self._begin()
        try:
            option = await generate_custom_option(
                transcript,
                gateway=self._gateway,
                author=self.author,
                segments=self.segments,
                credentials=self.credentials,
                cancel_token=token,
                settings=self._settings,
            )
        except GenerationCancelled:
            return None
        if token.cancelled:
            return None

        self.custom_option = option
        await self._continue_with(option, token)
        return option

    async def retry(self) -> None:
        """Repeat the last failed generation (planet dialogue or finale)."""
        if self.error is None or self._retry is None:
            raise ValueError("Nothing to retry")
        action, self._retry = self._retry, None
        self.error = None
        await action()

    def clear(self) -> None:
        self.cancel()
        self._fresh_session()

    def teardown(self) -> None:
        self.cancel()
        self.machine.teardown()

    # ------------------------------------------------------------------
    # Choreography
    # ------------------------------------------------------------------

    def _fail(self, error: Exception, retry: Callable[[], Awaitable[Any]]) -> None:
        logger.error("Generation failed, waiting for retry: %s", error)
        self.error = str(error)
        self._retry = retry
        self.machine.set_typing(None)

    async def _play_lines(self, lines: list[tuple[str, str]], token: CancelToken) -> None:
        self.machine.set_phase("dialogue")
        for author, text in lines:
            if not await self._wait(self._pacer.pause_before(author), token):
                return
            self.machine.set_typing(author)
            if not await self._wait(self._pacer.typing_duration(author, text), token):
                return
            self.machine.set_typing(None)
            if author == MOON:
                self.machine.add_message(MoonMessage(content=text))
            else:
                self.machine.add_message(PlanetMessage(author=author, content=text))
            if not await self._wait(self._pacer.pause_after(author), token):
                return

    def _show_arc(self, response: StoryResponse) -> None:
        node = response.node
        self.machine.add_message(StoryMessage(content=node.scene, arc_number=node.arc, stage_label=node.stage))
        self.segments.append(ContextSegment(text=node.scene, arc=node.arc))
        self.arc = node.arc
        self.machine.set_choices(response.options)

    async def _continue_with(self, option: HistoryStoryOption, token: CancelToken) -> None:
        self.machine.hide_choices()
        if not await self._pause("user_message_delay", token):
            return

        self.machine.add_message(UserMessage(content=option.description or option.title))
        if self.segments:
            self.segments[-1] = self.segments[-1].model_copy(
                update={"option_title": option.title, "option_description": option.description}
            )
        if not await self._pause("typing_delay", token):
            return

        self.machine.set_typing(STORY)
        await self._generate_next(option, token)

    async def _generate_next(self, option: HistoryStoryOption, token: CancelToken) -> None:
        self._pending_choice = option
        next_arc = self.arc + 1

        if next_arc > self.arc_limit:
            await self._generate_finale(option, token)
            return

        try:
            response = await self._generate(self._request(
                token,
                mode="arc",
                segments=self.segments,
                current_choice=option,
                current_arc=next_arc,
                contract=self.contract,
                meta=self.meta,
            ))
        except GenerationCancelled:
            return
        if token.cancelled:
            return

        self.machine.set_typing(None)
        self._show_arc(response)

    async def _retry_finale(self) -> None:
        token = self._begin()
        self.machine.set_typing(STORY)
        await self._generate_next(self._pending_choice, token)

    async def _generate_finale(self, option: HistoryStoryOption, token: CancelToken) -> None:
        self.machine.set_phase("finale")
        try:
            response = await self._generate(self._request(
                token,
                mode="finale",
                segments=self.segments,
                current_choice=option,
                current_arc=self.arc_limit,
                contract=self.contract,
                meta=self.meta,
            ))
        except GenerationCancelled:
            return
        except (LLMError, json.JSONDecodeError, StoryGenerationError) as e:
            if token.cancelled:
                return
            self._fail(e, self._retry_finale)
            return
        if token.cancelled:
            return

        self.error = None
        self.finale = response.finale
        self.machine.set_typing(None)
        self.machine.add_message(StoryMessage(
            type="finale", content=response.finale.resolution, arc_number=self.arc_limit + 1,
        ))

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        state = self.machine.snapshot()
        state.update({
            "arc": self.arc,
            "arc_limit": self.arc_limit,
            "meta": self.meta.model_dump() if self.meta else None,
            "contract": self.contract,
            "finale": self.finale.model_dump() if self.finale else None,
            "error": self.error,
            "visible_choices": [c.model_dump() for c in self.machine.visible_choices()],
            "custom_button_visible": self.machine.custom_button_visible(),
        })
        return state
