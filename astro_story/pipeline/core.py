"""Story generation: one arc or the finale per call.

Arc mode degrades gracefully: a failed gateway call or an unparseable reply
yields the default arc response. Finale mode never substitutes a canned
ending; every failure propagates so the host can offer a retry.
Cancellation propagates in both modes.
"""

import json
import logging
import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from astro_story.chart import ChartProvider, serialize_chart_analysis
from astro_story.contracts import ContractMemory, ContractResolution
from astro_story.llm import (
    AIMessage,
    CancelToken,
    GatewayRequest,
    GenerationCancelled,
    LLMError,
    ProviderCredentials,
    TextGateway,
)
from astro_story.models import (
    AuthorStyle,
    ContextSegment,
    HistoryStoryMeta,
    HistoryStoryOption,
    StoryResponse,
)
from astro_story.parsing import clamp, enforce_single_line, parse_json_with_recovery
from astro_story.prompts import render_prompt
from astro_story.templates import (
    ARC_PROMPT,
    CUSTOM_OPTION_PROMPT,
    CUSTOM_OPTION_SYSTEM_PROMPT,
    FINALE_PROMPT,
    STORY_SYSTEM_PROMPT,
)

from .context import segments_context, stage_for_arc
from .normalize import (
    DESCRIPTION_LIMIT,
    FALLBACK_MOON_SUMMARY,
    FALLBACK_TITLE,
    TITLE_LIMIT,
    fallback_arc_response,
    normalize_arc_response,
    normalize_finale_response,
    sanitize_option,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTRACT = "Что для меня по-настоящему важно, когда привычный порядок рушится?"


class StoryRequest(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    mode: Literal["arc", "finale"] = "arc"
    segments: list[ContextSegment] = Field(default_factory=list)
    current_choice: HistoryStoryOption | None = None
    summary: str | None = None
    author: AuthorStyle
    arc_limit: int = Field(ge=1)
    current_arc: int = Field(default=1, ge=1)
    contract: str | None = None
    meta: HistoryStoryMeta | None = None
    credentials: ProviderCredentials = Field(default_factory=ProviderCredentials)
    cancel_token: CancelToken | None = None


class GenerationSettings(BaseModel):
    arc_temperature: float = 0.85
    arc_max_tokens: int = 900
    finale_temperature: float = 0.8
    finale_max_tokens: int = 1400
    custom_option_temperature: float = 0.7
    custom_option_max_tokens: int = 300
    dialogue_temperature: float = 0.9
    dialogue_max_tokens: int = 2500

    @classmethod
    def from_config(cls, generation: dict[str, Any]) -> "GenerationSettings":
        return cls.model_validate({k: v for k, v in generation.items() if k in cls.model_fields})


def _default_meta(request: StoryRequest, contract: str | None) -> HistoryStoryMeta:
    return HistoryStoryMeta(
        author=request.author.name,
        title=FALLBACK_TITLE,
        genre=request.author.genre,
        contract=contract or DEFAULT_CONTRACT,
        arc_limit=request.arc_limit,
        moon_summary=FALLBACK_MOON_SUMMARY,
    )


def _base_context(request: StoryRequest) -> dict[str, Any]:
    ctx: dict[str, Any] = {
        "author": request.author.model_dump(),
        "arc_limit": request.arc_limit,
        "current_arc": request.current_arc,
        **segments_context(request.segments, request.summary),
    }
    if request.current_choice is not None:
        ctx["choice"] = request.current_choice.model_dump()
    return ctx


def _contract_context(resolution: ContractResolution) -> dict[str, Any]:
    contract = resolution.contract
    return {
        "theme": contract.theme,
        "traps": [t.model_dump() for t in contract.common_traps],
        "choice_points": contract.choice_points,
        "scenario": resolution.scenario.model_dump(),
    }


async def _call(
    gateway: TextGateway,
    request: StoryRequest,
    ctx: dict[str, Any],
    template: str,
    temperature: float,
    max_tokens: int,
    system_template: str = STORY_SYSTEM_PROMPT,
) -> str:
    result = await gateway.call(GatewayRequest(
        system=render_prompt(system_template, ctx),
        messages=[AIMessage(role="user", content=render_prompt(template, ctx))],
        temperature=temperature,
        max_tokens=max_tokens,
        credentials=request.credentials,
        cancel_token=request.cancel_token,
    ))
    logger.info("Generated text using %s", result.provider)
    return result.text


async def generate_chunk(
    request: StoryRequest,
    *,
    gateway: TextGateway,
    contracts: ContractMemory | None = None,
    chart: ChartProvider | None = None,
    settings: GenerationSettings | None = None,
) -> StoryResponse:
    settings = settings or GenerationSettings()
    if request.cancel_token is not None:
        request.cancel_token.raise_if_cancelled()

    if request.mode == "finale":
        response = await _generate_finale(request, gateway, chart, settings)
    else:
        response = await _generate_arc(request, gateway, contracts, chart, settings)

    if request.cancel_token is not None:
        request.cancel_token.raise_if_cancelled()
    return response


async def _generate_arc(
    request: StoryRequest,
    gateway: TextGateway,
    contracts: ContractMemory | None,
    chart: ChartProvider | None,
    settings: GenerationSettings,
) -> StoryResponse:
    contract_text = request.contract or (request.meta.contract if request.meta else None)
    resolution = None
    if request.current_arc == 1 and not contract_text and contracts is not None:
        resolution = await contracts.ensure_contract(request.credentials, request.cancel_token)
        contract_text = resolution.contract.question

    stage = stage_for_arc(request.current_arc)
    defaults = request.meta or _default_meta(request, contract_text)

    ctx = _base_context(request)
    ctx.update({
        "contract": contract_text or "",
        "stage": stage._asdict(),
        "first_arc": request.current_arc == 1,
    })
    if resolution is not None:
        ctx.update(_contract_context(resolution))
    if chart is not None and request.current_arc == 1:
        ctx["chart"] = serialize_chart_analysis(chart.analysis())

    label = f"arc-{request.current_arc}"
    try:
        text = await _call(
            gateway, request, ctx, ARC_PROMPT, settings.arc_temperature, settings.arc_max_tokens
        )
        raw = parse_json_with_recovery(text, label)
    except GenerationCancelled:
        raise
    except (LLMError, json.JSONDecodeError) as e:
        logger.warning("[%s] generation failed, using fallback arc: %s", label, e)
        response = fallback_arc_response(defaults, arc=request.current_arc, stage=stage.label)
    else:
        response = normalize_arc_response(
            raw,
            defaults,
            arc=request.current_arc,
            stage=stage.label,
            keep_meta=request.meta is not None,
        )

    if contract_text and response.meta.contract != contract_text:
        # the resolved question wins over any paraphrase in the reply
        response = response.model_copy(
            update={"meta": response.meta.model_copy(update={"contract": contract_text})}
        )
    return response


async def _generate_finale(
    request: StoryRequest,
    gateway: TextGateway,
    chart: ChartProvider | None,
    settings: GenerationSettings,
) -> StoryResponse:
    meta = request.meta or _default_meta(request, request.contract)

    ctx = _base_context(request)
    ctx["contract"] = request.contract or meta.contract
    if chart is not None:
        analysis = chart.analysis()
        ctx.update({
            "birth_data": chart.birth_data(),
            "placements": analysis.core_placements,
            "hard_aspects": analysis.hard_aspects,
            "soft_aspects": analysis.soft_aspects,
        })

    try:
        text = await _call(
            gateway, request, ctx, FINALE_PROMPT, settings.finale_temperature, settings.finale_max_tokens
        )
        return normalize_finale_response(parse_json_with_recovery(text, "finale"), meta)
    except GenerationCancelled:
        raise
    except Exception as e:
        logger.error("Finale generation failed: %s", e)
        raise


# ── Custom option ────────────────────────────────────────


def option_from_transcript(transcript: str) -> HistoryStoryOption:
    """Build an option directly from the user's own words."""
    text = enforce_single_line(transcript)
    return HistoryStoryOption(
        id=f"custom-{uuid.uuid4().hex[:8]}",
        title=clamp(" ".join(text.split()[:6]), TITLE_LIMIT),
        description=clamp(text, DESCRIPTION_LIMIT),
    )


async def generate_custom_option(
    transcript: str,
    *,
    gateway: TextGateway,
    author: AuthorStyle,
    segments: list[ContextSegment] | None = None,
    summary: str | None = None,
    credentials: ProviderCredentials | None = None,
    cancel_token: CancelToken | None = None,
    settings: GenerationSettings | None = None,
) -> HistoryStoryOption:
    """Turn a free-text answer into a story option.

    Falls back to an option built from the transcript when generation fails.
    """
    if not transcript or not transcript.strip():
        raise ValueError("Transcript is empty")
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()
    settings = settings or GenerationSettings()
    fallback = option_from_transcript(transcript)

    request = StoryRequest(
        segments=segments or [],
        summary=summary,
        author=author,
        arc_limit=1,
        credentials=credentials or ProviderCredentials(),
        cancel_token=cancel_token,
    )
    ctx = _base_context(request)
    ctx["transcript"] = transcript.strip()

    try:
        text = await _call(
            gateway,
            request,
            ctx,
            CUSTOM_OPTION_PROMPT,
            settings.custom_option_temperature,
            settings.custom_option_max_tokens,
            system_template=CUSTOM_OPTION_SYSTEM_PROMPT,
        )
        option = sanitize_option(parse_json_with_recovery(text, "custom-option"), fallback)
    except GenerationCancelled:
        raise
    except (LLMError, json.JSONDecodeError) as e:
        logger.warning("Custom option generation failed, using transcript: %s", e)
        option = fallback

    if cancel_token is not None:
        cancel_token.raise_if_cancelled()
    return option
