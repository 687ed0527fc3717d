"""Core domain models.

Chat timeline messages, story options and metadata, context segments,
psychological contracts and their usage history. Pydantic is used for
validation and serialisation at every data boundary; these types carry no
behaviour of their own.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

PlanetName = Literal[
    "Меркурий",
    "Венера",
    "Марс",
    "Юпитер",
    "Сатурн",
    "Уран",
    "Нептун",
    "Плутон",
    "Хирон",
]

PLANETS: tuple[str, ...] = PlanetName.__args__

MOON = "Луна"
STORY = "История"
SYSTEM = "system"
USER = "user"

ChatAuthor = Union[PlanetName, Literal["Луна", "История", "system", "user"]]

ChatPhase = Literal["idle", "dialogue", "moon", "story", "choices", "finale"]

PHASES: tuple[str, ...] = ChatPhase.__args__


def new_message_id() -> str:
    return uuid.uuid4().hex


def current_time() -> str:
    return datetime.now().strftime("%H:%M")


# ---------------------------------------------------------------------------
# Chat messages (tagged union on `type`)
# ---------------------------------------------------------------------------

class _BaseMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_message_id)
    time: str = Field(default_factory=current_time)
    content: str


class PlanetMessage(_BaseMessage):
    """A line of the planets' dialogue."""

    type: Literal["planet"] = "planet"
    author: PlanetName


class MoonMessage(_BaseMessage):
    """The Moon's introduction to the story."""

    type: Literal["moon"] = "moon"
    author: Literal["Луна"] = MOON


class StoryMessage(_BaseMessage):
    """A story beat (`story`) or the closing beat (`finale`)."""

    type: Literal["story", "finale"] = "story"
    author: Literal["История"] = STORY
    arc_number: int | None = Field(default=None, ge=1)
    stage_label: str | None = None


class SystemMessage(_BaseMessage):
    type: Literal["system"] = "system"
    author: Literal["system"] = SYSTEM


class UserMessage(_BaseMessage):
    """The human's own turn (usually the chosen option)."""

    type: Literal["user"] = "user"
    author: Literal["user"] = USER


ChatMessage = Annotated[
    Union[PlanetMessage, MoonMessage, StoryMessage, SystemMessage, UserMessage],
    Field(discriminator="type"),
]

chat_message_adapter: TypeAdapter[ChatMessage] = TypeAdapter(ChatMessage)


# ---------------------------------------------------------------------------
# Story
# ---------------------------------------------------------------------------

class HistoryStoryOption(BaseModel):
    """One choice offered after a story beat."""

    id: str
    title: str
    description: str


class HistoryStoryMeta(BaseModel):
    """Story metadata, fixed on arc 1 and carried through the session."""

    author: str
    title: str
    genre: str
    contract: str
    arc_limit: int = Field(ge=1)
    moon_summary: str = ""


class ContextSegment(BaseModel):
    """A story beat already shown, plus the choice made after it."""

    text: str
    arc: int = Field(ge=1)
    option_title: str | None = None
    option_description: str | None = None


class AuthorStyle(BaseModel):
    """Author persona narrating the story."""

    name: str
    style_prompt: str
    genre: str


class StoryNode(BaseModel):
    arc: int
    stage: str
    scene: str


class StoryFinale(BaseModel):
    resolution: str
    human_interpretation: str
    astrological_interpretation: str


class StoryResponse(BaseModel):
    """Normalised pipeline output.

    Arc responses carry `node` and exactly two `options`; finale responses
    carry `finale` and no options.
    """

    meta: HistoryStoryMeta
    node: StoryNode | None = None
    options: list[HistoryStoryOption] = Field(default_factory=list)
    finale: StoryFinale | None = None


# ---------------------------------------------------------------------------
# Psychological contracts
# ---------------------------------------------------------------------------

class PsychologicalTrap(BaseModel):
    name: str
    description: str


class ContractScenario(BaseModel):
    id: str
    setting: str
    situation: str
    symbolism: str


class PsychologicalContract(BaseModel):
    """The session's central question. Every list must be non-empty."""

    id: str
    question: str
    theme: str
    astro_indicators: list[str] = Field(min_length=1)
    common_traps: list[PsychologicalTrap] = Field(min_length=1)
    scenarios: list[ContractScenario] = Field(min_length=1)
    choice_points: list[str] = Field(min_length=1)


class ContractUsage(BaseModel):
    contract_id: str
    used_at: str


class ScenarioUsage(BaseModel):
    contract_id: str
    scenario_id: str
    used_at: str


class UsageHistory(BaseModel):
    """Recently used contracts and scenarios, newest first."""

    contracts: list[ContractUsage] = Field(default_factory=list)
    scenarios: list[ScenarioUsage] = Field(default_factory=list)
