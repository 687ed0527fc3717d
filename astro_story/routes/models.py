"""Pydantic request models for API endpoints."""

from typing import Literal

from pydantic import BaseModel

from astro_story.models import PlanetName


class ChooseBody(BaseModel):
    option_id: str


class CustomOptionBody(BaseModel):
    transcript: str


class DialogueLine(BaseModel):
    author: PlanetName | Literal["Луна"]
    text: str


class DialogueBody(BaseModel):
    lines: list[DialogueLine]
