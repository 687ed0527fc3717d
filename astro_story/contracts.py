"""Psychological contract memory.

One contract is active per story session. It is generated once (on arc 1)
and kept on the `ContractMemory` instance until `clear()`. Selection steers
away from contracts and scenarios used recently, as recorded in the
usage-history store; when generation fails the static bank is used instead.

Every resolution, generated or fallback, is written to the usage history
before it is returned.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
import uuid
from typing import Any, Literal

from pydantic import BaseModel

from astro_story.chart import ChartProvider, serialize_chart_analysis
from astro_story.contract_bank import FALLBACK_CONTRACTS
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
    ContractScenario,
    PsychologicalContract,
    PsychologicalTrap,
)
from astro_story.parsing import parse_json_with_recovery
from astro_story.prompts import render_prompt
from astro_story.storage import (
    MAX_CONTRACT_RECORDS,
    MAX_SCENARIO_RECORDS,
    MAX_SCENARIOS_PER_CONTRACT,
    UsageHistoryStore,
    recent_contract_ids,
    recent_scenario_pairs,
    remember_usage,
)
from astro_story.templates import CONTRACT_PROMPT, CONTRACT_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

RECENT_CONTRACTS_IN_PROMPT = 8
RECENT_SCENARIOS_IN_PROMPT = 12


class ContractResolution(BaseModel):
    contract: PsychologicalContract
    scenario: ContractScenario
    source: Literal["generated", "fallback"]


# ---------------------------------------------------------------------------
# Normalisation of model output
# ---------------------------------------------------------------------------

def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _first(data: dict, *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def slugify(value: str, prefix: str = "contract") -> str:
    slug = re.sub(r"[^a-z0-9-]+", "-", value.lower())
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug or f"{prefix}-{uuid.uuid4().hex[:8]}"


def _normalize_scenario(raw: Any) -> ContractScenario | None:
    if not isinstance(raw, dict):
        return None
    setting = _text(raw.get("setting"))
    situation = _text(raw.get("situation"))
    symbolism = _text(raw.get("symbolism"))
    if not (setting and situation and symbolism):
        return None
    return ContractScenario(
        id=slugify(_text(_first(raw, "id", "slug")), prefix="scene"),
        setting=setting,
        situation=situation,
        symbolism=symbolism,
    )


def _normalize_traps(raw: Any) -> list[PsychologicalTrap]:
    if not isinstance(raw, list):
        return []
    traps = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = _text(item.get("name"))
        description = _text(item.get("description"))
        if name and description:
            traps.append(PsychologicalTrap(name=name, description=description))
    return traps


def normalize_contract(raw: Any) -> PsychologicalContract | None:
    """Validate a model-produced contract, accepting common key spellings.

    Returns None when any required field is missing or any list is empty.
    """
    if not isinstance(raw, dict):
        return None

    question = _text(_first(raw, "question", "coreQuestion", "core_question"))
    theme = _text(_first(raw, "theme", "focusTheme", "focus_theme"))
    indicators = _string_list(_first(raw, "astro_indicators", "astroIndicators", "astrology"))
    traps = _normalize_traps(_first(raw, "common_traps", "commonTraps"))
    scenarios = [s for s in map(_normalize_scenario, raw.get("scenarios") or []) if s is not None]
    choice_points = _string_list(_first(raw, "choice_points", "choicePoints", "keyChoices", "key_choices"))

    if not (question and theme and indicators and traps and scenarios and choice_points):
        return None

    return PsychologicalContract(
        id=slugify(_text(_first(raw, "id", "slug", "contractId", "contract_id", "identifier"))),
        question=question,
        theme=theme,
        astro_indicators=indicators,
        common_traps=traps,
        scenarios=scenarios,
        choice_points=choice_points,
    )


def split_payload(data: Any) -> tuple[Any, str | None]:
    """Unwrap `{"contract": {...}, "recommended_scenario_id": ...}` if present."""
    if isinstance(data, dict) and isinstance(data.get("contract"), dict):
        recommended = _first(data, "recommended_scenario_id", "recommendedScenarioId")
        return data["contract"], recommended if isinstance(recommended, str) else None
    return data, None


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def find_scenario(contract: PsychologicalContract, scenario_id: str | None) -> ContractScenario | None:
    if not scenario_id:
        return None
    for scenario in contract.scenarios:
        if scenario.id == scenario_id:
            return scenario
    return None


def pick_scenario(
    contract: PsychologicalContract,
    recent_pairs: list[str],
    rng: random.Random,
    recommended: str | None = None,
) -> ContractScenario:
    """Recommended scenario, else the first not used recently, else random."""
    found = find_scenario(contract, recommended)
    if found is not None:
        return found
    recent = set(recent_pairs)
    for scenario in contract.scenarios:
        if f"{contract.id}/{scenario.id}" not in recent:
            return scenario
    return rng.choice(contract.scenarios)


def pick_fallback_contract(
    recent_ids: list[str],
    recent_pairs: list[str],
    rng: random.Random,
    bank: tuple[PsychologicalContract, ...] = FALLBACK_CONTRACTS,
) -> ContractResolution:
    recent = set(recent_ids)
    contract = next((c for c in bank if c.id not in recent), None)
    if contract is None:
        # every entry used recently: take the one used longest ago
        contract = max(bank, key=lambda c: recent_ids.index(c.id))
    return ContractResolution(
        contract=contract,
        scenario=pick_scenario(contract, recent_pairs, rng),
        source="fallback",
    )


# ---------------------------------------------------------------------------
# ContractMemory
# ---------------------------------------------------------------------------

class ContractMemory:
    """Holds the active contract for one story session."""

    def __init__(
        self,
        gateway: TextGateway,
        store: UsageHistoryStore,
        chart: ChartProvider | None = None,
        *,
        rng: random.Random | None = None,
        temperature: float = 0.9,
        max_tokens: int = 1400,
        max_contracts: int = MAX_CONTRACT_RECORDS,
        max_scenarios: int = MAX_SCENARIO_RECORDS,
        max_scenarios_per_contract: int = MAX_SCENARIOS_PER_CONTRACT,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._chart = chart
        self._rng = rng or random.Random()
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._limits = {
            "max_contracts": max_contracts,
            "max_scenarios": max_scenarios,
            "max_per_contract": max_scenarios_per_contract,
        }
        self._lock = asyncio.Lock()
        self.active: ContractResolution | None = None

    @property
    def store(self) -> UsageHistoryStore:
        return self._store

    def clear(self) -> None:
        self.active = None

    async def ensure_contract(
        self,
        credentials: ProviderCredentials,
        cancel_token: CancelToken | None = None,
    ) -> ContractResolution:
        async with self._lock:
            if self.active is not None:
                return self.active

            history = self._store.load()
            recent_ids = recent_contract_ids(history, RECENT_CONTRACTS_IN_PROMPT)
            recent_pairs = recent_scenario_pairs(history, RECENT_SCENARIOS_IN_PROMPT)

            try:
                resolution = await self._generate(credentials, cancel_token, recent_ids, recent_pairs)
            except GenerationCancelled:
                raise
            except (LLMError, json.JSONDecodeError, ValueError) as e:
                logger.warning("Contract generation failed, using fallback bank: %s", e)
                resolution = pick_fallback_contract(recent_ids, recent_pairs, self._rng)

            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            history = remember_usage(
                history, resolution.contract.id, resolution.scenario.id, **self._limits
            )
            self._store.save(history)
            self.active = resolution
            logger.info(
                "Active contract %s/%s (%s)",
                resolution.contract.id, resolution.scenario.id, resolution.source,
            )
            return resolution

    async def _generate(
        self,
        credentials: ProviderCredentials,
        cancel_token: CancelToken | None,
        recent_ids: list[str],
        recent_pairs: list[str],
    ) -> ContractResolution:
        context: dict[str, Any] = {
            "recent_contracts": recent_ids,
            "recent_scenarios": recent_pairs,
        }
        if self._chart is not None:
            context["chart"] = serialize_chart_analysis(self._chart.analysis())
            context["birth_data"] = self._chart.birth_data()

        result = await self._gateway.call(GatewayRequest(
            system=CONTRACT_SYSTEM_PROMPT,
            messages=[AIMessage(role="user", content=render_prompt(CONTRACT_PROMPT, context))],
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            credentials=credentials,
            cancel_token=cancel_token,
        ))
        logger.debug("Contract generated via %s", result.provider)

        raw, recommended = split_payload(parse_json_with_recovery(result.text, "contract"))
        contract = normalize_contract(raw)
        if contract is None:
            raise ValueError("Generated contract failed validation")

        return ContractResolution(
            contract=contract,
            scenario=pick_scenario(contract, recent_pairs, self._rng, recommended),
            source="generated",
        )
