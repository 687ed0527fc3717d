"""Usage-history storage.

Usage history outlives a single story session: it records which contracts and
scenarios were used recently so later sessions can steer away from repeats.
It is stored as one flat JSON file; there is no database.

    {data_dir}/
      contract_history.json   ← UsageHistory (newest first)

The record-keeping rules (caps, per-contract limit, de-duplication) live in
plain functions so any store implementation shares them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from astro_story.models import ContractUsage, ScenarioUsage, UsageHistory

HISTORY_FILE = "contract_history.json"

MAX_CONTRACT_RECORDS = 10
MAX_SCENARIO_RECORDS = 30
MAX_SCENARIOS_PER_CONTRACT = 5


class UsageHistoryStore(Protocol):
    def load(self) -> UsageHistory: ...

    def save(self, history: UsageHistory) -> None: ...


class JsonUsageHistoryStore:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> UsageHistory:
        if not self._path.exists():
            return UsageHistory()
        return UsageHistory.model_validate_json(self._path.read_text())

    def save(self, history: UsageHistory) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(history.model_dump_json(indent=2))


class MemoryUsageHistoryStore:
    """In-process store; keeps a copy so callers cannot mutate saved state."""

    def __init__(self, history: UsageHistory | None = None) -> None:
        self._history = (history or UsageHistory()).model_copy(deep=True)
        self.saves = 0

    def load(self) -> UsageHistory:
        return self._history.model_copy(deep=True)

    def save(self, history: UsageHistory) -> None:
        self._history = history.model_copy(deep=True)
        self.saves += 1


# ------------------------------------------------------------------
# History rules
# ------------------------------------------------------------------

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _limit_scenarios(
    records: list[ScenarioUsage], max_total: int, max_per_contract: int
) -> list[ScenarioUsage]:
    """Drop duplicate pairs and enforce both caps, keeping the newest."""
    seen: set[tuple[str, str]] = set()
    per_contract: dict[str, int] = {}
    result: list[ScenarioUsage] = []
    for record in records:
        pair = (record.contract_id, record.scenario_id)
        if pair in seen:
            continue
        count = per_contract.get(record.contract_id, 0)
        if count >= max_per_contract:
            continue
        seen.add(pair)
        per_contract[record.contract_id] = count + 1
        result.append(record)
        if len(result) >= max_total:
            break
    return result


def remember_usage(
    history: UsageHistory,
    contract_id: str,
    scenario_id: str | None = None,
    *,
    now: str | None = None,
    max_contracts: int = MAX_CONTRACT_RECORDS,
    max_scenarios: int = MAX_SCENARIO_RECORDS,
    max_per_contract: int = MAX_SCENARIOS_PER_CONTRACT,
) -> UsageHistory:
    """Return a new history with this contract (and scenario) moved to the front."""
    used_at = now or _now_iso()

    contracts = [ContractUsage(contract_id=contract_id, used_at=used_at)]
    contracts.extend(c for c in history.contracts if c.contract_id != contract_id)

    scenarios = list(history.scenarios)
    if scenario_id:
        scenarios.insert(0, ScenarioUsage(contract_id=contract_id, scenario_id=scenario_id, used_at=used_at))

    return UsageHistory(
        contracts=contracts[:max_contracts],
        scenarios=_limit_scenarios(scenarios, max_scenarios, max_per_contract),
    )


def recent_contract_ids(history: UsageHistory, limit: int = 8) -> list[str]:
    return [c.contract_id for c in history.contracts[:limit]]


def recent_scenario_pairs(history: UsageHistory, limit: int = 12) -> list[str]:
    """`contract/scenario` keys, newest first."""
    return [f"{s.contract_id}/{s.scenario_id}" for s in history.scenarios[:limit]]


def recent_scenario_ids(history: UsageHistory, contract_id: str, limit: int = MAX_SCENARIOS_PER_CONTRACT) -> list[str]:
    return [s.scenario_id for s in history.scenarios if s.contract_id == contract_id][:limit]
