"""FastMCP server exposing the contract usage history as MCP tools.

Tools:
  recent_contracts(limit)                       recently used contract ids, newest first
  recent_scenarios(contract_id, limit)          recent scenario ids (all contracts if omitted)
  remember_contract(contract_id, scenario_id)   record a usage by hand
  reset_contract_history()                      forget everything

The store is replaced via set_store() for tests, or opened from
{DATA_DIR}/contract_history.json when run as __main__.

Usage:
    python -m astro_story.mcp_server
"""

from mcp.server.fastmcp import FastMCP

from astro_story.models import UsageHistory
from astro_story.storage import (
    MemoryUsageHistoryStore,
    UsageHistoryStore,
    recent_contract_ids,
    recent_scenario_ids,
    remember_usage,
)

mcp = FastMCP("astro-story-contracts")

_store: UsageHistoryStore = MemoryUsageHistoryStore()


def set_store(store: UsageHistoryStore) -> None:
    """Replace the active history store (used in tests)."""
    global _store
    _store = store


def get_store() -> UsageHistoryStore:
    """Return the active history store (used in tests to inspect stored state)."""
    return _store


@mcp.tool()
def recent_contracts(limit: int = 8) -> dict:
    """Return recently used contract ids, newest first."""
    return {"contracts": recent_contract_ids(_store.load(), limit)}


@mcp.tool()
def recent_scenarios(contract_id: str = "", limit: int = 12) -> dict:
    """Return recently used scenarios, for one contract or as contract/scenario pairs."""
    history = _store.load()
    if contract_id:
        return {"contract_id": contract_id, "scenarios": recent_scenario_ids(history, contract_id, limit)}
    return {"scenarios": [
        {"contract_id": s.contract_id, "scenario_id": s.scenario_id, "used_at": s.used_at}
        for s in history.scenarios[:limit]
    ]}


@mcp.tool()
def remember_contract(contract_id: str, scenario_id: str = "") -> dict:
    """Record a contract (and scenario) as just used. Returns the updated history."""
    history = remember_usage(_store.load(), contract_id, scenario_id or None)
    _store.save(history)
    return history.model_dump()


@mcp.tool()
def reset_contract_history() -> dict:
    """Forget all recorded contract and scenario usage."""
    _store.save(UsageHistory())
    return {"ok": True}


if __name__ == "__main__":
    from astro_story.config import resolve_data_dir
    from astro_story.storage import HISTORY_FILE, JsonUsageHistoryStore

    set_store(JsonUsageHistoryStore(resolve_data_dir() / HISTORY_FILE))
    mcp.run()
