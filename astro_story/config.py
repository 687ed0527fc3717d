"""App configuration (generation settings, story defaults, timings, chart).

Config lives in a flat JSON file merged over in-code defaults. Secrets and
paths come from the environment (optionally a .env file at the repo root):

    CLAUDE_API_KEY, CLAUDE_PROXY_URL   primary provider
    OPENAI_API_KEY, OPENAI_PROXY_URL   secondary provider
    DATA_DIR                           where config.json and history live
"""

import copy
import json
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from astro_story.llm import ProviderCredentials

ROOT = Path(__file__).parent.parent
DEFAULT_DATA_DIR = ROOT / "data"

load_dotenv(ROOT / ".env")

_CONFIG_DEFAULTS: dict[str, Any] = {
    "generation": {
        "claude_model": "claude-haiku-4-5",
        "openai_model": "gpt-4o-mini",
        "timeout": 60.0,
        "prefer_openai": False,
        "arc_temperature": 0.85,
        "arc_max_tokens": 900,
        "finale_temperature": 0.8,
        "finale_max_tokens": 1400,
        "contract_temperature": 0.9,
        "contract_max_tokens": 1400,
        "custom_option_temperature": 0.7,
        "custom_option_max_tokens": 300,
        "dialogue_temperature": 0.9,
        "dialogue_max_tokens": 2500,
    },
    "story": {
        "arc_limit": 7,
        "author": {
            "name": "История",
            "style_prompt": "Пиши простым, современным языком. Используй короткие предложения. Избегай штампов.",
            "genre": "психологическая драма",
        },
    },
    "timings": {
        "reveal_interval": 0.5,
        "hide_delay": 0.5,
        "user_message_delay": 0.5,
        "typing_delay": 0.6,
        "dialogue_scale": 1.0,
        "planet_paces": {},
    },
    "history": {
        "max_contracts": 10,
        "max_scenarios": 30,
        "max_scenarios_per_contract": 5,
    },
    "chart": {
        "birth_data": "",
        "core_placements": [],
        "hard_aspects": [],
        "soft_aspects": [],
    },
}


def config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def resolve_data_dir(data_dir: Path | None = None) -> Path:
    return data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values.

    Each group is merged key by key; unknown groups in the file are ignored.
    """
    config = copy.deepcopy(_CONFIG_DEFAULTS)
    path = config_path(data_dir)
    if path.is_file():
        stored = json.loads(path.read_text())
        for group, vals in stored.items():
            if group in config and isinstance(vals, dict):
                config[group].update(vals)
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = get_config(data_dir)
    for group, vals in fields.items():
        if group in config and isinstance(vals, dict):
            config[group].update(vals)
    data_dir.mkdir(parents=True, exist_ok=True)
    config_path(data_dir).write_text(json.dumps(config, indent=2, ensure_ascii=False))
    return config


def credentials_from_env(config: dict[str, Any] | None = None) -> ProviderCredentials:
    """Build provider credentials from environment variables."""
    prefer_openai = False
    if config is not None:
        prefer_openai = bool(config["generation"].get("prefer_openai", False))
    return ProviderCredentials(
        claude_api_key=os.getenv("CLAUDE_API_KEY", ""),
        claude_proxy_url=os.getenv("CLAUDE_PROXY_URL", ""),
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_proxy_url=os.getenv("OPENAI_PROXY_URL", ""),
        prefer_openai=prefer_openai,
    )
