"""Tests for config loading, merging and environment credentials."""

import json

from astro_story.config import credentials_from_env, get_config, resolve_data_dir, update_config


def test_defaults_without_file(tmp_path):
    config = get_config(tmp_path)
    assert config["story"]["arc_limit"] == 7
    assert config["story"]["author"]["name"] == "История"
    assert config["timings"]["reveal_interval"] == 0.5
    assert config["timings"]["dialogue_scale"] == 1.0
    assert config["timings"]["planet_paces"] == {}
    assert config["generation"]["dialogue_max_tokens"] == 2500
    assert config["history"]["max_contracts"] == 10
    assert not (tmp_path / "config.json").exists()


def test_update_merges_per_group(tmp_path):
    update_config(tmp_path, {"generation": {"timeout": 30}})
    config = update_config(tmp_path, {"generation": {"prefer_openai": True}})
    assert config["generation"]["timeout"] == 30
    assert config["generation"]["prefer_openai"] is True
    assert config["generation"]["claude_model"] == "claude-haiku-4-5"


def test_unknown_groups_ignored(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"weather": {"sunny": True}, "story": "broken"}))
    config = get_config(tmp_path)
    assert "weather" not in config
    assert config["story"]["arc_limit"] == 7


def test_update_creates_data_dir(tmp_path):
    data_dir = tmp_path / "new" / "data"
    update_config(data_dir, {"story": {"arc_limit": 3}})
    assert get_config(data_dir)["story"]["arc_limit"] == 3


def test_defaults_not_shared_between_calls(tmp_path):
    get_config(tmp_path)["story"]["author"]["name"] = "Кто-то"
    assert get_config(tmp_path)["story"]["author"]["name"] == "История"


def test_resolve_data_dir(tmp_path, monkeypatch):
    assert resolve_data_dir(tmp_path) == tmp_path
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "env"))
    assert resolve_data_dir() == tmp_path / "env"


def test_credentials_from_env(monkeypatch):
    monkeypatch.setenv("CLAUDE_API_KEY", "ck")
    monkeypatch.setenv("OPENAI_PROXY_URL", "http://proxy.local/v1")
    monkeypatch.delenv("CLAUDE_PROXY_URL", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    creds = credentials_from_env({"generation": {"prefer_openai": True}})
    assert creds.claude_api_key == "ck"
    assert creds.claude_proxy_url == ""
    assert creds.openai_proxy_url == "http://proxy.local/v1"
    assert creds.prefer_openai is True
    assert credentials_from_env().prefer_openai is False
