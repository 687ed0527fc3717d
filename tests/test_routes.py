"""Tests for the HTTP API, driven through FastAPI's TestClient with a scripted gateway."""

import json

import pytest
from fastapi.testclient import TestClient

from astro_story.app import create_app
from astro_story.config import update_config
from astro_story.storage import HISTORY_FILE

NO_DELAYS = {
    "reveal_interval": 0,
    "hide_delay": 0,
    "user_message_delay": 0,
    "typing_delay": 0,
    "dialogue_scale": 0,
}


@pytest.fixture
def client(tmp_path, gateway):
    update_config(tmp_path, {"timings": NO_DELAYS, "story": {"arc_limit": 2}})
    with TestClient(create_app(tmp_path, gateway=gateway)) as c:
        yield c


def _start(client, gateway, replies) -> dict:
    gateway.queue(replies.contract(), replies.arc(1))
    resp = client.post("/api/story/start")
    assert resp.status_code == 200
    return resp.json()


# ── health / settings ────────────────────────────────────────


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_settings_roundtrip(client, tmp_path):
    resp = client.patch("/api/settings", json={"generation": {"arc_temperature": 0.4}, "bogus": {"x": 1}})
    assert resp.status_code == 200
    assert resp.json()["generation"]["arc_temperature"] == 0.4
    assert "bogus" not in resp.json()

    settings = client.get("/api/settings").json()
    assert settings["generation"]["arc_temperature"] == 0.4
    assert settings["story"]["arc_limit"] == 2
    assert settings["timings"]["typing_delay"] == 0
    stored = json.loads((tmp_path / "config.json").read_text())
    assert stored["generation"]["arc_temperature"] == 0.4


# ── story ────────────────────────────────────────────────────


def test_initial_state(client):
    state = client.get("/api/story").json()
    assert state["phase"] == "idle"
    assert state["messages"] == []
    assert state["arc_limit"] == 2


def test_start_and_choose(client, gateway, replies):
    state = _start(client, gateway, replies)
    assert state["phase"] == "story"
    assert [m["type"] for m in state["messages"]] == ["moon", "story"]
    assert [c["id"] for c in state["choices"]] == ["left", "right"]

    gateway.queue(replies.arc(2, scene="Вторая сцена."))
    state = client.post("/api/story/choose", json={"option_id": "right"}).json()
    assert [m["type"] for m in state["messages"]] == ["moon", "story", "user", "story"]
    assert state["messages"][-1]["content"] == "Вторая сцена."
    assert state["current_arc"] == 2


def test_choose_unknown_option(client, gateway, replies):
    _start(client, gateway, replies)
    resp = client.post("/api/story/choose", json={"option_id": "nowhere"})
    assert resp.status_code == 409


def test_custom_option(client, gateway, replies):
    _start(client, gateway, replies)
    gateway.queue('{"id": "wait", "title": "Подождать", "description": "Ты ждёшь."}', replies.arc(2))
    state = client.post("/api/story/custom-option", json={"transcript": "я подожду"}).json()
    assert state["messages"][2]["content"] == "Ты ждёшь."


def test_empty_custom_option(client, gateway, replies):
    _start(client, gateway, replies)
    resp = client.post("/api/story/custom-option", json={"transcript": "  "})
    assert resp.status_code == 400


def test_finale_error_and_retry(client, gateway, replies):
    _start(client, gateway, replies)
    gateway.queue(replies.arc(2), "не json")
    client.post("/api/story/choose", json={"option_id": "left"})
    state = client.post("/api/story/choose", json={"option_id": "left"}).json()
    assert state["phase"] == "finale"
    assert state["error"]
    assert state["finale"] is None

    gateway.queue(replies.finale())
    state = client.post("/api/story/retry").json()
    assert state["error"] is None
    assert state["finale"]["resolution"] == "Ты открываешь дверь."
    assert state["messages"][-1]["type"] == "finale"


def test_retry_without_error(client):
    assert client.post("/api/story/retry").status_code == 409


def test_clear(client, gateway, replies):
    _start(client, gateway, replies)
    state = client.post("/api/story/clear").json()
    assert state["phase"] == "idle"
    assert state["messages"] == []
    assert state["choices"] == []
    assert client.get("/api/contracts/active").json() is None


def test_dialogue(client):
    body = {"lines": [{"author": "Марс", "text": "Начнём."}, {"author": "Венера", "text": "Да."}]}
    state = client.post("/api/story/dialogue", json=body).json()
    assert state["phase"] == "dialogue"
    assert [m["author"] for m in state["messages"]] == ["Марс", "Венера"]


def test_dialogue_moon_line(client):
    body = {"lines": [{"author": "Луна", "text": "Так, коллеги, собрались?"}]}
    state = client.post("/api/story/dialogue", json=body).json()
    assert [m["type"] for m in state["messages"]] == ["moon"]


def test_dialogue_rejects_unknown_speaker(client):
    body = {"lines": [{"author": "Солнце", "text": "Я не планета."}]}
    assert client.post("/api/story/dialogue", json=body).status_code == 422


def test_generated_dialogue_then_story(client, gateway, replies):
    gateway.queue(replies.dialogue(20))
    state = client.post("/api/story/dialogue/generate").json()
    assert state["phase"] == "dialogue"
    assert len(state["messages"]) == 20
    assert state["error"] is None

    state = _start(client, gateway, replies)
    assert [m["type"] for m in state["messages"][-2:]] == ["moon", "story"]
    assert len(state["messages"]) == 22


def test_generated_dialogue_error_and_retry(client, gateway, replies):
    gateway.queue("не json")
    state = client.post("/api/story/dialogue/generate").json()
    assert state["error"]
    assert state["messages"] == []

    gateway.queue(replies.dialogue(21))
    state = client.post("/api/story/retry").json()
    assert state["error"] is None
    assert len(state["messages"]) == 21


# ── contracts ────────────────────────────────────────────────


def test_contract_history(client, gateway, replies, tmp_path):
    _start(client, gateway, replies)

    history = client.get("/api/contracts/history").json()
    assert history["contracts"][0]["contract_id"] == "quiet-courage"
    assert history["scenarios"][0]["scenario_id"] == "empty-bridge"
    assert (tmp_path / HISTORY_FILE).is_file()

    active = client.get("/api/contracts/active").json()
    assert active["contract"]["id"] == "quiet-courage"
    assert active["source"] == "generated"

    assert client.delete("/api/contracts/history").json() == {"ok": True}
    assert client.get("/api/contracts/history").json() == {"contracts": [], "scenarios": []}
