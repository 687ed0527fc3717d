import asyncio
import json

import pytest

from astro_story.llm import GatewayRequest, GatewayResult, LLMError
from astro_story.storage import MemoryUsageHistoryStore


class StubGateway:
    """Scripted gateway: answers with queued replies in order and records requests.

    A queued Exception is raised instead of answering. Setting `block` to an
    asyncio.Event holds every call until the event is set (or the request's
    CancelToken fires).
    """

    def __init__(self, *replies, provider: str = "stub") -> None:
        self.replies: list = list(replies)
        self.requests: list[GatewayRequest] = []
        self.provider = provider
        self.block: asyncio.Event | None = None

    def queue(self, *replies) -> None:
        self.replies.extend(replies)

    async def call(self, request: GatewayRequest) -> GatewayResult:
        self.requests.append(request)
        if self.block is not None:
            if request.cancel_token is not None:
                await request.cancel_token.run(self.block.wait())
            else:
                await self.block.wait()
        if not self.replies:
            raise LLMError("No scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return GatewayResult(text=reply, provider=self.provider)

    def prompt(self, index: int = -1) -> str:
        return self.requests[index].messages[0].content


class ManualHandle:
    def __init__(self, when: float, callback) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler: callbacks run only inside advance()."""

    def __init__(self) -> None:
        self.now = 0.0
        self._handles: list[ManualHandle] = []

    def call_later(self, delay: float, callback) -> ManualHandle:
        handle = ManualHandle(self.now + delay, callback)
        self._handles.append(handle)
        return handle

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._handles.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target

    def pending(self) -> list[ManualHandle]:
        return [h for h in self._handles if not h.cancelled]


def arc_reply(
    arc: int = 1,
    scene: str = "Ты стоишь у двери.",
    options: list[dict] | None = None,
    meta: dict | None = None,
) -> str:
    return json.dumps({
        "meta": meta or {
            "author": "История",
            "title": "Дверь",
            "genre": "психологическая драма",
            "contract": "Могу ли я доверять себе?",
            "moon_summary": "Сегодня Луна расскажет историю о двери.",
        },
        "node": {"arc": arc, "stage": "Погружение", "scene": scene},
        "options": options if options is not None else [
            {"id": "left", "title": "Налево", "description": "Пойти налево."},
            {"id": "right", "title": "Направо", "description": "Пойти направо."},
        ],
    }, ensure_ascii=False)


def finale_reply(**fields: str) -> str:
    finale = {
        "resolution": "Ты открываешь дверь.",
        "human_interpretation": "Ты выбираешь себя.",
        "astrological_interpretation": "Луна в Раке просит заботы.",
    }
    finale.update(fields)
    return json.dumps({"meta": {"title": "Дверь"}, "finale": finale}, ensure_ascii=False)


def contract_reply(contract_id: str = "quiet-courage", recommended: str | None = "empty-bridge") -> str:
    payload = {
        "contract": {
            "id": contract_id,
            "question": "Хватит ли мне смелости сказать нет?",
            "theme": "Границы",
            "astro_indicators": ["Марс в Весах"],
            "common_traps": [{"name": "Угодничество", "description": "Соглашаться, чтобы не ссориться"}],
            "scenarios": [
                {"id": "empty-bridge", "setting": "Пустой мост", "situation": "Тебя зовут назад",
                 "symbolism": "Переход"},
                {"id": "late-train", "setting": "Последний поезд", "situation": "Двери закрываются",
                 "symbolism": "Решение"},
            ],
            "choice_points": ["Остаться или уйти?"],
        },
    }
    if recommended is not None:
        payload["recommended_scenario_id"] = recommended
    return json.dumps(payload, ensure_ascii=False)


def dialogue_reply(count: int = 20, speakers: tuple[str, ...] = ("Луна", "Плутон", "Венера", "Марс")) -> str:
    lines = [
        {"planet": speakers[i % len(speakers)], "message": f"Реплика {i + 1}."}
        for i in range(count)
    ]
    return json.dumps({"dialogue": lines}, ensure_ascii=False)


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def history_store() -> MemoryUsageHistoryStore:
    return MemoryUsageHistoryStore()


@pytest.fixture
def replies():
    """Reply builders for scripted gateways."""
    class Replies:
        arc = staticmethod(arc_reply)
        finale = staticmethod(finale_reply)
        contract = staticmethod(contract_reply)
        dialogue = staticmethod(dialogue_reply)
    return Replies
