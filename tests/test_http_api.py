from __future__ import annotations

from typing import Sequence

import pytest
from fastapi.testclient import TestClient

import mediabot.memory.conversation_manager as conversation_manager
from mediabot.api.http_api import create_app
from mediabot.core.messages import Message, assistant, human
from mediabot.core.routing_types import ImageResult, TurnResult
from mediabot.memory.context_store import ContextStore


class _Orchestrator:
    def __init__(self) -> None:
        self.context_store = ContextStore()
        self.turns: list[tuple[str, str, int, str | None]] = []
        self.cleared: list[str] = []
        self.closed = 0

    async def send_message(
        self,
        message: str,
        user_id: str,
        prior_messages: Sequence[Message] = (),
        user_name: str | None = None,
    ) -> TurnResult:
        self.turns.append((message, user_id, len(prior_messages), user_name))
        reply = assistant(f"echo: {message}")
        return TurnResult(
            content=reply.content,
            images=[ImageResult(title="the solution", url="https://eq.test/1.png", parent_id=reply.id)],
            messages=[*prior_messages, human(message), reply],
        )

    async def clear_user(self, user_id: str) -> bool:
        self.cleared.append(user_id)
        return False

    async def aclose(self) -> None:
        self.closed += 1


@pytest.fixture(autouse=True)
def empty_histories(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(conversation_manager, "_histories", {})


@pytest.fixture
def orchestrator() -> _Orchestrator:
    return _Orchestrator()


@pytest.fixture
def client(orchestrator: _Orchestrator):
    with TestClient(create_app(lambda: orchestrator)) as test_client:
        yield test_client


def test_message_round_trip_keeps_history(client: TestClient, orchestrator: _Orchestrator) -> None:
    first = client.post("/v1/messages", json={"user_id": "erin", "user_name": "Erin", "message": "hello"})
    second = client.post("/v1/messages", json={"user_id": "erin", "message": "again"})

    assert first.status_code == 200
    assert first.json()["content"] == "echo: hello"
    assert first.json()["images"][0]["title"] == "the solution"
    assert second.json()["content"] == "echo: again"
    assert orchestrator.turns == [("hello", "erin", 0, "Erin"), ("again", "erin", 2, None)]
    assert len(conversation_manager.get_history("erin")) == 4


@pytest.mark.parametrize(
    "body",
    [{"user_id": "", "message": "hi"}, {"user_id": "erin", "message": ""}, {"message": "hi"}],
)
def test_invalid_bodies_are_rejected(client: TestClient, body: dict) -> None:
    assert client.post("/v1/messages", json=body).status_code == 422


def test_clear_context(client: TestClient, orchestrator: _Orchestrator) -> None:
    client.post("/v1/messages", json={"user_id": "erin", "message": "hello"})

    response = client.delete("/v1/context/erin")

    assert response.json() == {"user_id": "erin", "history_cleared": True, "context_cleared": False}
    assert orchestrator.cleared == ["erin"]
    assert conversation_manager.get_history("erin") == []


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.json() == {"status": "ok", "contexts": {"total": 0}}


def test_shutdown_closes_orchestrator_clients(orchestrator: _Orchestrator) -> None:
    with TestClient(create_app(lambda: orchestrator)) as test_client:
        test_client.get("/health")
        assert orchestrator.closed == 0

    assert orchestrator.closed == 1
