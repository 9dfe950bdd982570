# =============================================================================
# API Tests: chat, chat deletion, charts
# =============================================================================
#
# Runs the FastAPI app against the in-memory chat store. Model, search
# and database collaborators are patched so no network call is made.
# =============================================================================

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError

from app.config import Settings, settings
from app.exceptions import ConfigurationError
from app.models import Chat, ChatMessage
from app.schemas import ChartConfigDraft
from app.services import chat_store
from app.services.answer import EnrichmentResults


def _chat_body(chat_id="chat-1", content="Show me errors from last week", model="gpt-4o"):
    return {
        "id": chat_id,
        "messages": [{"role": "user", "content": content}],
        "modelId": model,
    }


async def _fake_stream(messages, system, model):
    yield "There were "
    yield "3 errors."


@pytest.fixture
def pipeline():
    """Patch every external collaborator of the chat turn."""
    gather = AsyncMock(return_value=EnrichmentResults(search={"hits": {"total": 3}}))
    title = AsyncMock(return_value="Errors last week")
    with patch("app.routes.chat.gather_enrichment", gather), \
            patch("app.routes.chat.generate_title_from_user_message", title), \
            patch("app.services.llm.stream_text", _fake_stream):
        yield {"gather": gather, "title": title}


def _parse_sse(body):
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], lines["data"]))
    return events


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class TestAuthentication:

    def test_chat_requires_token(self, client, pipeline):
        response = client.post("/api/chat", json=_chat_body())
        assert response.status_code == 401
        pipeline["gather"].assert_not_called()
        pipeline["title"].assert_not_called()

    def test_unknown_token_rejected(self, client, pipeline):
        response = client.post(
            "/api/chat", json=_chat_body(), headers={"Authorization": "Bearer sk-nope"},
        )
        assert response.status_code == 401
        pipeline["gather"].assert_not_called()

    def test_chart_endpoints_require_token(self, client):
        response = client.post("/api/charts/config", json={"data": [{"a": 1}], "query": "q"})
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# POST /api/chat
# ---------------------------------------------------------------------------


class TestSendChatMessage:

    def test_streams_answer_and_persists_messages(self, client, db, alice, pipeline):
        response = client.post("/api/chat", json=_chat_body(), headers=alice.headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = _parse_sse(response.text)
        assert [name for name, _ in events] == ["content", "content", "annotation", "finish"]

        chat = db.query(Chat).filter(Chat.id == "chat-1").first()
        assert chat.user_id == alice.user.id
        assert chat.title == "Errors last week"

        stored = chat_store.get_messages_by_chat_id(db, "chat-1")
        assert [m.role for m in stored] == ["user", "assistant"]
        assert stored[0].content == "Show me errors from last week"
        assert stored[1].content == "There were 3 errors."
        assert stored[1].id in events[2][1]

    def test_enrichment_reaches_system_prompt(self, client, alice, pipeline):
        seen = {}

        async def capture(messages, system, model):
            seen["system"] = system
            seen["model"] = model
            yield "ok"

        with patch("app.services.llm.stream_text", capture):
            client.post("/api/chat", json=_chat_body(model="gpt-4o-mini"), headers=alice.headers)

        assert '{"hits": {"total": 3}}' in seen["system"]
        assert seen["model"] == "gpt-4o-mini"
        pipeline["gather"].assert_awaited_once_with("Show me errors from last week")

    def test_existing_chat_is_not_retitled(self, client, db, alice, pipeline):
        chat_store.save_chat(db, "chat-1", alice.user.id, "Original")
        client.post("/api/chat", json=_chat_body(), headers=alice.headers)
        pipeline["title"].assert_not_called()

    def test_store_calls_run_off_the_event_loop(self, client, alice, pipeline):
        with patch("app.routes.chat.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
            response = client.post("/api/chat", json=_chat_body(), headers=alice.headers)

        assert response.status_code == 200
        offloaded = [call.args[0].__name__ for call in to_thread.call_args_list]
        assert offloaded == [
            "get_chat_by_id",
            "save_chat",
            "save_messages",
            "store_assistant_message",
        ]

    def test_history_window_forwards_latest_messages(self, client, alice, pipeline, monkeypatch):
        monkeypatch.setattr(settings, "max_history_messages", 2)
        seen = {}

        async def capture(messages, system, model):
            seen["messages"] = messages
            yield "ok"

        body = _chat_body()
        body["messages"] = [
            {"role": "user", "content": "one"},
            {"role": "assistant", "content": "two"},
            {"role": "user", "content": "three"},
        ]
        with patch("app.services.llm.stream_text", capture):
            client.post("/api/chat", json=body, headers=alice.headers)

        assert [m["content"] for m in seen["messages"]] == ["two", "three"]

    def test_unknown_model_returns_404(self, client, alice, pipeline):
        response = client.post("/api/chat", json=_chat_body(model="gpt-99"), headers=alice.headers)
        assert response.status_code == 404
        pipeline["gather"].assert_not_called()

    def test_missing_user_message_returns_400(self, client, alice, pipeline):
        body = _chat_body()
        body["messages"] = [{"role": "assistant", "content": "Hi!"}]
        response = client.post("/api/chat", json=body, headers=alice.headers)
        assert response.status_code == 400

    def test_foreign_chat_returns_401(self, client, db, alice, bob, pipeline):
        chat_store.save_chat(db, "chat-1", bob.user.id, "Bob's chat")
        response = client.post("/api/chat", json=_chat_body(), headers=alice.headers)
        assert response.status_code == 401
        assert chat_store.get_messages_by_chat_id(db, "chat-1") == []

    def test_missing_search_configuration_returns_500(self, client, alice, pipeline):
        pipeline["gather"].side_effect = ConfigurationError("ELASTICSEARCH_URL is not defined")
        response = client.post("/api/chat", json=_chat_body(), headers=alice.headers)
        assert response.status_code == 500
        assert "ELASTICSEARCH_URL" in response.json()["detail"]


# ---------------------------------------------------------------------------
# DELETE /api/chat
# ---------------------------------------------------------------------------


class TestDeleteChat:

    def test_owner_can_delete(self, client, db, alice):
        chat_store.save_chat(db, "chat-1", alice.user.id, "Mine")
        chat_store.save_messages(db, "chat-1", [{"role": "user", "content": "hi"}])

        response = client.delete("/api/chat", params={"id": "chat-1"}, headers=alice.headers)

        assert response.status_code == 200
        db.expire_all()
        assert chat_store.get_chat_by_id(db, "chat-1") is None
        assert db.query(ChatMessage).count() == 0

    def test_other_user_gets_401_and_chat_survives(self, client, db, alice, bob):
        chat_store.save_chat(db, "chat-1", bob.user.id, "Bob's")

        response = client.delete("/api/chat", params={"id": "chat-1"}, headers=alice.headers)

        assert response.status_code == 401
        db.expire_all()
        assert chat_store.get_chat_by_id(db, "chat-1") is not None

    def test_missing_id_returns_404(self, client, alice):
        assert client.delete("/api/chat", headers=alice.headers).status_code == 404

    def test_unknown_chat_returns_404(self, client, alice):
        response = client.delete("/api/chat", params={"id": "nope"}, headers=alice.headers)
        assert response.status_code == 404

    def test_unexpected_failure_returns_500(self, client, db, alice):
        chat_store.save_chat(db, "chat-1", alice.user.id, "Mine")
        with patch.object(chat_store, "delete_chat_by_id", side_effect=RuntimeError("boom")):
            response = client.delete("/api/chat", params={"id": "chat-1"}, headers=alice.headers)
        assert response.status_code == 500

    def test_unauthenticated_returns_401(self, client):
        assert client.delete("/api/chat", params={"id": "chat-1"}).status_code == 401


# ---------------------------------------------------------------------------
# Chat history and models
# ---------------------------------------------------------------------------


def test_history_is_owner_only(client, db, alice, bob):
    chat_store.save_chat(db, "chat-1", alice.user.id, "Mine")
    chat_store.save_messages(db, "chat-1", [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ])

    own = client.get("/api/chat/chat-1/messages", headers=alice.headers)
    assert own.status_code == 200
    assert [m["content"] for m in own.json()] == ["hi", "hello"]

    foreign = client.get("/api/chat/chat-1/messages", headers=bob.headers)
    assert foreign.status_code == 401


def test_list_models(client):
    ids = [m["id"] for m in client.get("/api/models").json()]
    assert "gpt-4o" in ids


# ---------------------------------------------------------------------------
# Charts
# ---------------------------------------------------------------------------


class TestChartEndpoints:

    def test_config_endpoint(self, client, alice):
        draft = ChartConfigDraft(xKey="month", yKeys=["level"], colors={"level": "#000000"})
        with patch("app.services.llm.generate_object", AsyncMock(return_value=draft)):
            response = client.post(
                "/api/charts/config",
                json={"data": [{"month": "Jan", "level": "error"}], "query": "errors"},
                headers=alice.headers,
            )
        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "bar"
        assert body["xKey"] == "month"
        assert body["colors"] == {"level": "#4CAF50"}

    def test_config_rejects_empty_data(self, client, alice):
        response = client.post(
            "/api/charts/config", json={"data": [], "query": "errors"}, headers=alice.headers,
        )
        assert response.status_code == 422

    def test_config_generation_failure_returns_502(self, client, alice):
        with patch("app.services.llm.generate_object", AsyncMock(side_effect=RuntimeError("x"))):
            response = client.post(
                "/api/charts/config",
                json={"data": [{"a": 1}], "query": "q"},
                headers=alice.headers,
            )
        assert response.status_code == 502

    def test_render_endpoint(self, client, alice):
        response = client.post(
            "/api/charts/render",
            json={
                "data": [
                    {"month": "Jan", "level": "error"},
                    {"month": "Jan", "level": "info"},
                    {"month": "Feb", "level": "error"},
                ],
                "config": {"xKey": "month", "yKeys": ["level"], "colors": {"level": "#4CAF50"}},
            },
            headers=alice.headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["kind"] == "bar"
        assert body["data"] == [
            {"month": "Jan", "error": 1, "info": 1},
            {"month": "Feb", "error": 1},
        ]

    def test_render_empty_data_placeholder(self, client, alice):
        response = client.post(
            "/api/charts/render",
            json={"data": [], "config": {"xKey": "m", "yKeys": ["l"], "colors": {"l": "#4CAF50"}}},
            headers=alice.headers,
        )
        assert response.json()["kind"] == "empty"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("field", ["max_history_messages", "database_search_row_limit"])
def test_window_settings_must_be_positive(field):
    with pytest.raises(ValidationError):
        Settings(**{field: 0})
