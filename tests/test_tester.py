"""
Tests for the sandbox test-session harness.
"""

import asyncio
import json

import httpx
import pytest

from agentdesk.logging import session_logger as session_logger_module
from agentdesk.workflow import HarnessState, WorkflowTestHarness

from conftest import ok


SESSION_PATH = "/workflow-test/sessions"

USER_TURN = {"id": "u1", "role": "user", "content": "Hi", "timestamp": "2024-05-01T10:00:00Z"}
ASSISTANT_TURN = {
    "id": "a1",
    "role": "assistant",
    "content": "Hi there",
    "meta": {
        "success": True,
        "durationMs": 120,
        "nodeDetails": [
            {"nodeId": "s1", "nodeType": "start", "durationMs": 1},
            {"nodeId": "i1", "nodeType": "intent", "durationMs": 100, "output": {"category": "greet"}},
            {"nodeId": "r1", "nodeType": "reply", "durationMs": 19},
        ],
    },
}


def session(messages=(), session_id="ts-1"):
    return ok({
        "testSessionId": session_id,
        "workflowId": "wf-intent",
        "workflowName": "Intent routing",
        "messages": list(messages),
    })


@pytest.fixture(autouse=True)
def _isolated_session_loggers(monkeypatch):
    monkeypatch.setattr(session_logger_module, "_session_loggers", {})


@pytest.fixture
def harness(client, intent_graph) -> WorkflowTestHarness:
    return WorkflowTestHarness(client.workflow_tests, "wf-intent", definition=intent_graph)


@pytest.fixture
def opened(harness, console):
    """Harness factory that opens a session first."""

    async def _open():
        console.on("POST", SESSION_PATH, session())
        await harness.open()
        return harness

    return _open


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_open(self, harness, console):
        console.on("POST", SESSION_PATH, session())

        result = await harness.open({"userName": "Ann"})

        assert result.ok
        assert harness.state == HarnessState.ACTIVE
        assert harness.session_id == "ts-1"
        assert harness.workflow_name == "Intent routing"
        assert console.last_json("POST", SESSION_PATH) == {
            "workflowId": "wf-intent", "variables": {"userName": "Ann"},
        }
        created = harness.session_logger.entries_for("session_created")
        assert created[0].data == {"workflow_id": "wf-intent", "message_count": 0}

    @pytest.mark.asyncio
    async def test_open_failure_stays_closed(self, harness, console):
        console.on("POST", SESSION_PATH, {"message": "workflow not published"}, status=400)

        result = await harness.open()

        assert not result.ok
        assert harness.state == HarnessState.NO_SESSION
        assert harness.session_id is None
        assert harness.last_error == "[VALIDATION_ERROR] workflow not published"

    @pytest.mark.asyncio
    async def test_reopen_abandons_previous_session(self, opened, console):
        harness = await opened()
        console.on("POST", SESSION_PATH, session(session_id="ts-2"))

        await harness.open()

        assert harness.session_id == "ts-2"
        assert set(session_logger_module._session_loggers) == {"ts-2"}

    @pytest.mark.asyncio
    async def test_close_deletes_remote_session(self, opened, console):
        harness = await opened()
        console.on("DELETE", f"{SESSION_PATH}/ts-1", None, status=204)
        session_log = harness.session_logger

        await harness.close(delete_remote=True)

        assert harness.state == HarnessState.NO_SESSION
        assert harness.session_id is None
        assert harness.messages == []
        assert harness.session_logger is None
        assert len(console.calls("DELETE", f"{SESSION_PATH}/ts-1")) == 1
        assert session_log.entries[-1].event == "session_closed"
        assert "ts-1" not in session_logger_module._session_loggers

    @pytest.mark.asyncio
    async def test_close_survives_delete_failure(self, opened, console):
        harness = await opened()
        await harness.close(delete_remote=True)
        assert harness.state == HarnessState.NO_SESSION

    @pytest.mark.asyncio
    async def test_close_keeps_remote_by_default(self, opened, console):
        harness = await opened()
        await harness.close()
        assert console.calls("DELETE", f"{SESSION_PATH}/ts-1") == []

    @pytest.mark.asyncio
    async def test_close_without_session_is_noop(self, harness, console):
        await harness.close(delete_remote=True)
        assert console.requests == []


# =============================================================================
# Conversation
# =============================================================================


class TestSendMessage:

    @pytest.mark.asyncio
    async def test_requires_session(self, harness, console):
        result = await harness.send_message("Hi")
        assert result.error == "No active test session"
        assert console.requests == []

    @pytest.mark.asyncio
    async def test_rejects_empty_text(self, opened):
        harness = await opened()
        result = await harness.send_message("   ")
        assert result.error == "Message is empty"
        assert harness.messages == []

    @pytest.mark.asyncio
    async def test_transcript_replaced_by_server(self, opened, console):
        harness = await opened()
        console.on("POST", f"{SESSION_PATH}/ts-1/messages", session([USER_TURN, ASSISTANT_TURN]))

        result = await harness.send_message("Hi")

        assert result.ok
        assert [m.id for m in harness.messages] == ["u1", "a1"]
        assert all(m.delivery == "sent" for m in harness.messages)
        assert console.last_json("POST", f"{SESSION_PATH}/ts-1/messages") == {
            "message": "Hi", "workflowId": "wf-intent",
        }

    @pytest.mark.asyncio
    async def test_turn_is_logged_with_node_labels(self, opened, console):
        harness = await opened()
        console.on("POST", f"{SESSION_PATH}/ts-1/messages", session([USER_TURN, ASSISTANT_TURN]))

        await harness.send_message("Hi")

        log = harness.session_logger
        assert [e.event for e in log.entries] == [
            "session_created", "user_message", "assistant_message",
            "node_trace", "node_trace", "node_trace",
        ]
        assert [e.message for e in log.entries_for("node_trace")] == [
            "Start (start) ok in 1ms",
            "Router (intent) ok in 100ms",
            "Hello (reply) ok in 19ms",
        ]
        assert log.entries_for("assistant_message")[0].data["duration_ms"] == 120

    @pytest.mark.asyncio
    async def test_failed_send_keeps_optimistic_message(self, opened, console):
        harness = await opened()
        console.on("POST", f"{SESSION_PATH}/ts-1/messages", {"message": "session expired"}, status=404)

        result = await harness.send_message("Where is my order?")

        assert not result.ok
        assert harness.state == HarnessState.ACTIVE
        [message] = harness.messages
        assert message.content == "Where is my order?"
        assert message.delivery == "failed"
        assert message.delivery_error == "[NOT_FOUND] session expired"
        assert harness.failed_messages == [message]
        assert harness.last_error == "[NOT_FOUND] session expired"
        assert harness.session_logger.entries_for("error")[0].data["operation"] == "Send message"

    @pytest.mark.asyncio
    async def test_resend_failed(self, opened, console):
        harness = await opened()
        path = f"{SESSION_PATH}/ts-1/messages"
        console.on("POST", path, {"message": "busy"}, status=503)
        await harness.send_message("Hi")

        console.on("POST", path, session([USER_TURN, ASSISTANT_TURN]))
        result = await harness.resend_failed()

        assert result.ok
        assert harness.failed_messages == []
        assert harness.last_error is None
        assert [json.loads(r.content)["message"] for r in console.calls("POST", path)] == ["Hi", "Hi"]

    @pytest.mark.asyncio
    async def test_resend_without_failure(self, opened):
        harness = await opened()
        result = await harness.resend_failed()
        assert result.error == "No failed message to resend"

    @pytest.mark.asyncio
    async def test_optimistic_ids_are_unique(self, opened, console):
        harness = await opened()
        console.on("POST", f"{SESSION_PATH}/ts-1/messages", {"message": "down"}, status=500)
        await harness.send_message("one")
        await harness.send_message("two")
        ids = [m.id for m in harness.messages]
        assert len(set(ids)) == 2
        assert all(i.isdigit() for i in ids)

    @pytest.mark.asyncio
    async def test_sends_are_serialized(self, opened, console):
        harness = await opened()
        in_flight = []
        peak = []

        async def respond(request):
            in_flight.append(request)
            peak.append(len(in_flight))
            await asyncio.sleep(0.01)
            in_flight.remove(request)
            return httpx.Response(200, json=session([USER_TURN, ASSISTANT_TURN]))

        console.on("POST", f"{SESSION_PATH}/ts-1/messages", respond)

        results = await asyncio.gather(harness.send_message("a"), harness.send_message("b"))

        assert all(r.ok for r in results)
        assert max(peak) == 1

    @pytest.mark.asyncio
    async def test_reply_for_closed_session_is_dropped(self, opened, console):
        harness = await opened()

        async def respond(request):
            await harness.close()
            return httpx.Response(200, json=session([USER_TURN, ASSISTANT_TURN]))

        console.on("POST", f"{SESSION_PATH}/ts-1/messages", respond)

        result = await harness.send_message("Hi")

        assert result.error == "Session changed while sending"
        assert harness.messages == []


class TestSessionOperations:

    @pytest.mark.asyncio
    async def test_clear_history(self, opened, console):
        harness = await opened()
        console.on("POST", f"{SESSION_PATH}/ts-1/messages", session([USER_TURN, ASSISTANT_TURN]))
        await harness.send_message("Hi")
        console.on("POST", f"{SESSION_PATH}/ts-1/clear", session([]))

        result = await harness.clear_history()

        assert result.ok
        assert harness.messages == []
        assert harness.session_logger.entries_for("history_cleared")[0].data == {"remaining": 0}

    @pytest.mark.asyncio
    async def test_refresh(self, opened, console):
        harness = await opened()
        console.on("GET", f"{SESSION_PATH}/ts-1", session([USER_TURN]))
        assert (await harness.refresh()).ok
        assert [m.id for m in harness.messages] == ["u1"]

    @pytest.mark.asyncio
    async def test_update_variables(self, opened, console):
        harness = await opened()
        console.on("PUT", f"{SESSION_PATH}/ts-1/variables", session())
        assert (await harness.update_variables({"lang": "en"})).ok
        assert console.last_json("PUT", f"{SESSION_PATH}/ts-1/variables") == {"lang": "en"}

    @pytest.mark.asyncio
    async def test_failure_is_reported(self, opened, console):
        harness = await opened()
        result = await harness.refresh()
        assert not result.ok
        assert harness.state == HarnessState.ACTIVE
        assert harness.last_error.startswith("[NOT_FOUND]")

    @pytest.mark.asyncio
    async def test_operations_need_a_session(self, harness):
        for call in (harness.clear_history(), harness.refresh(), harness.update_variables({})):
            assert (await call).error == "No active test session"


# =============================================================================
# Traces
# =============================================================================


class TestHarnessTraces:

    @pytest.mark.asyncio
    async def test_trace_labels_come_from_graph(self, opened, console):
        harness = await opened()
        console.on("POST", f"{SESSION_PATH}/ts-1/messages", session([USER_TURN, ASSISTANT_TURN]))
        await harness.send_message("Hi")

        trace = harness.trace_for("a1")
        assert [e.label for e in trace.entries] == ["Start", "Router", "Hello"]
        assert harness.trace_for("u1") is None
        assert harness.trace_for("zzz") is None
        assert list(harness.traces()) == ["a1"]

    @pytest.mark.asyncio
    async def test_deleted_node_falls_back_to_id(self, opened, console):
        harness = await opened()
        harness.definition.nodes = [n for n in harness.definition.nodes if n.id != "r1"]
        console.on("POST", f"{SESSION_PATH}/ts-1/messages", session([USER_TURN, ASSISTANT_TURN]))
        await harness.send_message("Hi")

        assert [e.label for e in harness.trace_for("a1").entries] == ["Start", "Router", "r1"]
        assert harness.session_logger.entries_for("node_trace")[2].message == "r1 (reply) ok in 19ms"
