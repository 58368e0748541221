import asyncio
import json

import httpx

from proctor_engine.events import EventType, ProctorEvent
from proctor_engine.session import ProctoringSession
from proctor_engine.sinks import (
    HttpEventSink,
    HttpReportSink,
    ProctorServerClient,
    bootstrap_session,
)

T0 = 1_700_000_000_000


class FakeServer:
    """Records requests; answers like the proctoring REST API"""

    def __init__(self, fail=False):
        self.requests = []
        self.fail = fail

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        self.requests.append((request.url.path, body))
        if self.fail:
            return httpx.Response(500, json={"error": "down"})
        if request.url.path == "/api/proctor/session":
            return httpx.Response(200, json={"id": "srv-42"})
        if request.url.path == "/api/proctor/report":
            return httpx.Response(200, json={"ok": True, "id": body["report"]["id"]})
        return httpx.Response(200, json={"ok": True})


def _client(server):
    return ProctorServerClient("http://proctor.test/", transport=httpx.MockTransport(server))


def test_bootstrap_attaches_server_id_and_mirrors_events():
    server = FakeServer()

    async def scenario():
        client = _client(server)
        session = ProctoringSession("Jane Doe", event_sink=HttpEventSink(client))
        session.start(now_ms=T0)
        await bootstrap_session(session, client, "2023-11-14T22:13:20.000Z")
        session.add_note("hello", now_ms=T0 + 10)
        await client.drain()
        report = session.stop(now_ms=T0 + 20)
        await HttpReportSink(client).offer(report)
        await client.aclose()
        return session

    session = asyncio.run(scenario())
    assert session.report_id == "srv-42"
    paths = [p for p, _ in server.requests]
    assert paths == [
        "/api/proctor/session",
        "/api/proctor/session/srv-42/event",
        "/api/proctor/report",
    ]
    assert server.requests[0][1] == {"candidateName": "Jane Doe", "startedAt": "2023-11-14T22:13:20.000Z"}
    assert server.requests[1][1]["message"] == "hello"
    assert server.requests[2][1]["report"]["id"] == "srv-42"


def test_server_failures_are_swallowed():
    server = FakeServer(fail=True)

    async def scenario():
        client = _client(server)
        session = ProctoringSession("Jane", event_sink=HttpEventSink(client))
        session.start(now_ms=T0)
        session_id = await bootstrap_session(session, client, "x")
        ok = await client.post_event("any", ProctorEvent("e", EventType.INFO, "m", 0))
        saved = await client.save_report(session.stop(now_ms=T0 + 1))
        await client.aclose()
        return session, session_id, ok, saved

    session, session_id, ok, saved = asyncio.run(scenario())
    assert session_id is None
    assert ok is False
    assert saved is None
    assert session.report_id == f"{T0}-jane"


def test_unreachable_server_does_not_raise():
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    async def scenario():
        client = ProctorServerClient("http://proctor.test", transport=httpx.MockTransport(refuse))
        result = await client.create_session("x", "y")
        await client.aclose()
        return result

    assert asyncio.run(scenario()) is None


def test_schedule_without_loop_drops_call():
    server = FakeServer()
    client = _client(server)
    assert client.schedule(client.create_session("x", "y")) is None
    assert server.requests == []


def test_session_ids_are_path_quoted():
    server = FakeServer()

    async def scenario():
        client = _client(server)
        await client.post_event("a/b c", ProctorEvent("e", EventType.INFO, "m", 0))
        await client.aclose()

    asyncio.run(scenario())
    assert server.requests[0][0] in ("/api/proctor/session/a%2Fb%20c/event", "/api/proctor/session/a/b c/event")
