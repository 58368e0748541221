"""
Best-effort collaborators: session bootstrap, event mirroring and report
persistence against a proctoring server over HTTP.

Every call is fire-and-forget from the engine's point of view. Failures are
logged at DEBUG and discarded; nothing here is retried and nothing here can
raise into the detection pipeline.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set
from urllib.parse import quote

import httpx

from .events import ProctorEvent
from .report import Report

logger = logging.getLogger("proctor.sinks")

DEFAULT_TIMEOUT_SECONDS = 10


class ProctorServerClient:
    """Thin async client for the proctoring REST API"""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)
        self._pending: Set[asyncio.Task] = set()

    async def create_session(self, candidate_name: str, started_at: str) -> Optional[str]:
        """Returns the server-issued session id, or None when unavailable"""
        data = await self._post_json(
            "/api/proctor/session",
            {"candidateName": candidate_name, "startedAt": started_at},
        )
        return data.get("id") if data else None

    async def post_event(self, session_id: str, event: ProctorEvent) -> bool:
        data = await self._post_json(
            f"/api/proctor/session/{quote(session_id, safe='')}/event", event.to_dict()
        )
        return bool(data and data.get("ok"))

    async def save_report(self, report: Report) -> Optional[str]:
        data = await self._post_json("/api/proctor/report", {"report": report.to_dict()})
        return data.get("id") if data else None

    # ── Fire-and-forget scheduling ──

    def schedule(self, coro) -> Optional[asyncio.Task]:
        """Detach a coroutine on the running loop; keep a reference until it finishes"""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.debug("No running event loop; dropping background call")
            return None
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight background calls (used on shutdown)"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self._client.aclose()

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            resp = await self._client.post(path, json=payload)
            if resp.status_code != 200:
                logger.debug("POST %s -> %s: %s", path, resp.status_code, resp.text)
                return None
            return resp.json()
        except Exception as e:
            logger.debug("POST %s failed: %s", path, e)
            return None


class HttpEventSink:
    """Mirrors each emitted event to the server session log"""

    def __init__(self, client: ProctorServerClient):
        self.client = client

    def offer(self, session_id: str, event: ProctorEvent) -> None:
        self.client.schedule(self.client.post_event(session_id, event))


class HttpReportSink:
    """Hands the final report to the server for persistence"""

    def __init__(self, client: ProctorServerClient):
        self.client = client

    def offer(self, report: Report) -> Optional[asyncio.Task]:
        return self.client.schedule(self.client.save_report(report))


async def bootstrap_session(session, client: ProctorServerClient, started_at: str) -> Optional[str]:
    """
    Ask the server for a session id and attach it to a running session.
    Absence of an id never blocks the session; it just keeps its local id.
    """
    session_id = await client.create_session(session.candidate_name, started_at)
    if session_id:
        session.attach_session_id(session_id)
        logger.info("Server session %s attached", session_id)
    else:
        logger.info("No server session id; continuing with local identity")
    return session_id
