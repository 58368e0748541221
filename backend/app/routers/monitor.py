"""
Monitor Router
==============
WebSocket endpoints for live interview proctoring.

``/ws/monitor`` runs one ProctoringSession + Sampler per connection over the
frames and audio levels the candidate's browser streams in.
``/ws/events`` is the interviewer feed: every emitted event from every
session is broadcast there.

Persistence and broadcast are delegated to ``event_bridge``; this router is
a thin controller.
"""

import asyncio
import base64
import json
import logging
from typing import Any, Dict, Optional

import cv2
import numpy as np
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.core.config import settings
from app.services import event_bridge as bridge
from app.services.perception_service import PerceptionService, get_perception_service
from app.services.websocket_manager import ws_manager
from proctor_engine.audio import LatestAudioLevel, decode_pcm16
from proctor_engine.events import ProctorEvent
from proctor_engine.report import epoch_ms_to_iso
from proctor_engine.sampler import LatestFrame, Sampler
from proctor_engine.session import ProctoringSession, SampleResult

logger = logging.getLogger("proctor.monitor")

router = APIRouter(tags=["Monitor"])


def _decode_frame(frame_b64: str) -> Optional[np.ndarray]:
    """base64 JPEG/PNG -> BGR ndarray, None if undecodable"""
    try:
        img_bytes = base64.b64decode(frame_b64)
        nparr = np.frombuffer(img_bytes, np.uint8)
        return cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    except Exception:
        return None


class MonitorConnection:
    """
    State of one /ws/monitor connection.

    Everything sent to the client goes through ``outbox`` so the sampler's
    callbacks (plain functions) and the receive loop never write to the
    socket concurrently.
    """

    def __init__(self, websocket: WebSocket, service: PerceptionService):
        self.websocket = websocket
        self.service = service
        self.config = settings.engine_config()
        self.frames = LatestFrame()
        self.audio = LatestAudioLevel()
        self.sink = bridge.BridgeEventSink()
        self.outbox: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        self.session: Optional[ProctoringSession] = None
        self.sampler: Optional[Sampler] = None

    @property
    def running(self) -> bool:
        return self.session is not None and self.session.is_running

    def send(self, message: Dict[str, Any]) -> None:
        self.outbox.put_nowait(message)

    async def pump(self) -> None:
        while True:
            message = await self.outbox.get()
            await self.websocket.send_json(message)

    # ── Session callbacks ──

    def _on_event(self, event: ProctorEvent) -> None:
        self.send({"type": "event", "data": event.to_dict()})
        # stored only under a server id; the feed always gets it
        self.sink.offer(self.session.session_id, event, feed_id=self.session.report_id)

    def _on_sample(self, result: SampleResult) -> None:
        self.send({
            "type": "status",
            "data": {**result.to_dict(), "integrityScore": self.session.integrity_score},
        })

    # ── Control ──

    async def start(self, candidate_name: str) -> None:
        session = ProctoringSession(candidate_name, config=self.config)
        now_ms = session.now_ms()
        started_at = epoch_ms_to_iso(now_ms)

        loop = asyncio.get_running_loop()
        session_id = await loop.run_in_executor(None, bridge.create_session, candidate_name, started_at)

        session.add_listener(self._on_event)
        session.start(session_id=session_id, now_ms=now_ms)
        self.session = session
        self.sampler = Sampler(
            session,
            self.service.session_adapter(self.audio),
            self.frames,
            on_sample=self._on_sample,
        )
        self.sampler.start()
        self.send({"type": "started", "data": {"sessionId": session.report_id, "startedAt": started_at}})

    async def finish(self) -> Optional[Dict[str, Any]]:
        """Stop sampling, persist the final report and return it"""
        if self.session is None:
            return None
        if self.sampler is not None:
            await self.sampler.stop()
            self.sampler = None
        report = self.session.stop()
        await self.sink.drain()
        if report is None:
            return None

        data = report.to_dict()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, bridge.persist_report, data)
        try:
            await ws_manager.send_report(data)
        except Exception as exc:
            logger.warning("Failed to broadcast report %s: %s", data["id"], exc)
        logger.info("Session %s finished (score=%d, events=%d)",
                    data["id"], data["integrityScore"], len(data["events"]))
        return data

    # ── Incoming messages ──

    async def handle(self, msg: Dict[str, Any]) -> None:
        msg_type = msg.get("type", "")

        if msg_type == "ping":
            self.send({"type": "pong"})
            return

        if msg_type == "start":
            if self.running:
                self.send({"type": "error", "message": "Session already running"})
                return
            await self.start(msg.get("candidateName") or "")
            return

        if msg_type == "frame":
            frame_b64 = msg.get("data", "")
            if not frame_b64:
                return
            frame = _decode_frame(frame_b64)
            if frame is not None:
                self.frames.put(frame)
            return

        if msg_type == "audio":
            if msg.get("level") is not None:
                try:
                    self.audio.push_level(float(msg["level"]))
                except (TypeError, ValueError):
                    pass
            elif msg.get("pcm"):
                samples = decode_pcm16(msg["pcm"])
                if samples is not None:
                    self.audio.push_pcm(samples)
            return

        if not self.running:
            if msg_type in ("note", "clear", "report", "stop"):
                self.send({"type": "error", "message": "No active session"})
            return

        if msg_type == "note":
            self.session.add_note(str(msg.get("message", "")))
        elif msg_type == "clear":
            self.session.clear_events()
            self.send({"type": "cleared"})
        elif msg_type == "report":
            report = self.session.generate_report()
            self.send({"type": "report", "final": False, "data": report.to_dict()})
        elif msg_type == "stop":
            data = await self.finish()
            self.send({"type": "report", "final": True, "data": data})


# ══════════════════════════════════════════════════════════
# WebSocket endpoints
# ══════════════════════════════════════════════════════════

@router.websocket("/ws/monitor")
async def websocket_monitor(
    websocket: WebSocket,
    service: PerceptionService = Depends(get_perception_service),
):
    """
    Live proctoring WebSocket.

    Protocol:
    - Client sends JSON control/data messages:
      {"type": "start", "candidateName": "..."}
      {"type": "frame", "data": "<base64 jpeg>"}
      {"type": "audio", "level": 0-255} or {"type": "audio", "pcm": "<base64 int16 LE>"}
      {"type": "note", "message": "..."}
      {"type": "clear"} / {"type": "report"} / {"type": "stop"} / {"type": "ping"}
    - Server responds with:
      {"type": "started", "data": {"sessionId", "startedAt"}}
      {"type": "event", "data": {...event...}}
      {"type": "status", "data": {...sample result...}}
      {"type": "report", "final": bool, "data": {...report...}}
    """
    await ws_manager.connect(websocket, "monitor")

    if not service.is_ready:
        await websocket.send_json({
            "type": "error",
            "message": "Perception models not available. "
                       "Ensure mediapipe and ultralytics are installed.",
        })
        ws_manager.disconnect(websocket, "monitor")
        await websocket.close()
        return

    conn = MonitorConnection(websocket, service)
    pump = asyncio.create_task(conn.pump(), name="proctor-monitor-pump")
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(msg, dict):
                await conn.handle(msg)
    except WebSocketDisconnect:
        logger.info("Monitor client disconnected (frames=%d)", conn.frames.received)
    except Exception as e:
        logger.error("Monitor WS error: %s", e, exc_info=True)
    finally:
        ws_manager.disconnect(websocket, "monitor")
        pump.cancel()
        if conn.running:
            await conn.finish()


@router.websocket("/ws/events")
async def websocket_events(websocket: WebSocket):
    """Interviewer feed: every session's events as they are emitted"""
    await ws_manager.connect(websocket, "events")
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket, "events")
