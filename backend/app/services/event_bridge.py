"""
Interview Proctor Event Bridge
===============================
Funnels a live ProctoringSession into the report store and the ``"events"``
WebSocket channel.

  • Events are appended to the session's stored log and broadcast to
    interviewer clients. Both are best effort: failures are logged and never
    reach the detection pipeline.
  • Database work runs in the default thread pool; writes for one session
    are serialised so the stored log keeps emission order.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from app.core.database import SessionLocal
from app.services import report_store
from app.services.websocket_manager import ws_manager
from proctor_engine.events import ProctorEvent

logger = logging.getLogger("proctor.bridge")


# ─────────────────────────────────────────────────────────
# Session lifecycle
# ─────────────────────────────────────────────────────────

def create_session(candidate_name: str, started_at: str) -> Optional[str]:
    """Create the stored placeholder; None when the database is unavailable"""
    db = SessionLocal()
    try:
        return report_store.create_session(db, candidate_name, started_at)
    except Exception as exc:
        logger.error("Failed to create proctoring session: %s", exc)
        return None
    finally:
        db.close()


def persist_report(report: Dict[str, Any]) -> Optional[str]:
    db = SessionLocal()
    try:
        return report_store.save_report(db, report)
    except Exception as exc:
        logger.error("Failed to persist report %s: %s", report.get("id"), exc)
        return None
    finally:
        db.close()


# ─────────────────────────────────────────────────────────
# Event persistence + broadcast
# ─────────────────────────────────────────────────────────

def persist_event(session_id: str, event: Dict[str, Any]) -> bool:
    db = SessionLocal()
    try:
        stored = report_store.append_event(db, session_id, event)
        if not stored:
            logger.warning("Event %s dropped: session %s not found", event.get("id"), session_id)
        return stored
    except Exception as exc:
        logger.error("Failed to persist event %s: %s", event.get("id"), exc)
        return False
    finally:
        db.close()


async def broadcast_event(session_id: Optional[str], event: Dict[str, Any]) -> None:
    try:
        await ws_manager.send_event(session_id, event)
    except Exception as exc:
        logger.warning("Failed to broadcast event %s: %s", event.get("id"), exc)


class BridgeEventSink:
    """
    Store + broadcast each event without blocking the emitter.

    The stored append needs a server session id; the broadcast does not, so
    interviewer clients still see every event when the placeholder could not
    be created. ``drain()`` waits for everything offered so far.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()
        self.persisted = 0

    def offer(
        self,
        session_id: Optional[str],
        event: ProctorEvent,
        feed_id: Optional[str] = None,
    ) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; event %s not mirrored", event.id)
            return
        task = loop.create_task(
            self._persist_and_broadcast(session_id, feed_id or session_id, event.to_dict())
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist_and_broadcast(
        self,
        session_id: Optional[str],
        feed_id: Optional[str],
        event: Dict[str, Any],
    ) -> None:
        async with self._lock:
            if session_id:
                loop = asyncio.get_running_loop()
                if await loop.run_in_executor(None, persist_event, session_id, event):
                    self.persisted += 1
            await broadcast_event(feed_id, event)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
