"""
Interview Proctor WebSocket Manager
Handles real-time streaming of proctoring events to interviewer dashboards.
"""

import logging
from typing import Dict, Optional, Set
from fastapi import WebSocket

logger = logging.getLogger("proctor.websocket")


class ConnectionManager:
    """Manages WebSocket connections for real-time streaming"""

    def __init__(self):
        # Channel-based connections
        self.active_connections: Dict[str, Set[WebSocket]] = {
            "monitor": set(),
            "events": set(),
        }

    async def connect(self, websocket: WebSocket, channel: str = "events"):
        await websocket.accept()
        if channel not in self.active_connections:
            self.active_connections[channel] = set()
        self.active_connections[channel].add(websocket)
        logger.info(f"Client connected to channel: {channel} (total: {len(self.active_connections[channel])})")

    def disconnect(self, websocket: WebSocket, channel: str = "events"):
        if channel in self.active_connections:
            self.active_connections[channel].discard(websocket)
        logger.info(f"Client disconnected from channel: {channel}")

    async def broadcast_to_channel(self, channel: str, message: dict):
        """Send message to all clients on a channel"""
        if channel not in self.active_connections:
            return

        dead = set()
        for ws in list(self.active_connections[channel]):
            try:
                await ws.send_json(message)
            except Exception:
                dead.add(ws)

        for ws in dead:
            self.active_connections[channel].discard(ws)

    async def send_event(self, session_id: Optional[str], event: dict):
        """Broadcast a proctoring event to interviewer clients"""
        await self.broadcast_to_channel("events", {
            "type": "event",
            "sessionId": session_id,
            "data": event,
        })

    async def send_report(self, report: dict):
        """Tell interviewer clients a session's final report is available"""
        await self.broadcast_to_channel("events", {
            "type": "report",
            "data": {
                "id": report.get("id"),
                "candidateName": report.get("candidateName"),
                "integrityScore": report.get("integrityScore"),
            },
        })


# Global instance
ws_manager = ConnectionManager()
