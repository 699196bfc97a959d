"""Webhook registry for scheduling domain events.

The notification collaborator (email, push) registers a URL and receives a
signed POST for each booking or plan event it subscribed to. Events are
dispatched after the originating transaction has committed.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections import deque
from typing import Any
from uuid import uuid4

import httpx

from core.config import get_settings

logger = logging.getLogger(__name__)

VALID_EVENTS = {
    "booking.created",
    "booking.confirmed",
    "booking.cancelled",
    "booking.completed",
    "booking.reminder_due",
    "plan.scheduled",
    "plan.replanned",
    "plan.paused",
    "plan.resumed",
}


def _sign_payload(payload: str, secret: str) -> str:
    """HMAC-SHA256 signature for webhook payload verification."""
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


class WebhookDispatcher:
    """In-memory subscriber registry plus a bounded history of emitted events."""

    def __init__(self, history_size: int = 200) -> None:
        self._hooks: dict[str, dict] = {}
        self._history: deque[dict[str, Any]] = deque(maxlen=history_size)

    def register(self, url: str, events: list[str], secret: str | None = None) -> dict:
        invalid = set(events) - VALID_EVENTS
        if invalid:
            raise ValueError(f"Invalid events: {sorted(invalid)}. Valid: {sorted(VALID_EVENTS)}")
        hook_id = uuid4().hex[:12]
        self._hooks[hook_id] = {"id": hook_id, "url": url, "events": list(events), "secret": secret, "active": True}
        logger.info("Webhook registered: id=%s url=%s events=%s", hook_id, url, events)
        return self._hooks[hook_id]

    def unregister(self, hook_id: str) -> bool:
        if self._hooks.pop(hook_id, None) is None:
            return False
        logger.info("Webhook unregistered: id=%s", hook_id)
        return True

    def registered(self) -> list[dict]:
        return list(self._hooks.values())

    def history(self) -> list[dict[str, Any]]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    def reset(self) -> None:
        self._hooks.clear()
        self._history.clear()

    async def dispatch(self, event_type: str, data: dict[str, Any]) -> int:
        """Fire webhook callbacks for an event type. Returns count of deliveries sent."""
        if event_type not in VALID_EVENTS:
            raise ValueError(f"Unknown event type: {event_type}")
        self._history.append({"event": event_type, "data": data})
        subscribers = [h for h in self._hooks.values() if h["active"] and event_type in h["events"]]
        if not subscribers:
            return 0

        payload = json.dumps({"event": event_type, "data": data}, default=str)
        dispatched = 0
        async with httpx.AsyncClient(timeout=get_settings().webhook_timeout_seconds) as client:
            for hook in subscribers:
                headers = {"Content-Type": "application/json", "X-Webhook-Event": event_type}
                if hook.get("secret"):
                    headers["X-Webhook-Signature"] = _sign_payload(payload, hook["secret"])
                try:
                    resp = await client.post(hook["url"], content=payload, headers=headers)
                    logger.info("Webhook dispatched: id=%s event=%s status=%d", hook["id"], event_type, resp.status_code)
                    dispatched += 1
                except httpx.HTTPError as e:
                    logger.warning("Webhook delivery failed: id=%s url=%s error=%s", hook["id"], hook["url"], e)
        return dispatched


dispatcher = WebhookDispatcher()


async def dispatch_event(event_type: str, data: dict[str, Any]) -> int:
    return await dispatcher.dispatch(event_type, data)
