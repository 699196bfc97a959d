from __future__ import annotations

import asyncio
import hashlib
import hmac
import json

import httpx
import pytest

from api.webhooks import WebhookDispatcher


def test_register_rejects_unknown_events():
    d = WebhookDispatcher()
    with pytest.raises(ValueError):
        d.register("https://hooks.example.com/x", ["booking.exploded"])
    hook = d.register("https://hooks.example.com/x", ["booking.created", "plan.paused"])
    assert hook["active"] is True
    assert d.registered() == [hook]
    assert d.unregister(hook["id"]) is True
    assert d.unregister(hook["id"]) is False


def test_dispatch_records_history_without_subscribers():
    d = WebhookDispatcher(history_size=2)
    for n in range(3):
        assert asyncio.run(d.dispatch("booking.created", {"booking_id": n})) == 0
    assert [e["data"]["booking_id"] for e in d.history()] == [1, 2]
    with pytest.raises(ValueError):
        asyncio.run(d.dispatch("booking.exploded", {}))


def test_dispatch_signs_payload(monkeypatch):
    sent = []

    async def fake_post(self, url, content=None, headers=None):
        sent.append((url, content, headers))
        return httpx.Response(204)

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)
    d = WebhookDispatcher()
    d.register("https://hooks.example.com/mail", ["booking.confirmed"], secret="s3cret")
    d.register("https://hooks.example.com/other", ["plan.paused"])

    delivered = asyncio.run(d.dispatch("booking.confirmed", {"booking_id": 5}))

    assert delivered == 1
    url, content, headers = sent[0]
    assert url == "https://hooks.example.com/mail"
    assert json.loads(content) == {"event": "booking.confirmed", "data": {"booking_id": 5}}
    expected = hmac.new(b"s3cret", content.encode(), hashlib.sha256).hexdigest()
    assert headers["X-Webhook-Signature"] == expected
    assert headers["X-Webhook-Event"] == "booking.confirmed"


def test_delivery_failure_is_logged_not_raised(monkeypatch):
    async def failing_post(self, url, content=None, headers=None):
        raise httpx.ConnectError("refused")

    monkeypatch.setattr(httpx.AsyncClient, "post", failing_post)
    d = WebhookDispatcher()
    d.register("https://hooks.example.com/mail", ["booking.cancelled"])
    assert asyncio.run(d.dispatch("booking.cancelled", {"booking_id": 1})) == 0
    assert d.history()[-1]["event"] == "booking.cancelled"
