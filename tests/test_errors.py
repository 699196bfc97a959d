from __future__ import annotations

from datetime import datetime

from core.errors import CooldownError, InvalidStateError, SlotUnavailableError, ValidationError, not_found


def test_error_detail_envelope():
    err = SlotUnavailableError("taken", date="2026-10-19", time="09:00", extra=None)
    assert err.to_detail() == {"code": "SLOT_UNAVAILABLE", "message": "taken", "date": "2026-10-19", "time": "09:00"}
    assert str(err) == "taken"


def test_status_codes():
    assert ValidationError("x").status_code == 422
    assert InvalidStateError("x").status_code == 409
    nf = not_found("Booking", 12)
    assert nf.status_code == 404
    assert nf.to_detail()["id"] == "12"


def test_cooldown_carries_retry_information():
    err = CooldownError("wait", available_at=datetime(2026, 11, 1, 9, 0), retry_after_seconds=3600)
    detail = err.to_detail()
    assert detail["code"] == "COOLDOWN"
    assert detail["available_at"] == "2026-11-01T09:00:00"
    assert detail["retry_after_seconds"] == 3600
