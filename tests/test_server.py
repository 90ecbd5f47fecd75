import asyncio

from fastapi.testclient import TestClient

from alert_relay import server


def test_lifespan_waits_for_cancelled_verification(settings, monkeypatch):
    state = {}

    async def slow_verify(self):
        state["started"] = True
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise
        return True

    monkeypatch.setattr("alert_relay.core.AlertRelay.verify_smtp", slow_verify)
    app = server.build_app(settings)
    with TestClient(app) as client:
        assert client.get("/").status_code == 200

    assert state == {"started": True, "cancelled": True}


def test_lifespan_with_finished_verification(settings, monkeypatch):
    calls = []

    async def quick_verify(self):
        calls.append(self.settings.smtp.host)
        return False

    monkeypatch.setattr("alert_relay.core.AlertRelay.verify_smtp", quick_verify)
    with TestClient(server.build_app(settings)) as client:
        assert client.get("/").json()["ok"] is True

    assert calls == ["smtp.local"]
