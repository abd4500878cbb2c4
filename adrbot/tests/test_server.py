"""Tests for the FastAPI surface and the Slack event handler."""

import asyncio
import hashlib
import hmac
import json
import time
import pytest
from unittest.mock import Mock

from fastapi.testclient import TestClient

from adrbot.common.config import AppConfig
from adrbot.scribe import server
from adrbot.scribe.handlers import ReactionEvent, SlackHandler
from adrbot.scribe.recovery import SweepReport


SECRET = "signing-secret"

REACTION_PAYLOAD = {
    "type": "event_callback",
    "team_id": "T1",
    "event": {
        "type": "reaction_added",
        "user": "U3",
        "reaction": "decision",
        "item": {"type": "message", "channel": "C1", "ts": "100.000001"},
        "event_ts": "100.000009",
    },
}


def _sign(body: bytes, secret: str = SECRET, timestamp: str = None):
    timestamp = timestamp or str(int(time.time()))
    basestring = f"v0:{timestamp}:{body.decode('utf-8')}"
    signature = "v0=" + hmac.new(secret.encode(), basestring.encode(), hashlib.sha256).hexdigest()
    return {"X-Slack-Signature": signature, "X-Slack-Request-Timestamp": timestamp}


@pytest.fixture
def app_state(monkeypatch):
    """Server globals without running the lifespan"""
    config = AppConfig()
    config.scribe.recovery_token = "recover-me"
    pipeline = Mock()
    pipeline.is_trigger.return_value = True
    pipeline.run_recovery_sweep.return_value = SweepReport(targets_checked=2, recovered=["https://notion.so/p1"])

    monkeypatch.setattr(server, "config", config)
    monkeypatch.setattr(server, "pipeline", pipeline)
    monkeypatch.setattr(server, "slack_handler", SlackHandler(signing_secret=SECRET))
    return pipeline


@pytest.fixture
def client(app_state):
    return TestClient(server.app)


class TestSlackEvents:
    def test_url_verification(self, client):
        body = json.dumps({"type": "url_verification", "challenge": "abc"}).encode()
        response = client.post("/slack/events", content=body, headers=_sign(body))
        assert response.status_code == 200
        assert response.json() == {"challenge": "abc"}

    def test_bad_signature_rejected(self, client, app_state):
        body = json.dumps(REACTION_PAYLOAD).encode()
        response = client.post("/slack/events", content=body, headers=_sign(body, secret="wrong"))
        assert response.status_code == 401
        app_state.handle.assert_not_called()

    def test_reaction_runs_pipeline(self, client, app_state):
        body = json.dumps(REACTION_PAYLOAD).encode()
        response = client.post("/slack/events", content=body, headers=_sign(body))

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        event = app_state.handle.call_args.args[0]
        assert (event.reaction, event.channel, event.item_ts, event.workspace_id) == ("decision", "C1", "100.000001", "T1")

    def test_non_trigger_reaction_not_processed(self, client, app_state):
        app_state.is_trigger.return_value = False
        body = json.dumps(REACTION_PAYLOAD).encode()
        client.post("/slack/events", content=body, headers=_sign(body))
        app_state.handle.assert_not_called()

    def test_invalid_json(self, client):
        body = b"not json"
        response = client.post("/slack/events", content=body, headers=_sign(body))
        assert response.status_code == 400


class TestRecovery:
    def test_requires_token(self, client, app_state):
        response = client.post("/recovery")
        assert response.status_code == 401
        app_state.run_recovery_sweep.assert_not_called()

    def test_wrong_token(self, client):
        response = client.post("/recovery", headers={"X-Recovery-Token": "nope"})
        assert response.status_code == 401

    def test_runs_sweep(self, client):
        response = client.post("/recovery", headers={"X-Recovery-Token": "recover-me"})
        assert response.status_code == 200
        report = response.json()["report"]
        assert report["targets_checked"] == 2
        assert report["recovered"] == ["https://notion.so/p1"]

    def test_disabled_without_configured_token(self, client, monkeypatch):
        monkeypatch.setattr(server.config.scribe, "recovery_token", "")
        response = client.post("/recovery", headers={"X-Recovery-Token": ""})
        assert response.status_code == 401


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["initialized"] is True


class TestSlackHandler:
    def _parse(self, payload):
        return asyncio.run(SlackHandler().parse_event(payload))

    def test_parse_reaction(self):
        event = self._parse(REACTION_PAYLOAD)
        assert isinstance(event, ReactionEvent)
        assert event.is_valid
        assert event.event_ts == "100.000009"

    def test_ignores_other_events(self):
        payload = dict(REACTION_PAYLOAD, event={"type": "message", "text": "hi"})
        assert self._parse(payload) is None

    def test_ignores_file_reactions(self):
        event = dict(REACTION_PAYLOAD["event"], item={"type": "file", "file": "F1"})
        assert self._parse(dict(REACTION_PAYLOAD, event=event)) is None

    def test_stale_timestamp_rejected(self):
        body = b"{}"
        old = str(int(time.time()) - 600)
        headers = _sign(body, timestamp=old)
        handler = SlackHandler(signing_secret=SECRET)
        assert not handler.verify_signature(body, headers["X-Slack-Signature"], old)

    def test_no_secret_skips_verification(self):
        assert SlackHandler().verify_signature(b"{}", "", "")
