"""Tests for the application-level endpoints in ``replybot.main``."""

import os
import tempfile

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="replybot-logs-"))

from replybot.__version__ import __build_date__, __commit_sha__, __version__
from replybot.main import app


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_version(client):
    resp = client.get("/api/version")
    assert resp.json() == {
        "version": __version__,
        "build_date": __build_date__,
        "commit_sha": __commit_sha__,
    }


def test_metrics_exposed(client):
    client.get("/api/health")
    resp = client.get("/api/metrics")
    assert resp.status_code == 200
    assert "http_request" in resp.text


def test_webhook_route_is_mounted(client, monkeypatch):
    monkeypatch.setenv("FACEBOOK_VERIFY_TOKEN", "t")
    resp = client.get(
        "/api/webhooks/messenger",
        params={"hub.mode": "subscribe", "hub.verify_token": "t", "hub.challenge": "42"},
    )
    assert resp.status_code == 200
    assert resp.text == "42"
    assert resp.headers["X-Request-Id"]
