from datetime import datetime, timezone

import requests

from catalog_api.app.core import keep_alive
from catalog_api.app.core.config import settings

# 03:30 UTC is 09:00 in Asia/Kolkata, 13:00 UTC is 18:30.
DAYTIME = datetime(2026, 10, 18, 3, 30, tzinfo=timezone.utc)
NIGHT = datetime(2026, 10, 18, 13, 0, tzinfo=timezone.utc)


def test_url_falls_back_to_public_base_url(monkeypatch):
    monkeypatch.setattr(settings, "keep_alive_url", "")
    monkeypatch.setattr(settings, "public_base_url", "https://shop.example.com/")
    assert keep_alive.keep_alive_url() == "https://shop.example.com/api/health"

    monkeypatch.setattr(settings, "keep_alive_url", "https://ping.example.com/health")
    assert keep_alive.keep_alive_url() == "https://ping.example.com/health"

    monkeypatch.setattr(settings, "keep_alive_url", "")
    monkeypatch.setattr(settings, "public_base_url", "")
    assert keep_alive.keep_alive_url() == ""


def test_window_is_daytime_in_configured_timezone():
    assert keep_alive.is_within_window(DAYTIME)
    assert not keep_alive.is_within_window(NIGHT)


def test_ping_only_inside_window(monkeypatch):
    calls = []
    monkeypatch.setattr(keep_alive.requests, "get", lambda url, **kwargs: calls.append(url))

    assert keep_alive.ping_once("https://shop.example.com/api/health", now=DAYTIME) is True
    assert keep_alive.ping_once("https://shop.example.com/api/health", now=NIGHT) is False
    assert keep_alive.ping_once("", now=DAYTIME) is False
    assert calls == ["https://shop.example.com/api/health"]


def test_ping_failures_are_ignored(monkeypatch):
    def fail(url, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(keep_alive.requests, "get", fail)
    assert keep_alive.ping_once("https://shop.example.com/api/health", now=DAYTIME) is True
