from types import SimpleNamespace

import requests

import ptg_explorer.core.preflight as preflight  # type: ignore[import]


def test_reachable_target_returns_status(monkeypatch):
    seen = {}

    def fake_get(url, **kwargs):
        seen["url"] = url
        seen["timeout"] = kwargs["timeout"]
        return SimpleNamespace(status_code=200)

    monkeypatch.setattr(preflight.requests, "get", fake_get)

    assert preflight.check_target_reachable("http://app.test") == 200
    assert seen == {"url": "http://app.test", "timeout": preflight.PREFLIGHT_TIMEOUT}


def test_unreachable_target_returns_none(monkeypatch):
    def refuse(url, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(preflight.requests, "get", refuse)

    assert preflight.check_target_reachable("http://app.test") is None


def test_server_errors_are_reported_but_returned(monkeypatch):
    monkeypatch.setattr(preflight.requests, "get", lambda url, **kwargs: SimpleNamespace(status_code=502))

    assert preflight.check_target_reachable("http://app.test") == 502
