import json
from datetime import datetime

import pytest

import ptg_explorer.core.config as config_module  # type: ignore[import]
from ptg_explorer.core.config import (
    AuthDescriptor,
    ConfigurationError,
    TargetRepository,
    load_configuration,
    make_run_id,
)


def _write_targets(tmp_path, targets):
    path = tmp_path / "targets.json"
    path.write_text(json.dumps(targets), encoding="utf-8")
    return path


LIBRARY = {
    "baseUrl": "http://localhost:8080",
    "routeMode": "hash",
    "startPage": "/home",
    "auth": {"type": 2, "localStorage": {"items": [{"key": "token", "value": "abc"}]}},
    "dynamicRoutePatterns": ["/book/:id"],
    "coverage": {"cwd": "frontend", "reportRoot": "reports"},
}


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch):
    monkeypatch.setattr(config_module, "load_dotenv", lambda *_args, **_kwargs: False)
    for key in ["HEADLESS", "PTG_TARGETS_FILE", "PTG_OUT_DIR", "RUN_TAG"]:
        monkeypatch.delenv(key, raising=False)


def test_load_configuration_uses_environment(monkeypatch, tmp_path):
    targets = _write_targets(tmp_path, {"library": LIBRARY})
    monkeypatch.setenv("PTG_TARGETS_FILE", str(targets))
    monkeypatch.setenv("PTG_OUT_DIR", str(tmp_path / "results"))
    monkeypatch.setenv("HEADLESS", "true")
    monkeypatch.setenv("RUN_TAG", "nightly run")

    config = load_configuration("library", "ptg", 600, 60)

    assert config.target.route_mode == "hash"
    assert config.target.start_page == "/home"
    assert config.target.auth.kind == "local_storage"
    assert config.target.auth.items == ({"key": "token", "value": "abc"},)
    assert config.target.coverage.cwd == (tmp_path / "frontend").resolve()
    assert config.headless is True
    assert config.interval == 60
    assert config.out_root == (tmp_path / "results").resolve()
    assert config.run_id.endswith("_library_ptg_nightly_run")
    assert config.runs_root == config.out_root / "library" / "runs" / config.run_id


def test_load_configuration_defaults(tmp_path):
    targets = _write_targets(tmp_path, {"shop": {"baseUrl": "http://localhost:3000"}})

    config = load_configuration("shop", "random", targets_path=str(targets))

    assert config.duration == 300
    assert config.interval == 300
    assert config.headless is False
    assert config.graph_path is None
    assert config.target.route_mode == "history"
    assert config.target.auth.kind == "none"
    assert config.target.coverage is None


@pytest.mark.parametrize(
    ("mode", "duration", "interval", "message"),
    [
        ("bfs", 300, None, "mode must be"),
        ("ptg", 0, None, "duration"),
        ("ptg", 60, 120, "interval"),
        ("ptg", 60, -5, "interval"),
    ],
)
def test_load_configuration_rejects_invalid_runs(tmp_path, mode, duration, interval, message):
    targets = _write_targets(tmp_path, {"shop": {"baseUrl": "http://localhost:3000"}})

    with pytest.raises(ConfigurationError, match=message):
        load_configuration("shop", mode, duration, interval, targets_path=str(targets))


def test_unknown_target_lists_available_names(tmp_path):
    targets = _write_targets(tmp_path, {"shop": {"baseUrl": "http://a"}, "library": {"baseUrl": "http://b"}})

    with pytest.raises(ConfigurationError, match="Unknown target: bank. Available: library, shop"):
        TargetRepository.from_file(targets).get("bank")


def test_missing_or_invalid_targets_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        TargetRepository.from_file(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="not valid JSON"):
        TargetRepository.from_file(broken)


def test_target_requires_base_url_and_valid_route_mode(tmp_path):
    with pytest.raises(ConfigurationError, match="baseUrl"):
        TargetRepository.from_file(_write_targets(tmp_path, {"x": {}}))

    with pytest.raises(ConfigurationError, match="routeMode"):
        TargetRepository.from_file(_write_targets(tmp_path, {"x": {"baseUrl": "http://a", "routeMode": "memory"}}))


@pytest.mark.parametrize(
    ("raw", "kind"),
    [
        ({"type": 0, "cookie": {"cookies": [{"name": "sid", "value": "1"}]}}, "cookie"),
        ({"type": 1, "sessionStorage": {"items": [{"key": "k", "value": "v"}]}}, "session_storage"),
        ({"authType": "BEARER", "jwt": {"token": "t"}}, "bearer"),
        ({"type": 9}, "none"),
        (None, "none"),
    ],
)
def test_auth_descriptor_accepts_codes_and_names(raw, kind):
    assert AuthDescriptor.from_mapping(raw).kind == kind


def test_auth_descriptor_rejects_unknown_kind():
    with pytest.raises(ConfigurationError, match="Unknown auth type"):
        AuthDescriptor.from_mapping({"type": "oauth"})


def test_make_run_id_format():
    now = datetime(2024, 5, 1, 13, 4, 5)

    assert make_run_id("library", "ptg", now=now) == "20240501-130405_library_ptg"
    assert make_run_id("library", "random", "a/b", now=now) == "20240501-130405_library_random_a_b"
