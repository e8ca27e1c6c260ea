import json

import pytest

import ptg_explorer.cli as cli  # type: ignore[import]
import ptg_explorer.core.config as config_module  # type: ignore[import]
from ptg_explorer.core.graph import GRAPH_FILE_NAME, GraphLoadError
from ptg_explorer.core.report import SnapshotRecord
from ptg_explorer.runner import RunOutcome, resolve_graph


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch):
    monkeypatch.setattr(config_module, "load_dotenv", lambda *_args, **_kwargs: False)
    for key in ["HEADLESS", "PTG_TARGETS_FILE", "PTG_OUT_DIR", "RUN_TAG"]:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def targets_file(tmp_path):
    path = tmp_path / "targets.json"
    path.write_text(json.dumps({"shop": {"baseUrl": "http://localhost:3000"}}), encoding="utf-8")
    return path


def _never_run(config):
    raise AssertionError("the browser must not start")


def test_unknown_target_exits_before_browser(monkeypatch, capsys, targets_file):
    monkeypatch.setattr(cli, "run_exploration", _never_run)

    code = cli.run_cli(["bank", "ptg", "--targets", str(targets_file)])

    assert code == 1
    assert "Unknown target: bank" in capsys.readouterr().err


def test_invalid_interval_exits_before_browser(monkeypatch, capsys, targets_file):
    monkeypatch.setattr(cli, "run_exploration", _never_run)

    code = cli.run_cli(["shop", "ptg", "60", "90", "--targets", str(targets_file)])

    assert code == 1
    assert "interval" in capsys.readouterr().err


def test_missing_graph_is_reported(monkeypatch, capsys, tmp_path, targets_file):
    monkeypatch.setattr(cli, "verify_dependencies", lambda: {"npx": True, "nyc": True})
    monkeypatch.setattr(cli, "check_target_reachable", lambda url: 200)

    code = cli.run_cli(["shop", "random", "--targets", str(targets_file), "--out", str(tmp_path / "out")])

    assert code == 1
    assert "Output directory not found" in capsys.readouterr().err


def test_successful_run_prints_summary(monkeypatch, capsys, tmp_path, targets_file):
    seen = {}

    def fake_run(config):
        seen["config"] = config
        record = SnapshotRecord(
            snapshot_number=1,
            action_number=12,
            pages_visited=3,
            duration=30.0,
            page_coverage=0.75,
            statement_coverage=0.4,
            is_final=True,
        )
        return RunOutcome(runs_root=config.runs_root, records=[record])

    monkeypatch.setattr(cli, "verify_dependencies", lambda: {"npx": True, "nyc": False})
    monkeypatch.setattr(cli, "check_target_reachable", lambda url: None)
    monkeypatch.setattr(cli, "run_exploration", fake_run)

    code = cli.run_cli(["shop", "ptg", "30", "10", "--targets", str(targets_file), "--headless"])

    out = capsys.readouterr().out
    assert code == 0
    assert seen["config"].headless is True
    assert seen["config"].interval == 10
    assert "Snapshots expected: 3" in out
    assert "nyc not found" in out
    assert "Page coverage: 75.00%" in out
    assert "Statement coverage: 40.00%" in out


def test_resolve_graph_prefers_explicit_path(monkeypatch, tmp_path, targets_file):
    graph_path = tmp_path / "custom" / GRAPH_FILE_NAME
    graph_path.parent.mkdir()
    graph_path.write_text(json.dumps({"nodes": [{"name": "/"}], "edges": []}), encoding="utf-8")

    config = config_module.load_configuration(
        "shop", "ptg", targets_path=str(targets_file), graph_path=str(graph_path), out_dir=str(tmp_path)
    )

    assert resolve_graph(config).total_pages == 1


def test_resolve_graph_uses_latest_run(tmp_path, targets_file):
    latest = tmp_path / "shop" / "20240102-000000" / GRAPH_FILE_NAME
    latest.parent.mkdir(parents=True)
    latest.write_text(json.dumps({"nodes": [{"name": "/"}, {"name": "/cart"}]}), encoding="utf-8")

    config = config_module.load_configuration("shop", "ptg", targets_path=str(targets_file), out_dir=str(tmp_path))

    assert resolve_graph(config).total_pages == 2

    config = config_module.load_configuration(
        "shop", "ptg", targets_path=str(targets_file), out_dir=str(tmp_path / "elsewhere")
    )
    with pytest.raises(GraphLoadError):
        resolve_graph(config)


def test_plan_announces_single_run(capsys, targets_file):
    config = config_module.load_configuration("shop", "random", targets_path=str(targets_file))

    cli.print_plan(config)

    out = capsys.readouterr().out
    assert "Single run: one final snapshot" in out
    assert "Snapshots expected" not in out
