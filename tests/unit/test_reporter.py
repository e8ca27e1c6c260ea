import json
from types import SimpleNamespace

import ptg_explorer.coverage.reporter as reporter  # type: ignore[import]


def _fake_nyc(summary=None, returncode=0, stderr=""):
    calls = []

    def run(command, *, cwd, timeout):
        calls.append(command)
        if summary is not None:
            report_dir = command[command.index("--report-dir") + 1]
            with open(f"{report_dir}/{reporter.SUMMARY_FILE}", "w", encoding="utf-8") as handle:
                json.dump(summary, handle)
        return SimpleNamespace(returncode=returncode, stdout="", stderr=stderr)

    return run, calls


def test_statement_coverage_reads_nyc_summary(monkeypatch, tmp_path):
    run, calls = _fake_nyc({"total": {"statements": {"pct": 87.5}}})
    monkeypatch.setattr(reporter.shutil, "which", lambda _: "/usr/bin/npx")
    monkeypatch.setattr(reporter, "_execute_nyc", run)

    report = reporter.statement_coverage(tmp_path / "raw", tmp_path / "app", tmp_path / "report")

    assert report.statement_coverage == 0.875
    assert report.summary == {"total": {"statements": {"pct": 87.5}}}
    command = calls[0]
    assert command[:3] == ["/usr/bin/npx", "nyc", "report"]
    assert "--reporter=json-summary" in command
    assert "--reporter=html" in command
    assert command[command.index("--temp-dir") + 1] == str(tmp_path / "raw")


def test_statement_coverage_is_zero_without_npx(monkeypatch, tmp_path):
    monkeypatch.setattr(reporter.shutil, "which", lambda _: None)

    report = reporter.statement_coverage(tmp_path, tmp_path, tmp_path / "report")

    assert report.statement_coverage == 0.0
    assert report.summary is None


def test_statement_coverage_is_zero_when_nyc_fails(monkeypatch, tmp_path):
    run, _ = _fake_nyc(returncode=1, stderr="no coverage files")
    monkeypatch.setattr(reporter.shutil, "which", lambda _: "/usr/bin/npx")
    monkeypatch.setattr(reporter, "_execute_nyc", run)

    assert reporter.statement_coverage(tmp_path, tmp_path, tmp_path / "report").statement_coverage == 0.0


def test_statement_coverage_is_zero_when_summary_missing(monkeypatch, tmp_path):
    run, _ = _fake_nyc()
    monkeypatch.setattr(reporter.shutil, "which", lambda _: "/usr/bin/npx")
    monkeypatch.setattr(reporter, "_execute_nyc", run)

    assert reporter.statement_coverage(tmp_path, tmp_path, tmp_path / "report").statement_coverage == 0.0


def test_statement_coverage_requires_all_locations():
    assert reporter.statement_coverage(None, None, None).statement_coverage == 0.0


def test_read_statement_pct_tolerates_partial_summaries():
    assert reporter.read_statement_pct({}) == 0.0
    assert reporter.read_statement_pct({"total": {"statements": {"pct": "Unknown"}}}) == 0.0
    assert reporter.read_statement_pct({"total": {"statements": {"pct": 100}}}) == 1.0


def test_statement_coverage_is_zero_when_report_dir_cannot_be_created(monkeypatch, tmp_path):
    blocker = tmp_path / "reports"
    blocker.write_text("not a directory", encoding="utf-8")
    monkeypatch.setattr(reporter.shutil, "which", lambda _: "/usr/bin/npx")

    def never_run(command, *, cwd, timeout):
        raise AssertionError("nyc must not run without a report directory")

    monkeypatch.setattr(reporter, "_execute_nyc", never_run)

    report = reporter.statement_coverage(tmp_path, tmp_path, blocker / "run-1_snapshot_001")

    assert report.statement_coverage == 0.0


def test_statement_coverage_is_zero_when_nyc_cannot_start(monkeypatch, tmp_path):
    def denied(command, *, cwd, timeout):
        raise PermissionError("npx is not executable")

    monkeypatch.setattr(reporter.shutil, "which", lambda _: "/usr/bin/npx")
    monkeypatch.setattr(reporter, "_execute_nyc", denied)

    assert reporter.statement_coverage(tmp_path, tmp_path, tmp_path / "report").statement_coverage == 0.0
