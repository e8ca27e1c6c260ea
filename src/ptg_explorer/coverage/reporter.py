"""Statement coverage through the external ``nyc`` report tool."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

logger = logging.getLogger(__name__)

SUMMARY_FILE = "coverage-summary.json"
DEFAULT_TIMEOUT = 120


class CoverageReportError(RuntimeError):
    """Raised when the report tool does not produce a usable summary."""


@dataclass(frozen=True)
class CoverageReport:
    statement_coverage: float
    summary: Optional[Dict[str, Any]] = None


def _execute_nyc(command: Sequence[str], *, cwd: Path, timeout: int) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        list(command),
        cwd=str(cwd),
        capture_output=True,
        text=True,
        timeout=timeout,
        check=False,
    )


def build_report_command(executable: str, temp_dir: Path, cwd: Path, report_dir: Path) -> list[str]:
    return [
        executable,
        "nyc",
        "report",
        "--temp-dir",
        str(temp_dir),
        "--cwd",
        str(cwd),
        "--report-dir",
        str(report_dir),
        "--exclude-after-remap=false",
        "--reporter=text-summary",
        "--reporter=html",
        "--reporter=json-summary",
    ]


def read_statement_pct(summary: Dict[str, Any]) -> float:
    pct = ((summary.get("total") or {}).get("statements") or {}).get("pct")
    if isinstance(pct, (int, float)):
        return pct / 100
    return 0.0


def generate_report(temp_dir: Path, cwd: Path, report_dir: Path, *, timeout: int = DEFAULT_TIMEOUT) -> Dict[str, Any]:
    executable = shutil.which("npx")
    if not executable:
        raise CoverageReportError("npx not found on PATH.")

    try:
        report_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise CoverageReportError(f"cannot create report directory {report_dir}: {exc}") from exc

    command = build_report_command(executable, temp_dir, cwd, report_dir)
    logger.info("[nyc] Generating report in %s", report_dir)

    try:
        completed = _execute_nyc(command, cwd=cwd, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        raise CoverageReportError(f"nyc report timed out after {timeout}s") from exc
    except OSError as exc:
        raise CoverageReportError(f"nyc could not be executed: {exc}") from exc

    if completed.returncode != 0:
        raise CoverageReportError((completed.stderr or completed.stdout or "").strip()[:2000])

    summary_path = report_dir / SUMMARY_FILE
    try:
        return json.loads(summary_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise CoverageReportError(f"nyc summary not found: {summary_path}") from exc
    except json.JSONDecodeError as exc:
        raise CoverageReportError(f"nyc summary is not valid JSON: {summary_path}") from exc
    except OSError as exc:
        raise CoverageReportError(f"nyc summary could not be read: {exc}") from exc


def statement_coverage(temp_dir: Optional[Path], cwd: Optional[Path], report_dir: Optional[Path]) -> CoverageReport:
    """Statement coverage in ``[0, 1]``; 0 whenever the tool produces nothing."""

    if temp_dir is None or cwd is None or report_dir is None:
        return CoverageReport(statement_coverage=0.0)

    try:
        summary = generate_report(temp_dir, cwd, report_dir)
    except CoverageReportError as exc:
        logger.warning("[nyc] Skipping coverage report: %s", exc)
        return CoverageReport(statement_coverage=0.0)

    return CoverageReport(statement_coverage=read_statement_pct(summary), summary=summary)
