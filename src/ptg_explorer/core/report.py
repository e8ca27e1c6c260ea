"""Snapshot records and their JSON persistence."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def snapshot_id(number: int) -> str:
    return f"snapshot_{number:03d}"


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False, default=str), encoding="utf-8")


@dataclass(frozen=True)
class SnapshotRecord:
    """Cumulative progress captured at one instant; never mutated afterwards."""

    snapshot_number: int
    action_number: int
    pages_visited: int
    duration: float
    page_coverage: float
    statement_coverage: float = 0.0
    coverage_artifact: Optional[Any] = field(default=None, compare=False, repr=False)
    time_budget: float = 0.0
    interval: float = 0.0
    is_final: bool = False
    timestamp: str = ""
    target: str = ""
    mode: str = ""
    run_id: str = ""
    coverage_summary: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)

    @property
    def snapshot_id(self) -> str:
        return snapshot_id(self.snapshot_number)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "project": self.target,
            "mode": self.mode,
            "runId": self.run_id,
            "snapshotId": self.snapshot_id,
            "snapshotNumber": self.snapshot_number,
            "timestamp": self.timestamp,
            "timeBudget": self.time_budget,
            "elapsed": self.duration,
            "saveInterval": self.interval,
            "isFinal": self.is_final,
            "actionNumber": self.action_number,
            "pagesVisited": self.pages_visited,
            "duration": self.duration,
            "coverageData": self.coverage_artifact,
            "pageCoverage": self.page_coverage,
            "statementCoverage": self.statement_coverage,
        }
        if self.coverage_summary is not None:
            data["nycSummary"] = self.coverage_summary
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False, default=str)


class JsonSnapshotWriter:
    """Writes each snapshot (and its raw coverage artifact) under the run directory."""

    def __init__(self, runs_root: Path, mode: str, raw_coverage_dir: Optional[Path] = None) -> None:
        self.runs_root = runs_root
        self.mode = mode
        self.raw_coverage_dir = raw_coverage_dir

    def stage_coverage(self, number: int, artifact: Any, *, target: str = "", run_id: str = "") -> Optional[Path]:
        """Persist the raw artifact; returns the directory the report tool should read."""

        if not artifact:
            return None

        sid = snapshot_id(number)
        _write_json(self.runs_root / f"{self.mode}_coverage_{sid}.json", artifact)

        if self.raw_coverage_dir is None:
            return None
        raw_name = "-".join(part for part in ("coverage", target, self.mode, run_id, sid) if part)
        _write_json(self.raw_coverage_dir / f"{raw_name}.json", artifact)
        return self.raw_coverage_dir

    def write(self, record: SnapshotRecord) -> Path:
        path = self.runs_root / f"{self.mode}_results_{record.snapshot_id}.json"
        _write_json(path, record.to_dict())
        logger.info(
            "Actions: %d, Pages: %d, SC: %.2f%% -> %s",
            record.action_number,
            record.pages_visited,
            record.statement_coverage * 100,
            path,
        )
        return path
