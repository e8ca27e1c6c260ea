"""Periodic snapshots taken alongside a running explorer."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional

from ..browser.deadline import Deadline
from ..core.config import CoverageSettings
from ..core.report import JsonSnapshotWriter, SnapshotRecord, snapshot_id
from ..coverage.collector import read_coverage_artifact
from ..coverage.reporter import CoverageReport, CoverageReportError, statement_coverage
from ..explorer.base import ExplorationResult, Explorer

logger = logging.getLogger(__name__)

POLL_SECONDS = 1.0
DEFAULT_GRACE_SECONDS = 4.0

ReportFunction = Callable[..., CoverageReport]


@dataclass(frozen=True)
class SnapshotPlan:
    """When snapshots are due: every ``interval`` seconds of a ``duration`` run."""

    duration: float
    interval: float

    @property
    def is_single_run(self) -> bool:
        return self.interval >= self.duration

    @property
    def expected_snapshots(self) -> int:
        return int(self.duration // self.interval) if self.interval > 0 else 1


class SnapshotCoordinator:
    """Reads the explorer's counters on a fixed cadence and emits snapshot records.

    The coordinator never writes to the exploration state. Its only browser
    traffic is the read-only evaluation that fetches the coverage artifact.
    """

    def __init__(
        self,
        explorer: Explorer,
        plan: SnapshotPlan,
        *,
        writer: Optional[JsonSnapshotWriter] = None,
        coverage: Optional[CoverageSettings] = None,
        target: str = "",
        run_id: str = "",
        report: ReportFunction = statement_coverage,
        clock: Callable[[], float] = time.monotonic,
        poll_seconds: float = POLL_SECONDS,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
    ) -> None:
        self.explorer = explorer
        self.plan = plan
        self.writer = writer
        self.coverage = coverage
        self.target = target
        self.run_id = run_id
        self._report = report
        self._clock = clock
        self.poll_seconds = poll_seconds
        self.grace_seconds = grace_seconds
        self.records: List[SnapshotRecord] = []
        self.result: Optional[ExplorationResult] = None
        self._started_at: Optional[float] = None

    # ------------------------------------------------------------------
    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    async def capture(self, *, time_budget: float, is_final: bool = False) -> SnapshotRecord:
        number = len(self.records) + 1
        elapsed = self.elapsed()
        label = "FINAL SNAPSHOT" if is_final else "SNAPSHOT"
        logger.info("[%s %d] Saving results at %.1fs", label, number, elapsed)

        # Counters first, so the record reflects the instant the snapshot was due.
        state = self.explorer.state
        action_number = state.action_count
        pages_visited = len(state.cumulative_visited)
        page_coverage = state.page_coverage(self.explorer.graph.total_pages)

        artifact = await read_coverage_artifact(self.explorer.driver)
        try:
            report = await self._statement_coverage(number, artifact)
        except (CoverageReportError, OSError) as exc:
            logger.warning("[%s %d] Statement coverage unavailable: %s", label, number, exc)
            report = CoverageReport(statement_coverage=0.0)

        record = SnapshotRecord(
            snapshot_number=number,
            action_number=action_number,
            pages_visited=pages_visited,
            duration=elapsed,
            page_coverage=page_coverage,
            statement_coverage=report.statement_coverage,
            coverage_artifact=artifact,
            time_budget=time_budget,
            interval=self.plan.interval,
            is_final=is_final,
            timestamp=datetime.now().isoformat(),
            target=self.target,
            mode=self.explorer.mode,
            run_id=self.run_id,
            coverage_summary=report.summary,
        )
        self.records.append(record)
        if self.writer is not None:
            try:
                self.writer.write(record)
            except OSError as exc:
                logger.error("[%s %d] Could not write snapshot: %s", label, number, exc)
        return record

    async def _statement_coverage(self, number: int, artifact: Any) -> CoverageReport:
        if not artifact or self.writer is None or self.coverage is None:
            return CoverageReport(statement_coverage=0.0)

        temp_dir = self.writer.stage_coverage(number, artifact, target=self.target, run_id=self.run_id)
        if temp_dir is None:
            return CoverageReport(statement_coverage=0.0)

        report_dir = self.coverage.report_root / f"{self.run_id}_{snapshot_id(number)}"
        return await asyncio.to_thread(self._report, temp_dir, self.coverage.cwd, report_dir)

    async def capture_final(self) -> SnapshotRecord:
        """The closing snapshot; produced even when capturing it fails."""

        try:
            return await self.capture(time_budget=self.plan.duration, is_final=True)
        except Exception:
            logger.exception("Final snapshot failed; recording counters only")

        state = self.explorer.state
        record = SnapshotRecord(
            snapshot_number=len(self.records) + 1,
            action_number=state.action_count,
            pages_visited=len(state.cumulative_visited),
            duration=self.elapsed(),
            page_coverage=state.page_coverage(self.explorer.graph.total_pages),
            time_budget=self.plan.duration,
            interval=self.plan.interval,
            is_final=True,
            timestamp=datetime.now().isoformat(),
            target=self.target,
            mode=self.explorer.mode,
            run_id=self.run_id,
        )
        self.records.append(record)
        return record

    # ------------------------------------------------------------------
    async def tick(self, deadline: Deadline) -> None:
        """Capture a snapshot each time ``interval`` seconds have passed, until the deadline."""

        last_save = self._clock()
        while not deadline.expired:
            now = self._clock()
            if now - last_save >= self.plan.interval:
                try:
                    await self.capture(time_budget=(len(self.records) + 1) * self.plan.interval)
                except Exception:
                    logger.exception("Snapshot at %.1fs failed", self.elapsed())
                last_save = now
            await asyncio.sleep(min(self.poll_seconds, max(deadline.remaining_ms() / 1000, 0.0)))

    async def run(self, exploration: Awaitable[ExplorationResult], deadline: Deadline) -> List[SnapshotRecord]:
        """Race the exploration against the snapshot loop, then take the final snapshot."""

        self._started_at = self._clock()
        explorer_task = asyncio.ensure_future(exploration)
        ticker_task = asyncio.ensure_future(self.tick(deadline))

        await asyncio.wait({explorer_task, ticker_task}, return_when=asyncio.FIRST_COMPLETED)

        if not ticker_task.done():
            ticker_task.cancel()
        if not explorer_task.done():
            # The explorer keeps the rest of its budget even if the snapshot loop ended early.
            await asyncio.wait({explorer_task}, timeout=deadline.remaining_ms() / 1000 + self.grace_seconds)
        if not explorer_task.done():
            logger.warning("Exploration still busy %.1fs past the deadline; cancelling", self.grace_seconds)
            explorer_task.cancel()

        for task, name in ((ticker_task, "snapshot loop"), (explorer_task, "exploration")):
            try:
                outcome = await task
            except asyncio.CancelledError:
                continue
            except Exception:
                logger.exception("The %s stopped with an error", name)
                continue
            if task is explorer_task:
                self.result = outcome

        await self.capture_final()
        return self.records
