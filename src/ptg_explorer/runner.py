"""Browser lifecycle for one exploration run."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from .auth.bootstrap import AuthBootstrap
from .browser.deadline import Deadline
from .browser.driver import DialogChannel, PlaywrightDriver, accept_dialog
from .core.config import RunConfig
from .core.graph import PageTransitionGraph, find_latest_graph, load_graph
from .core.report import JsonSnapshotWriter, SnapshotRecord
from .explorer import EXPLORERS
from .explorer.base import ExplorationResult
from .routing.normalizer import build_url, normalize_route_key
from .snapshots.coordinator import SnapshotCoordinator, SnapshotPlan

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 1500
DEFAULT_NAVIGATION_TIMEOUT_MS = 5000
SETTLE_SECONDS = 1.5


@dataclass
class RunOutcome:
    runs_root: Path
    records: List[SnapshotRecord] = field(default_factory=list)
    result: Optional[ExplorationResult] = None

    @property
    def final(self) -> Optional[SnapshotRecord]:
        return self.records[-1] if self.records else None


def resolve_graph(config: RunConfig) -> PageTransitionGraph:
    """Load the graph for a run; raises ``GraphLoadError`` before any browser opens."""

    path = config.graph_path or find_latest_graph(config.out_root, config.target.name)
    return load_graph(path)


async def run_session(config: RunConfig, graph: PageTransitionGraph) -> RunOutcome:
    target = config.target

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=config.headless)
        try:
            context = await browser.new_context()
            page = await context.new_page()
            page.set_default_timeout(DEFAULT_TIMEOUT_MS)
            page.set_default_navigation_timeout(DEFAULT_NAVIGATION_TIMEOUT_MS)

            auth = await AuthBootstrap(target).apply(context, page)
            if target.auth.kind != "none" and not auth.applied:
                logger.warning("Session bootstrap (%s) did not apply: %s", auth.kind, auth.detail)

            dialogs = DialogChannel()
            dialogs.register(accept_dialog)
            dialogs.attach(page)

            driver = PlaywrightDriver(page)
            start_key = normalize_route_key(target.start_page or "/", target)
            await driver.navigate(build_url(target.base_url, start_key, target.route_mode, target), DEFAULT_NAVIGATION_TIMEOUT_MS)
            await asyncio.sleep(SETTLE_SECONDS)

            explorer = EXPLORERS[config.mode](driver, graph, target, timings=config.timings)
            writer = JsonSnapshotWriter(
                config.runs_root,
                config.mode,
                raw_coverage_dir=Path.cwd() / ".nyc_output" / config.run_id,
            )
            coordinator = SnapshotCoordinator(
                explorer,
                SnapshotPlan(duration=config.duration, interval=config.interval),
                writer=writer,
                coverage=target.coverage,
                target=target.name,
                run_id=config.run_id,
            )

            deadline = Deadline.after(config.duration)
            records = await coordinator.run(explorer.run(deadline), deadline)
            return RunOutcome(runs_root=config.runs_root, records=records, result=coordinator.result)
        finally:
            try:
                await browser.close()
            except PlaywrightError:
                logger.debug("Browser already closed")


def run_exploration(config: RunConfig) -> RunOutcome:
    graph = resolve_graph(config)
    logger.info("[graph] nodes=%d edges=%d", graph.total_pages, graph.total_edges)
    return asyncio.run(run_session(config, graph))
