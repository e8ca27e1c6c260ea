"""Behaviour shared by the exploration strategies."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ..browser.deadline import Deadline
from ..browser.guard import is_auth_related
from ..core.config import ExplorerTimings, TargetConfig
from ..core.graph import PageTransitionGraph
from ..coverage.collector import read_coverage_artifact
from ..routing.normalizer import build_url, current_route_key, normalize_route_key
from .reveal import RevealContext
from .state import ExplorationState

logger = logging.getLogger(__name__)

PROBE_SELECTORS = (
    "button:visible",
    "a:visible",
    '[role="button"]:visible',
    'input[type="button"]:visible',
    'input[type="submit"]:visible',
    ".el-button:visible",
    ".el-menu-item:visible",
    ".el-sub-menu__title:visible",
    ".el-submenu__title:visible",
    ".el-dropdown-menu__item:visible",
    ".el-link:visible",
    ".el-pager li:visible",
)
PROBE_SELECTOR = ",".join(PROBE_SELECTORS)

MODAL_CLOSE_SELECTORS = (
    ".el-dialog__close",
    ".el-message-box__close",
    ".el-drawer__close-btn",
    '[aria-label="Close"]',
    "button.close",
    ".modal-close",
    '[class*="close"]:visible',
    'button:has-text("取消")',
    'button:has-text("Cancel")',
    'button:has-text("关闭")',
    'button:has-text("Close")',
)

DISABLED_SCRIPT = (
    "node => node.getAttribute('aria-disabled') === 'true' || node.getAttribute('disabled') !== null"
)

MAX_RANDOM_TRIES = 10
SCROLL_CAP_MS = 500


@dataclass(frozen=True)
class ExplorationMetrics:
    page_coverage: float
    edges_traversed: int
    total_pages: int
    visited_pages: int
    total_edges: int


@dataclass(frozen=True)
class ExplorationResult:
    mode: str
    duration: float
    action_number: int
    page_coverage: float
    pages_visited: int
    total_pages: int
    edges_traversed: int
    total_edges: int
    coverage_artifact: Optional[Any] = None


class Explorer:
    """Common contract: ``run(deadline)`` drives the page until the deadline.

    Subclasses implement :meth:`explore`. The explorer is the only writer of
    :attr:`state`; anything else may read it at any time.
    """

    mode = "explorer"

    def __init__(
        self,
        driver: Any,
        graph: PageTransitionGraph,
        config: TargetConfig,
        *,
        timings: Optional[ExplorerTimings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.driver = driver
        self.graph = graph
        self.config = config
        self.timings = timings or ExplorerTimings()
        self.rng = rng or random.Random()
        self.state = ExplorationState()
        self.reveal_context = RevealContext(driver=driver, state=self.state, timings=self.timings)
        self.coverage_artifact: Optional[Any] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def run(self, deadline: Deadline) -> ExplorationResult:
        logger.info(
            "[%s] Starting exploration with %ds budget", self.mode, deadline.remaining_ms() // 1000
        )
        started = time.monotonic()
        self.driver.bind(deadline)

        await self.explore(deadline)

        self.coverage_artifact = await read_coverage_artifact(self.driver)
        duration = time.monotonic() - started
        metrics = self.metrics()

        logger.info("[%s] Completed in %.3fs", self.mode, duration)
        logger.info("[%s] Action Number (AN): %d", self.mode, self.state.action_count)
        logger.info("[%s] Page Coverage (PC): %.2f%%", self.mode, metrics.page_coverage * 100)

        return ExplorationResult(
            mode=self.mode,
            duration=duration,
            action_number=self.state.action_count,
            page_coverage=metrics.page_coverage,
            pages_visited=metrics.visited_pages,
            total_pages=metrics.total_pages,
            edges_traversed=metrics.edges_traversed,
            total_edges=metrics.total_edges,
            coverage_artifact=self.coverage_artifact,
        )

    async def explore(self, deadline: Deadline) -> None:
        raise NotImplementedError

    def metrics(self) -> ExplorationMetrics:
        visited = self.state.cumulative_visited
        return ExplorationMetrics(
            page_coverage=self.state.page_coverage(self.graph.total_pages),
            edges_traversed=self.graph.edges_traversed(visited, self.normalize),
            total_pages=self.graph.total_pages,
            visited_pages=len(visited),
            total_edges=self.graph.total_edges,
        )

    # ------------------------------------------------------------------
    # Route helpers
    # ------------------------------------------------------------------
    def normalize(self, raw: Optional[str]) -> str:
        return normalize_route_key(raw, self.config)

    def current_key(self) -> str:
        return current_route_key(self.driver.current_url(), self.config)

    async def goto(self, route: str) -> bool:
        """Navigate straight to ``route``; True when the browser ends up there."""

        key = self.normalize(route)
        url = build_url(self.config.base_url, key, self.config.route_mode, self.config)
        logger.debug("[router] goto %s", url)
        if not await self.driver.navigate(url, self.timings.navigation_cap):
            logger.debug("[router] goto failed: %s", url)
        await self.driver.pause(self.timings.after_goto)
        return self.current_key() == key

    # ------------------------------------------------------------------
    # Clicking
    # ------------------------------------------------------------------
    async def is_disabled(self, element: Any) -> bool:
        return bool(await self.driver.evaluate_on(element, DISABLED_SCRIPT))

    async def click_random(self, candidates: Sequence[Any], cap_ms: int, *, trial_first: bool = False) -> bool:
        """Pick up to ``MAX_RANDOM_TRIES`` random candidates until one click lands."""

        if not candidates:
            return False

        for _ in range(min(MAX_RANDOM_TRIES, len(candidates))):
            element = candidates[self.rng.randrange(len(candidates))]
            if await self.is_disabled(element):
                continue
            if await is_auth_related(self.driver, element):
                logger.debug("[%s] skip logout/login element", self.mode)
                continue

            await self.driver.scroll_into_view(element, SCROLL_CAP_MS)
            if trial_first and not await self.driver.click(element, cap_ms, trial=True):
                continue
            if await self.driver.click(element, cap_ms):
                return True
        return False

    async def close_open_modals(self) -> bool:
        for selector in MODAL_CLOSE_SELECTORS:
            found = await self.driver.locate(selector)
            if not found:
                continue
            button = found[0]
            if not await self.driver.is_visible(button, 500):
                continue
            await self.driver.click(button, 1000)
            logger.debug("[modal] closed modal using selector: %s", selector)
            await self.driver.pause(300)
            return True

        await self.driver.press("Escape")
        return False
