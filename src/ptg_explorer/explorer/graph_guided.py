"""Graph-guided exploration: walk the Page-Transition Graph round after round."""

from __future__ import annotations

import enum
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, List, Optional

from ..browser.deadline import Deadline
from ..browser.guard import is_auth_related
from ..core.graph import TransitionEdge
from ..routing.normalizer import BLANK_ROUTE_KEY
from .base import PROBE_SELECTOR, Explorer
from .reveal import RevealChain, ensure_menus_expanded, expand_all_submenus

logger = logging.getLogger(__name__)

PROBE_CLICKS_PER_PAGE = 10
ROOT_KEY = "/"


class Phase(enum.Enum):
    ENTER = "enter"
    EDGES = "edges"
    PROBES = "probes"
    LEAVE = "leave"
    DONE = "done"


@dataclass
class PageVisit:
    """One frame of the explicit traversal stack."""

    key: str
    phase: Phase = Phase.ENTER
    pending_edges: Deque[TransitionEdge] = field(default_factory=deque)
    probes_left: int = PROBE_CLICKS_PER_PAGE
    successful_probes: int = 0
    on_child_done: Optional[Callable[[], Awaitable[None]]] = None


class GraphGuidedExplorer(Explorer):
    mode = "ptg"

    def __init__(self, *args: Any, reveal_chain: Optional[RevealChain] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.reveal_chain = reveal_chain or RevealChain()
        self.start_page: Optional[str] = None

    # ------------------------------------------------------------------
    # Start page and rounds
    # ------------------------------------------------------------------
    def find_start_page(self) -> str:
        degrees = self.graph.out_degrees(self.normalize)

        if self.config.start_page:
            configured = self.normalize(self.config.start_page)
            if degrees.get(configured, 0) > 0:
                return configured
            logger.info("[ptg] startPage %s has 0 outgoing edges, falling back to graph best start", configured)

        best: Optional[str] = None
        best_degree = -1
        for key, degree in degrees.items():
            if degree > best_degree:
                best, best_degree = key, degree
        if best is not None:
            return best

        if self.graph.nodes:
            return self.normalize(self.graph.nodes[0].name)
        return ROOT_KEY

    async def explore(self, deadline: Deadline) -> None:
        self.start_page = self.find_start_page()
        await self.goto(self.start_page)
        await self.driver.pause(self.timings.after_navigation)

        while not deadline.expired:
            logger.info("[ptg] ===== New round (remaining %dms) =====", deadline.remaining_ms())
            self.state.start_round()
            await ensure_menus_expanded(self.reveal_context)
            await self.goto(self.start_page)
            await self.visit_page(self.start_page, deadline)

            if not self.state.all_pages_visited and self.state.pages_visited >= self.graph.total_pages:
                self.state.all_pages_visited = True
                logger.info("[ptg] All %d pages visited", self.graph.total_pages)

            await self.driver.pause(self.timings.before_next_action)

    # ------------------------------------------------------------------
    # Page visits
    # ------------------------------------------------------------------
    async def visit_page(self, key: str, deadline: Deadline) -> None:
        """Depth-first visit starting at ``key``, driven by an explicit frame stack."""

        stack: List[PageVisit] = [PageVisit(key=self.normalize(key))]
        while stack:
            if deadline.expired:
                logger.info("[ptg] Time budget exhausted with %d pending page visits", len(stack))
                return

            frame = stack[-1]
            child = await self._advance(frame, deadline)

            if frame.phase is Phase.DONE:
                stack.pop()
                if stack and stack[-1].on_child_done is not None:
                    resume, stack[-1].on_child_done = stack[-1].on_child_done, None
                    await resume()
            elif child is not None:
                stack.append(PageVisit(key=child))

    async def _advance(self, frame: PageVisit, deadline: Deadline) -> Optional[str]:
        if frame.phase is Phase.ENTER:
            await self._enter(frame)
            return None

        if frame.phase is Phase.EDGES:
            if not frame.pending_edges:
                frame.phase = Phase.PROBES
                return None
            return await self.traverse_edge(frame.pending_edges.popleft(), frame, deadline)

        if frame.phase is Phase.PROBES:
            if frame.probes_left <= 0:
                frame.phase = Phase.LEAVE
                return None
            frame.probes_left -= 1
            return await self._probe_click(frame, deadline)

        if frame.phase is Phase.LEAVE:
            if frame.key != ROOT_KEY:
                await self._back_or_goto(self.start_page or ROOT_KEY)
            frame.phase = Phase.DONE
        return None

    async def _enter(self, frame: PageVisit) -> None:
        key = frame.key
        logger.info("[ptg] Visiting page: %s", key)

        if key in self.state.round_visited:
            logger.debug("[ptg] Page already visited this round: %s", key)
            await self._back_or_goto(key)
            frame.phase = Phase.DONE
            return

        self.state.mark_visited(key)
        await ensure_menus_expanded(self.reveal_context)

        if self.state.pages_visited < self.graph.total_pages:
            edges = self.graph.edges_from(key, self.normalize)
            pending = [edge for edge in edges if self.normalize(edge.target) not in self.state.round_visited]
            if len(pending) < len(edges):
                logger.debug("[ptg] Skipping %d edges to already visited pages", len(edges) - len(pending))
            logger.info("[ptg] Found %d edges from %s", len(edges), key)
            frame.pending_edges = deque(pending)
        else:
            logger.debug("[ptg] All pages visited - skipping edge traversal")

        frame.phase = Phase.EDGES

    async def _back_or_goto(self, fallback: str) -> None:
        """Go back one history entry; navigate to ``fallback`` if that changed nothing."""

        await self.driver.pause(self.timings.before_next_action)
        before = self.current_key()
        await self.driver.go_back(self.timings.back_cap)
        await self.driver.pause(self.timings.before_next_action)
        after = self.current_key()

        if after == before or after == BLANK_ROUTE_KEY:
            await self.goto(fallback)
            await self.driver.pause(self.timings.before_next_action)

    # ------------------------------------------------------------------
    # Edge traversal
    # ------------------------------------------------------------------
    async def traverse_edge(self, edge: TransitionEdge, frame: PageVisit, deadline: Deadline) -> Optional[str]:
        """Realize one graph edge; returns the route key to visit next, if any."""

        if deadline.expired:
            return None

        logger.info("[ptg] Traversing edge: %s -> %s (selector=%r)", edge.source, edge.target, edge.selector)

        if not edge.has_element:
            return await self._follow_router_edge(edge, frame)

        cap = self.timings.edge_action_cap
        if deadline.timeout(cap) <= 0:
            return None

        element = await self._reveal_element(edge.selector)
        if element is None:
            return None

        if await is_auth_related(self.driver, element):
            logger.info("[ptg] skip: element is logout/login related")
            return None

        if not await self.driver.click(element, cap):
            logger.debug("[ptg] skip: click failed for %r", edge.selector)
            return None

        self.state.record_action()
        await self.driver.pause(self.timings.after_click)

        observed = self.current_key()
        expected = self.normalize(edge.target)
        logger.debug("[ptg] observed=%s expected=%s", observed, expected)

        if observed == expected and expected not in self.state.round_visited:
            return expected
        if (
            observed not in (frame.key, expected, BLANK_ROUTE_KEY)
            and observed not in self.state.round_visited
        ):
            return observed

        logger.debug("[ptg] no navigation / already visited / path not matched")
        return None

    async def _follow_router_edge(self, edge: TransitionEdge, frame: PageVisit) -> Optional[str]:
        if not edge.is_router_redirect:
            logger.debug("[ptg] skip: no element and not a router redirect (%s -> %s)", edge.source, edge.target)
            return None

        logger.info("[ptg] treat as router redirect: %s -> %s", edge.source, edge.target)
        if not await self.goto(edge.target):
            return None

        self.state.record_action()
        target = self.normalize(edge.target)
        if target in self.state.round_visited:
            return None

        async def expand_after_visit() -> None:
            await expand_all_submenus(self.reveal_context)

        frame.on_child_done = expand_after_visit
        return target

    async def _reveal_element(self, selector: str) -> Optional[Any]:
        """First element for ``selector``, made visible if reveal heuristics allow."""

        found = await self.driver.locate(selector)
        if not found and await self.reveal_chain.reveal(self.reveal_context, selector):
            found = await self.driver.locate(selector)
        if not found:
            logger.info("[ptg] skip: element not found for selector %r", selector)
            return None

        element = found[0]
        if await self.driver.is_visible(element, self.timings.edge_action_cap):
            return element

        if await self.reveal_chain.reveal(self.reveal_context, selector):
            if await self.driver.is_visible(element, self.timings.reveal_cap):
                return element

        logger.info("[ptg] skip: element exists but not visible (%r)", selector)
        return None

    # ------------------------------------------------------------------
    # Probing clicks
    # ------------------------------------------------------------------
    async def _probe_click(self, frame: PageVisit, deadline: Deadline) -> Optional[str]:
        cap = deadline.timeout(self.timings.probe_cap)
        if cap <= 0:
            frame.probes_left = 0
            return None

        before = self.current_key()
        candidates = await self.driver.locate(PROBE_SELECTOR)
        if not candidates:
            logger.debug("[ptg] No clickable elements found on %s", frame.key)
            frame.probes_left = 0
            return None

        if not await self.click_random(candidates, cap):
            await self.close_open_modals()
            return None

        frame.successful_probes += 1
        count = self.state.record_action()
        logger.debug(
            "[ptg] Probe click %d/%d on %s, total actions: %d",
            frame.successful_probes,
            PROBE_CLICKS_PER_PAGE,
            frame.key,
            count,
        )
        await self.driver.pause(self.timings.after_click)

        if frame.successful_probes % 3 == 0:
            await self.close_open_modals()

        after = self.current_key()
        if after == before or after == BLANK_ROUTE_KEY or after in self.state.round_visited:
            return None

        logger.info("[ptg] Probe click navigated to new page: %s", after)

        async def return_to_origin() -> None:
            if self.current_key() != before:
                await self.goto(before)
                await self.driver.pause(self.timings.after_navigation)

        frame.on_child_done = return_to_origin
        return after
