"""In-memory stand-ins for the browser used by the explorer tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ptg_explorer.core.config import TargetConfig  # type: ignore[import]
from ptg_explorer.core.graph import PageTransitionGraph  # type: ignore[import]
from ptg_explorer.explorer.base import DISABLED_SCRIPT, PROBE_SELECTOR  # type: ignore[import]
from ptg_explorer.explorer.reveal import (  # type: ignore[import]
    SUBMENU_ANCESTOR,
    SUBMENU_KEY_SCRIPT,
    SUBMENU_OPENED_SCRIPT,
)
from ptg_explorer.routing.normalizer import build_url, normalize_route_key  # type: ignore[import]

BASE_URL = "http://app.test"
SUBMENU = ".el-submenu"


class FakeClock:
    """Monotonic clock that only moves when the fake browser does something."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass(eq=False)
class FakeElement:
    selector: str
    text: str = ""
    target: Optional[str] = None
    html: Optional[str] = None
    visible: bool = True
    disabled: bool = False
    probe: bool = True
    trial_ok: bool = True
    parent: Optional["FakeElement"] = None
    reveals: List["FakeElement"] = field(default_factory=list)
    opened: bool = False
    key: Optional[str] = None

    def ancestors(self) -> List["FakeElement"]:
        chain = []
        node = self.parent
        while node is not None:
            chain.append(node)
            node = node.parent
        return chain

    def matches(self, selector: str) -> bool:
        """Comma-separated alternatives; a trailing ``:visible`` also requires visibility."""

        for part in selector.split(","):
            part = part.strip()
            needs_visible = part.endswith(":visible")
            if needs_visible:
                part = part[: -len(":visible")]
            if part == self.selector and (self.visible or not needs_visible):
                return True
        return False

    def markup(self) -> str:
        return self.html or f"<button>{self.text}</button>"


class FakeDriver:
    """A tiny SPA: route key -> elements, with a history stack and a fake clock."""

    OP_SECONDS = 0.01

    def __init__(
        self,
        pages: Dict[str, List[FakeElement]],
        *,
        route_mode: str = "history",
        clock: Optional[FakeClock] = None,
        coverage: Any = None,
        back_enabled: bool = True,
    ) -> None:
        self.back_enabled = back_enabled
        self.pages = pages
        self.route_mode = route_mode
        self.clock = clock or FakeClock()
        self.coverage = coverage
        self.history: List[str] = ["about:blank"]
        self.clicks: List[FakeElement] = []
        self.navigations: List[str] = []
        self.pressed: List[str] = []
        self.deadline = None

    def _tick(self) -> None:
        self.clock.advance(self.OP_SECONDS)

    def _key(self) -> Optional[str]:
        url = self.current_url()
        if url.startswith("about:"):
            return None
        return normalize_route_key(url)

    def url_for(self, key: str) -> str:
        return build_url(BASE_URL, key, self.route_mode)

    def elements(self) -> List[FakeElement]:
        key = self._key()
        return list(self.pages.get(key, [])) if key else []

    def bind(self, deadline) -> None:
        self.deadline = deadline

    def current_url(self) -> str:
        return self.history[-1]

    async def navigate(self, url: str, cap_ms: int) -> bool:
        self._tick()
        self.navigations.append(url)
        self.history.append(url)
        return True

    async def go_back(self, cap_ms: int) -> bool:
        self._tick()
        if self.back_enabled and len(self.history) > 1:
            self.history.pop()
            return True
        return False

    async def locate(self, selector: str) -> List[FakeElement]:
        self._tick()
        if selector == PROBE_SELECTOR:
            return [element for element in self.elements() if element.probe and element.visible]
        return [element for element in self.elements() if element.matches(selector)]

    async def locate_within(self, element: FakeElement, selector: str) -> List[FakeElement]:
        self._tick()
        if selector == SUBMENU_ANCESTOR:
            return [node for node in element.ancestors() if node.selector == SUBMENU]
        return [
            node for node in self.elements() if element in node.ancestors() and node.matches(selector)
        ]

    async def is_visible(self, element: FakeElement, cap_ms: int) -> bool:
        self._tick()
        return element.visible

    async def click(self, element: FakeElement, cap_ms: int, *, trial: bool = False) -> bool:
        self._tick()
        if trial:
            return element.trial_ok
        self.clicks.append(element)
        for hidden in element.reveals:
            hidden.visible = True
        if element.reveals and element.parent is not None:
            element.parent.opened = True
        if element.target is not None:
            self.history.append(self.url_for(element.target))
        return True

    async def scroll_into_view(self, element: FakeElement, cap_ms: int) -> None:
        self._tick()

    async def outer_html(self, element: FakeElement) -> str:
        return element.markup()

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self._tick()
        return self.coverage

    async def evaluate_on(self, element: FakeElement, script: str) -> Any:
        self._tick()
        if script == DISABLED_SCRIPT:
            return element.disabled
        if script == SUBMENU_OPENED_SCRIPT:
            return element.opened
        if script == SUBMENU_KEY_SCRIPT:
            return element.key or element.selector
        return None

    async def press(self, key: str) -> None:
        self._tick()
        self.pressed.append(key)

    async def pause(self, ms: int) -> None:
        self.clock.advance(ms / 1000)


def make_target(**overrides: Any) -> TargetConfig:
    values: Dict[str, Any] = {"name": "demo", "base_url": BASE_URL}
    values.update(overrides)
    return TargetConfig(**values)


def make_graph(nodes: List[str], edges: List[Dict[str, Any]]) -> PageTransitionGraph:
    return PageTransitionGraph.from_mapping({"nodes": [{"name": name} for name in nodes], "edges": edges})


def edge(source: str, target: str, selector: str = "-", **extra: Any) -> Dict[str, Any]:
    return {"from": source, "to": target, "selector": selector, **extra}
