"""Page-Transition Graph loading and queries."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .config import ConfigurationError

logger = logging.getLogger(__name__)

NO_ELEMENT_SELECTOR = "-"
GRAPH_FILE_NAME = "stage3_graph.json"

_TIMESTAMPED_DIR = re.compile(r"^\d{8}[-_]\d{6}")


class GraphLoadError(ConfigurationError):
    """Raised when the graph file is missing, unreadable or empty."""


@dataclass(frozen=True)
class PageNode:
    name: str


@dataclass(frozen=True)
class TransitionEdge:
    """A UI action observed to move from one page to another."""

    source: str
    target: str
    selector: str = NO_ELEMENT_SELECTOR
    event: str = ""
    selector_kind: str = ""
    note: str = ""

    @property
    def has_element(self) -> bool:
        return bool(self.selector) and self.selector != NO_ELEMENT_SELECTOR

    @property
    def is_router_redirect(self) -> bool:
        """Programmatic transition that can be reproduced by navigating directly."""

        if self.has_element:
            return False
        event = self.event.lower()
        note = self.note.lower()
        return (
            "redirect" in event
            or "route" in event
            or self.selector_kind.upper() == "ROUTER"
            or "redirect" in note
            or "route" in note
        )

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "TransitionEdge":
        return cls(
            source=str(raw.get("from") or ""),
            target=str(raw.get("to") or ""),
            selector=raw.get("selector") or NO_ELEMENT_SELECTOR,
            event=raw.get("event") or "",
            selector_kind=raw.get("selectorKind") or "",
            note=raw.get("note") or "",
        )


@dataclass(frozen=True)
class PageTransitionGraph:
    """Nodes are logical pages; edges are ordered UI transitions between them."""

    nodes: Tuple[PageNode, ...] = ()
    edges: Tuple[TransitionEdge, ...] = ()
    source_path: Optional[Path] = field(default=None, compare=False)

    @property
    def total_pages(self) -> int:
        return len(self.nodes)

    @property
    def total_edges(self) -> int:
        return len(self.edges)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Optional[Path] = None) -> "PageTransitionGraph":
        nodes = []
        seen: set[str] = set()
        for entry in raw.get("nodes") or []:
            name = entry.get("name") if isinstance(entry, dict) else None
            if not name or name in seen:
                continue
            seen.add(name)
            nodes.append(PageNode(name=name))

        edges = tuple(
            TransitionEdge.from_mapping(entry) for entry in raw.get("edges") or [] if isinstance(entry, dict)
        )
        return cls(nodes=tuple(nodes), edges=edges, source_path=source_path)

    def out_degrees(self, normalize: Callable[[str], str]) -> Dict[str, int]:
        """Outgoing edge count per route key, in first-seen order."""

        degrees: Dict[str, int] = {}
        for edge in self.edges:
            key = normalize(edge.source)
            degrees[key] = degrees.get(key, 0) + 1
        return degrees

    def edges_from(self, key: str, normalize: Callable[[str], str]) -> List[TransitionEdge]:
        return [edge for edge in self.edges if normalize(edge.source) == key]

    def edges_traversed(self, visited: Iterable[str], normalize: Callable[[str], str]) -> int:
        visited_keys = set(visited)
        return sum(
            1
            for edge in self.edges
            if normalize(edge.source) in visited_keys and normalize(edge.target) in visited_keys
        )


def load_graph(path: Path) -> PageTransitionGraph:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise GraphLoadError(f"Graph file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise GraphLoadError(f"Graph file is not valid JSON: {path}") from exc

    if not isinstance(raw, dict):
        raise GraphLoadError(f"Graph file must contain an object: {path}")

    graph = PageTransitionGraph.from_mapping(raw, source_path=path)
    if not graph.nodes:
        raise GraphLoadError(f"Graph has no nodes: {path}")

    logger.info("Loaded graph %s (nodes=%d, edges=%d)", path, graph.total_pages, graph.total_edges)
    return graph


def find_latest_graph(out_root: Path, target_name: str) -> Path:
    """Newest ``stage3_graph.json`` under the timestamped output directories of a target."""

    target_dir = out_root / target_name
    if not target_dir.is_dir():
        raise GraphLoadError(f"Output directory not found: {target_dir}")

    candidates = sorted(
        (
            child
            for child in target_dir.iterdir()
            if child.is_dir()
            and child.name != "runs"
            and _TIMESTAMPED_DIR.match(child.name)
            and (child / GRAPH_FILE_NAME).exists()
        ),
        key=lambda child: child.name,
        reverse=True,
    )
    if not candidates:
        raise GraphLoadError(f"No {GRAPH_FILE_NAME} found under: {target_dir}")

    return candidates[0] / GRAPH_FILE_NAME
