from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class ExplorationState:
    """Mutable bookkeeping owned by one explorer; the snapshot loop only reads it."""

    round_visited: set[str] = field(default_factory=set)
    cumulative_visited: set[str] = field(default_factory=set)
    action_count: int = 0
    expanded_sub_menus: set[str] = field(default_factory=set)
    opened_dropdown_once: bool = False
    all_menus_expanded_once: bool = False
    all_pages_visited: bool = False

    def start_round(self) -> None:
        self.round_visited.clear()

    def mark_visited(self, key: str) -> None:
        self.round_visited.add(key)
        self.cumulative_visited.add(key)

    def record_action(self) -> int:
        self.action_count += 1
        return self.action_count

    @property
    def pages_visited(self) -> int:
        return len(self.cumulative_visited)

    def page_coverage(self, total_pages: int) -> float:
        if total_pages <= 0:
            return 0.0
        return min(1.0, max(0.0, len(self.cumulative_visited) / total_pages))
