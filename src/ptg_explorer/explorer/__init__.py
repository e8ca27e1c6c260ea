"""Exploration strategies sharing one ``run(deadline)`` contract."""

from .base import ExplorationMetrics, ExplorationResult, Explorer
from .graph_guided import GraphGuidedExplorer
from .random_walk import RandomExplorer
from .state import ExplorationState

EXPLORERS = {
    GraphGuidedExplorer.mode: GraphGuidedExplorer,
    RandomExplorer.mode: RandomExplorer,
}

__all__ = [
    "EXPLORERS",
    "ExplorationMetrics",
    "ExplorationResult",
    "ExplorationState",
    "Explorer",
    "GraphGuidedExplorer",
    "RandomExplorer",
]
