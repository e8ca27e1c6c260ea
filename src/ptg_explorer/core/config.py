"""Configuration loading for exploration runs."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urlparse

from dotenv import load_dotenv

ROUTE_MODES = frozenset({"history", "hash"})
EXPLORATION_MODES = frozenset({"ptg", "random"})
DEFAULT_TARGETS_FILE = "targets.json"
DEFAULT_OUT_DIR = "out"

AUTH_KINDS = frozenset({"cookie", "session_storage", "local_storage", "bearer", "none"})
_AUTH_TYPE_CODES = {
    0: "cookie",
    1: "session_storage",
    2: "local_storage",
    4: "bearer",
    9: "none",
}


class ConfigurationError(ValueError):
    """Raised when a run cannot start because its inputs are invalid."""


@dataclass(frozen=True)
class AuthDescriptor:
    """Declarative session seeding applied before exploration starts."""

    kind: str = "none"
    cookies: Tuple[Dict[str, Any], ...] = ()
    items: Tuple[Dict[str, Any], ...] = ()
    token: Optional[str] = None
    scheme: str = "Bearer"

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "AuthDescriptor":
        if not raw:
            return cls()

        kind = raw.get("type", raw.get("authType", "none"))
        if isinstance(kind, int):
            kind = _AUTH_TYPE_CODES.get(kind, "none")
        kind = str(kind).lower()
        if kind not in AUTH_KINDS:
            raise ConfigurationError(f"Unknown auth type: {kind}")

        cookies = raw.get("cookies") or (raw.get("cookie") or {}).get("cookies") or []
        items = raw.get("items") or []
        if not items and kind == "session_storage":
            items = (raw.get("sessionStorage") or {}).get("items") or []
        if not items and kind == "local_storage":
            items = (raw.get("localStorage") or {}).get("items") or []

        jwt = raw.get("jwt") or {}
        token = raw.get("token") or jwt.get("token")
        scheme = raw.get("scheme") or jwt.get("scheme") or "Bearer"

        return cls(
            kind=kind,
            cookies=tuple(dict(cookie) for cookie in cookies),
            items=tuple(dict(item) for item in items),
            token=token,
            scheme=scheme,
        )


@dataclass(frozen=True)
class CoverageSettings:
    """Where the coverage report tool runs and where it writes reports."""

    cwd: Path
    report_root: Path


@dataclass(frozen=True)
class TargetConfig:
    """Immutable description of one application under exploration."""

    name: str
    base_url: str
    route_mode: str = "history"
    start_page: str = ""
    auth: AuthDescriptor = field(default_factory=AuthDescriptor)
    dynamic_route_patterns: Tuple[str, ...] = ()
    coverage: Optional[CoverageSettings] = None

    @property
    def origin(self) -> str:
        parsed = urlparse(self.base_url)
        return f"{parsed.scheme}://{parsed.netloc}"

    @classmethod
    def from_mapping(cls, name: str, raw: Mapping[str, Any], *, root: Optional[Path] = None) -> "TargetConfig":
        base_url = raw.get("baseUrl")
        if not base_url:
            raise ConfigurationError(f"Target '{name}' has no baseUrl")

        route_mode = raw.get("routeMode", "history")
        if route_mode not in ROUTE_MODES:
            raise ConfigurationError(f"Target '{name}' has invalid routeMode: {route_mode}")

        coverage = None
        coverage_raw = raw.get("coverage") or raw.get("nyc")
        if coverage_raw and coverage_raw.get("cwd") and coverage_raw.get("reportRoot"):
            base = root or Path.cwd()
            coverage = CoverageSettings(
                cwd=(base / coverage_raw["cwd"]).resolve(),
                report_root=(base / coverage_raw["reportRoot"]).resolve(),
            )

        return cls(
            name=name,
            base_url=base_url,
            route_mode=route_mode,
            start_page=raw.get("startPage") or "",
            auth=AuthDescriptor.from_mapping(raw.get("auth")),
            dynamic_route_patterns=tuple(raw.get("dynamicRoutePatterns") or ()),
            coverage=coverage,
        )


class TargetRepository:
    """Named target configurations, scoped to a single run."""

    def __init__(self, targets: Mapping[str, TargetConfig]) -> None:
        self._targets = dict(targets)

    @classmethod
    def from_file(cls, path: Path) -> "TargetRepository":
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigurationError(f"Targets file not found: {path}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Targets file is not valid JSON: {path}") from exc

        if not isinstance(raw, dict):
            raise ConfigurationError(f"Targets file must contain an object: {path}")

        root = path.resolve().parent
        return cls({name: TargetConfig.from_mapping(name, entry, root=root) for name, entry in raw.items()})

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._targets)

    def get(self, name: str) -> TargetConfig:
        try:
            return self._targets[name]
        except KeyError:
            available = ", ".join(sorted(self._targets)) or "none"
            raise ConfigurationError(f"Unknown target: {name}. Available: {available}") from None


@dataclass(frozen=True)
class ExplorerTimings:
    """Pauses and per-operation timeout caps, in milliseconds."""

    after_click: int = 100
    after_navigation: int = 300
    before_next_action: int = 200
    menu_expand: int = 300
    submenu_expand: int = 120
    after_goto: int = 300
    navigation_cap: int = 4000
    back_cap: int = 2000
    edge_action_cap: int = 2000
    probe_cap: int = 1200
    reveal_cap: int = 1200


@dataclass(slots=True)
class RunConfig:
    """Holds runtime options for a full exploration run."""

    target: TargetConfig
    mode: str
    duration: int
    interval: int
    graph_path: Optional[Path]
    out_root: Path
    run_id: str
    headless: bool = False
    timings: ExplorerTimings = field(default_factory=ExplorerTimings)

    @property
    def runs_root(self) -> Path:
        return self.out_root / self.target.name / "runs" / self.run_id


def make_run_id(target_name: str, mode: str, tag: Optional[str] = None, *, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    clean_tag = re.sub(r"[^\w.-]", "_", tag) if tag else ""
    return "_".join(part for part in (stamp, target_name, mode, clean_tag) if part)


def load_configuration(
    target_name: str,
    mode: str,
    duration: int = 300,
    interval: Optional[int] = None,
    *,
    targets_path: Optional[str] = None,
    graph_path: Optional[str] = None,
    out_dir: Optional[str] = None,
    headless: Optional[bool] = None,
) -> RunConfig:
    """Builds a ``RunConfig`` from CLI input and environment variables."""

    load_dotenv()  # Loads .env values if present

    if mode not in EXPLORATION_MODES:
        raise ConfigurationError(f'mode must be "ptg" or "random", got "{mode}"')
    if duration <= 0:
        raise ConfigurationError("duration must be a positive number of seconds")

    interval_value = interval or duration
    if interval_value <= 0 or interval_value > duration:
        raise ConfigurationError("interval must be between 1 and the total duration")

    targets_file = Path(targets_path or os.getenv("PTG_TARGETS_FILE") or DEFAULT_TARGETS_FILE)
    target = TargetRepository.from_file(targets_file).get(target_name)

    if headless is None:
        headless = os.getenv("HEADLESS", "false").lower() in {"1", "true", "yes"}

    return RunConfig(
        target=target,
        mode=mode,
        duration=duration,
        interval=interval_value,
        graph_path=Path(graph_path).resolve() if graph_path else None,
        out_root=Path(out_dir or os.getenv("PTG_OUT_DIR") or DEFAULT_OUT_DIR).resolve(),
        run_id=make_run_id(target_name, mode, os.getenv("RUN_TAG")),
        headless=headless,
    )
