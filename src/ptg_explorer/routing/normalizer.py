"""Canonical route keys for URLs, paths and hash fragments."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Optional, Sequence
from urllib.parse import urlparse

from ..core.config import TargetConfig

BLANK_ROUTE_KEY = "about:blank"

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)
_NAMED_SEGMENT = re.compile(r":[^/]+")


@lru_cache(maxsize=256)
def _pattern_regex(pattern: str) -> re.Pattern[str]:
    pieces = _NAMED_SEGMENT.split(pattern)
    body = "[^/]+".join(re.escape(piece) for piece in pieces)
    return re.compile(f"^{body}$")


def match_dynamic_pattern(key: str, patterns: Sequence[str]) -> Optional[str]:
    """Return the first pattern (in configured order) matching ``key``."""

    for pattern in patterns:
        if _pattern_regex(pattern).match(key):
            return pattern
    return None


def _reduce_absolute(raw: str, route_mode: Optional[str]) -> str:
    parsed = urlparse(raw)
    if route_mode == "hash":
        return parsed.fragment
    if route_mode == "history":
        return parsed.path
    return parsed.fragment if parsed.fragment else parsed.path


def normalize_route_key(raw: Optional[str], config: Optional[TargetConfig] = None) -> str:
    """Canonicalize ``raw`` into the route key used to identify a logical page.

    Absolute URLs are reduced to their fragment (hash routing) or path (history
    routing), query strings and fragments are dropped, the trailing slash is
    removed and concrete values collapse onto the first matching dynamic
    route pattern, so ``/user/42`` and ``/user/7`` both become ``/user/:id``.
    """

    value = str(raw or "").strip()
    route_mode = config.route_mode if config else None

    if _ABSOLUTE_URL.match(value):
        value = _reduce_absolute(value, route_mode)

    if value.startswith("#"):
        value = value[1:]
    if value.startswith("/#/"):
        value = value[2:]
    if not value.startswith("/"):
        value = "/" + value

    value = value.split("?", 1)[0].split("#", 1)[0]

    if len(value) > 1 and value.endswith("/"):
        value = value[:-1]

    if config and config.dynamic_route_patterns:
        pattern = match_dynamic_pattern(value, config.dynamic_route_patterns)
        if pattern:
            return pattern

    return value


def build_url(base_url: str, route_key: str, route_mode: str, config: Optional[TargetConfig] = None) -> str:
    """Reconstruct a navigable URL for ``route_key`` on the origin of ``base_url``."""

    parsed = urlparse(base_url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    key = normalize_route_key(route_key, config)
    if route_mode == "hash":
        return f"{origin}/#{key}"
    return origin + key


def current_route_key(url: Optional[str], config: TargetConfig) -> str:
    """Route key of the page the browser currently shows."""

    if not url or url.startswith("about:"):
        return BLANK_ROUTE_KEY

    parsed = urlparse(url)
    if config.route_mode == "hash":
        return normalize_route_key(parsed.fragment, config)
    return normalize_route_key(parsed.path, config)
