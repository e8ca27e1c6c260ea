"""Checks for the external tools behind statement coverage."""

from __future__ import annotations

import shutil
import subprocess
from typing import Iterable

TOOL_TIMEOUT = 30

# nyc is resolved through npx; --no-install keeps the check from downloading it.
COVERAGE_TOOLS: Iterable[tuple[str, list[str]]] = (
    ("npx", ["npx", "--version"]),
    ("nyc", ["npx", "--no-install", "nyc", "--version"]),
)


def check_tool(command: list[str], *, timeout: int = TOOL_TIMEOUT) -> bool:
    """Returns ``True`` if ``command`` exists on PATH and exits cleanly."""

    if shutil.which(command[0]) is None:
        return False

    try:
        subprocess.run(command, capture_output=True, text=True, check=True, timeout=timeout)
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired):
        return False
    return True


def verify_dependencies() -> dict[str, bool]:
    """Availability of each coverage tool, by name."""

    return {name: check_tool(command) for name, command in COVERAGE_TOOLS}
