#!/usr/bin/env python3
"""Entry point that proxies to ``ptg_explorer.cli`` without installation."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parent
SRC_PATH = ROOT / "src"
if SRC_PATH.exists():  # allow running from a checkout
    sys.path.insert(0, str(SRC_PATH))


def main() -> None:
    cli = importlib.import_module("ptg_explorer.cli")
    cli.main()


if __name__ == "__main__":
    main()
