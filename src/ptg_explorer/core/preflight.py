"""Reachability probe for the target before a browser is launched."""

from __future__ import annotations

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

PREFLIGHT_TIMEOUT = 6


def check_target_reachable(base_url: str, *, timeout: int = PREFLIGHT_TIMEOUT) -> Optional[int]:
    """Returns the HTTP status of ``base_url``, or ``None`` when nothing answers."""

    try:
        response = requests.get(base_url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        logger.warning("Target %s is not reachable: %s", base_url, exc)
        return None

    if response.status_code >= 500:
        logger.warning("Target %s answered with status %d", base_url, response.status_code)
    return response.status_code
