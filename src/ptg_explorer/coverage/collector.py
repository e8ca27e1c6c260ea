from __future__ import annotations

import logging
from typing import Any, Optional

from ..browser.driver import COVERAGE_SCRIPT

logger = logging.getLogger(__name__)


async def read_coverage_artifact(driver: Any) -> Optional[Any]:
    """Fetch the instrumentation counters (``window.__coverage__``) from the live page."""

    coverage = await driver.evaluate(COVERAGE_SCRIPT)
    if coverage:
        logger.debug("Coverage artifact collected")
        return coverage

    logger.warning("window.__coverage__ is undefined - instrumentation may not be enabled")
    return None
