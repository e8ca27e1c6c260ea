"""Baseline strategy: random clicks on whatever is interactive, no graph."""

from __future__ import annotations

import logging

from ..browser.deadline import Deadline
from ..routing.normalizer import BLANK_ROUTE_KEY
from .base import PROBE_SELECTOR, Explorer

logger = logging.getLogger(__name__)


class RandomExplorer(Explorer):
    mode = "random"

    async def explore(self, deadline: Deadline) -> None:
        while not deadline.expired:
            key = self.current_key()
            if key != BLANK_ROUTE_KEY:
                self.state.mark_visited(key)

            await self.click_once(deadline)
            await self.driver.pause(self.timings.after_click)

    async def click_once(self, deadline: Deadline) -> bool:
        cap = deadline.timeout(self.timings.probe_cap)
        if cap <= 0:
            return False

        candidates = await self.driver.locate(PROBE_SELECTOR)
        if not candidates:
            return False

        if await self.click_random(candidates, cap, trial_first=True):
            count = self.state.record_action()
            logger.debug("[random] click landed, total actions: %d", count)
            return True
        return False
