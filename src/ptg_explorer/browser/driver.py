"""Thin asynchronous adapter between the explorers and a Playwright page."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from playwright.async_api import Dialog, Locator, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .deadline import Deadline

logger = logging.getLogger(__name__)

COVERAGE_SCRIPT = "() => window.__coverage__ || null"

DialogHandler = Callable[[Dialog], Awaitable[None]]


class BrowserDriver(Protocol):
    """Operations the explorers issue against the single shared page.

    Every call may suspend; none of them raise. Failures come back as
    ``False``, ``[]`` or ``None`` and mean "no effect".
    """

    def bind(self, deadline: Optional[Deadline]) -> None: ...

    def current_url(self) -> str: ...

    async def navigate(self, url: str, cap_ms: int) -> bool: ...

    async def go_back(self, cap_ms: int) -> bool: ...

    async def locate(self, selector: str) -> List[Any]: ...

    async def locate_within(self, element: Any, selector: str) -> List[Any]: ...

    async def is_visible(self, element: Any, cap_ms: int) -> bool: ...

    async def click(self, element: Any, cap_ms: int, *, trial: bool = False) -> bool: ...

    async def scroll_into_view(self, element: Any, cap_ms: int) -> None: ...

    async def outer_html(self, element: Any) -> str: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def evaluate_on(self, element: Any, script: str) -> Any: ...

    async def press(self, key: str) -> None: ...

    async def pause(self, ms: int) -> None: ...


class PlaywrightDriver:
    """``BrowserDriver`` backed by ``playwright.async_api.Page``.

    Once bound to a :class:`Deadline` every timed operation uses
    ``min(cap, remaining)`` as its timeout and is skipped outright when
    nothing remains, so a run overshoots its deadline by at most one cap.
    """

    def __init__(self, page: Page, deadline: Optional[Deadline] = None) -> None:
        self.page = page
        self._deadline = deadline

    def bind(self, deadline: Optional[Deadline]) -> None:
        self._deadline = deadline

    def _timeout(self, cap_ms: int) -> int:
        if self._deadline is None:
            return cap_ms
        return self._deadline.timeout(cap_ms)

    def current_url(self) -> str:
        try:
            return self.page.url
        except PlaywrightError:
            return ""

    async def navigate(self, url: str, cap_ms: int) -> bool:
        timeout = self._timeout(cap_ms)
        if timeout <= 0:
            return False
        try:
            await self.page.goto(url, wait_until="domcontentloaded", timeout=timeout)
            return True
        except PlaywrightError as exc:
            logger.debug("goto %s failed: %s", url, exc)
            return False

    async def go_back(self, cap_ms: int) -> bool:
        timeout = self._timeout(cap_ms)
        if timeout <= 0:
            return False
        try:
            await self.page.go_back(timeout=timeout)
            return True
        except PlaywrightError as exc:
            logger.debug("go_back failed: %s", exc)
            return False

    async def locate(self, selector: str) -> List[Locator]:
        try:
            return await self.page.locator(selector).all()
        except PlaywrightError as exc:
            logger.debug("locate %r failed: %s", selector, exc)
            return []

    async def locate_within(self, element: Locator, selector: str) -> List[Locator]:
        try:
            return await element.locator(selector).all()
        except PlaywrightError as exc:
            logger.debug("locate_within %r failed: %s", selector, exc)
            return []

    async def is_visible(self, element: Locator, cap_ms: int) -> bool:
        timeout = self._timeout(cap_ms)
        if timeout <= 0:
            return False
        try:
            await element.wait_for(state="visible", timeout=timeout)
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as exc:
            logger.debug("visibility check failed: %s", exc)
            return False

    async def click(self, element: Locator, cap_ms: int, *, trial: bool = False) -> bool:
        timeout = self._timeout(cap_ms)
        if timeout <= 0:
            return False
        try:
            await element.click(timeout=timeout, no_wait_after=True, trial=trial)
            return True
        except PlaywrightError as exc:
            logger.debug("click failed (trial=%s): %s", trial, exc)
            return False

    async def scroll_into_view(self, element: Locator, cap_ms: int) -> None:
        timeout = self._timeout(cap_ms)
        if timeout <= 0:
            return
        try:
            await element.scroll_into_view_if_needed(timeout=timeout)
        except PlaywrightError:
            return

    async def outer_html(self, element: Locator) -> str:
        try:
            return await element.evaluate("node => node.outerHTML || ''") or ""
        except PlaywrightError:
            return ""

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            if self.page.is_closed():
                return None
            return await self.page.evaluate(script, arg)
        except PlaywrightError as exc:
            logger.debug("evaluate failed: %s", exc)
            return None

    async def evaluate_on(self, element: Locator, script: str) -> Any:
        try:
            return await element.evaluate(script)
        except PlaywrightError:
            return None

    async def press(self, key: str) -> None:
        try:
            await self.page.keyboard.press(key)
        except PlaywrightError:
            return

    async def pause(self, ms: int) -> None:
        delay = self._timeout(ms)
        if delay <= 0:
            return
        await asyncio.sleep(delay / 1000)


async def accept_dialog(dialog: Dialog) -> None:
    logger.info("[dialog] %s: %s", dialog.type, dialog.message)
    try:
        await dialog.accept()
    except PlaywrightError as exc:
        logger.warning("[dialog] accept failed: %s", exc)


class DialogChannel:
    """Dispatches page dialogs to registered handlers, in registration order."""

    def __init__(self) -> None:
        self._handlers: List[DialogHandler] = []

    def register(self, handler: DialogHandler) -> None:
        self._handlers.append(handler)

    def attach(self, page: Page) -> None:
        page.on("dialog", self.dispatch)

    async def dispatch(self, dialog: Dialog) -> None:
        for handler in self._handlers:
            await handler(dialog)
