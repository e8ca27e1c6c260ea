"""Best-effort interactions that make hidden edge targets clickable.

Each :class:`RevealStrategy` decides on its own whether it applies to a
selector; :class:`RevealChain` tries them in order and stops at the first
one that reports :attr:`RevealOutcome.REVEALED`.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ..core.config import ExplorerTimings
from .state import ExplorationState

logger = logging.getLogger(__name__)

SUBMENU_ANCESTOR = 'xpath=ancestor::*[contains(@class,"el-submenu") or contains(@class,"el-sub-menu")]'
SUBMENU_TITLE = ".el-submenu__title, .el-sub-menu__title"
VISIBLE_SUBMENU_TITLE = ".el-submenu__title:visible, .el-sub-menu__title:visible"
DROPDOWN_TRIGGERS = (
    ".el-dropdown:visible",
    ".el-dropdown-link:visible",
    ".el-dropdown-selfdefine:visible",
    ".el-avatar:visible",
    '[class*="el-dropdown"]:visible',
)
MENU_SELECTOR_MARKERS = ("el-submenu", "el-sub-menu", "el-menu-item")

SUBMENU_KEY_SCRIPT = (
    "n => n.getAttribute('data-index') || n.className || (n.outerHTML ? n.outerHTML.slice(0, 60) : '')"
)
SUBMENU_OPENED_SCRIPT = "n => n.classList.contains('is-opened')"

MAX_EXPANDED_TITLES = 12
MAX_FALLBACK_TITLES = 3

_HAS_TEXT = re.compile(r"""has-text\((['"])(.*?)\1\)""")


class RevealOutcome(enum.Enum):
    REVEALED = "revealed"
    NOT_APPLICABLE = "not_applicable"
    FAILED = "failed"


@dataclass
class RevealContext:
    driver: Any
    state: ExplorationState
    timings: ExplorerTimings


def is_menu_selector(selector: str) -> bool:
    lower = selector.lower()
    return any(marker in lower for marker in MENU_SELECTOR_MARKERS)


def item_text_from_selector(selector: str) -> Optional[str]:
    match = _HAS_TEXT.search(selector)
    return match.group(2) if match else None


async def _first(driver: Any, selector: str, within: Any = None) -> Optional[Any]:
    if within is None:
        found = await driver.locate(selector)
    else:
        found = await driver.locate_within(within, selector)
    return found[0] if found else None


async def _is_opened(driver: Any, submenu: Any) -> bool:
    return bool(await driver.evaluate_on(submenu, SUBMENU_OPENED_SCRIPT))


class RevealStrategy:
    name = "reveal"

    def applies_to(self, selector: str) -> bool:
        raise NotImplementedError

    async def attempt(self, ctx: RevealContext, selector: str) -> RevealOutcome:
        raise NotImplementedError

    async def reveal(self, ctx: RevealContext, selector: str) -> RevealOutcome:
        if not self.applies_to(selector):
            return RevealOutcome.NOT_APPLICABLE
        return await self.attempt(ctx, selector)


class DropdownTriggerReveal(RevealStrategy):
    """Opens the nearest dropdown trigger, once per run."""

    name = "dropdown"

    def applies_to(self, selector: str) -> bool:
        return "el-dropdown-menu__item" in selector.lower()

    async def attempt(self, ctx: RevealContext, selector: str) -> RevealOutcome:
        if ctx.state.opened_dropdown_once:
            return RevealOutcome.NOT_APPLICABLE

        cap = ctx.timings.reveal_cap
        for trigger_selector in DROPDOWN_TRIGGERS:
            trigger = await _first(ctx.driver, trigger_selector)
            if trigger is None:
                continue
            if not await ctx.driver.is_visible(trigger, cap):
                continue
            if await ctx.driver.click(trigger, cap):
                ctx.state.opened_dropdown_once = True
                await ctx.driver.pause(ctx.timings.menu_expand)
                return RevealOutcome.REVEALED
        return RevealOutcome.FAILED


class SubmenuByItemTextReveal(RevealStrategy):
    """Expands the submenu that owns a menu item with the selector's text."""

    name = "submenu-by-text"

    def applies_to(self, selector: str) -> bool:
        return is_menu_selector(selector) and item_text_from_selector(selector) is not None

    async def attempt(self, ctx: RevealContext, selector: str) -> RevealOutcome:
        text = item_text_from_selector(selector)
        item = await _first(ctx.driver, f'.el-menu-item:has-text("{text}")')
        if item is None:
            return RevealOutcome.FAILED

        submenu = await _first(ctx.driver, SUBMENU_ANCESTOR, within=item)
        if submenu is None:
            return RevealOutcome.FAILED

        title = await _first(ctx.driver, SUBMENU_TITLE, within=submenu)
        if title is None:
            return RevealOutcome.FAILED

        await ctx.driver.click(title, ctx.timings.reveal_cap)
        await ctx.driver.pause(ctx.timings.menu_expand)
        return RevealOutcome.REVEALED


class SubmenuAncestorReveal(RevealStrategy):
    """Expands the submenu around the first element the selector finds."""

    name = "submenu-ancestor"

    def applies_to(self, selector: str) -> bool:
        return is_menu_selector(selector)

    async def attempt(self, ctx: RevealContext, selector: str) -> RevealOutcome:
        item = await _first(ctx.driver, selector)
        if item is None:
            return RevealOutcome.NOT_APPLICABLE
        if await expand_submenu_for_item(ctx, item):
            return RevealOutcome.REVEALED
        return RevealOutcome.FAILED


class VisibleSubmenuTitlesReveal(RevealStrategy):
    """Last resort: click the first few visible submenu titles."""

    name = "submenu-titles"

    def applies_to(self, selector: str) -> bool:
        return is_menu_selector(selector)

    async def attempt(self, ctx: RevealContext, selector: str) -> RevealOutcome:
        titles = (await ctx.driver.locate(VISIBLE_SUBMENU_TITLE))[:MAX_FALLBACK_TITLES]
        for title in titles:
            await ctx.driver.click(title, min(800, ctx.timings.reveal_cap))
            await ctx.driver.pause(ctx.timings.before_next_action)
        return RevealOutcome.REVEALED if titles else RevealOutcome.FAILED


async def expand_submenu_for_item(ctx: RevealContext, item: Any) -> bool:
    submenu = await _first(ctx.driver, SUBMENU_ANCESTOR, within=item)
    if submenu is None:
        return False

    key = await ctx.driver.evaluate_on(submenu, SUBMENU_KEY_SCRIPT) or ""
    if key and key in ctx.state.expanded_sub_menus:
        return False

    title = await _first(ctx.driver, SUBMENU_TITLE, within=submenu)
    if title is None:
        return False

    if await _is_opened(ctx.driver, submenu):
        if key:
            ctx.state.expanded_sub_menus.add(key)
        return False

    if await ctx.driver.click(title, ctx.timings.reveal_cap):
        if key:
            ctx.state.expanded_sub_menus.add(key)
        await ctx.driver.pause(ctx.timings.menu_expand)
        return True
    return False


DEFAULT_STRATEGIES: Sequence[RevealStrategy] = (
    DropdownTriggerReveal(),
    SubmenuByItemTextReveal(),
    SubmenuAncestorReveal(),
    VisibleSubmenuTitlesReveal(),
)


class RevealChain:
    def __init__(self, strategies: Sequence[RevealStrategy] = DEFAULT_STRATEGIES) -> None:
        self.strategies = tuple(strategies)

    async def reveal(self, ctx: RevealContext, selector: str) -> bool:
        for strategy in self.strategies:
            outcome = await strategy.reveal(ctx, selector)
            if outcome is RevealOutcome.REVEALED:
                logger.debug("[reveal] %s revealed %s", strategy.name, selector)
                return True
        return False


async def expand_all_submenus(ctx: RevealContext) -> bool:
    """Open every collapsed submenu title on the page (bounded); True if any exist."""

    titles = (await ctx.driver.locate(SUBMENU_TITLE))[:MAX_EXPANDED_TITLES]
    for title in titles:
        submenu = await _first(ctx.driver, SUBMENU_ANCESTOR, within=title)
        if submenu is not None and await _is_opened(ctx.driver, submenu):
            continue
        await ctx.driver.click(title, ctx.timings.reveal_cap)
        await ctx.driver.pause(ctx.timings.submenu_expand)
    return bool(titles)


async def ensure_menus_expanded(ctx: RevealContext) -> None:
    """Sticky: once an expansion pass found submenus it is never repeated."""

    if ctx.state.all_menus_expanded_once:
        return
    if await expand_all_submenus(ctx):
        ctx.state.all_menus_expanded_once = True
