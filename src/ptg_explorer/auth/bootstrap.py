"""One-time session seeding before exploration starts."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence
from urllib.parse import urlparse

from playwright.async_api import BrowserContext, Page, Route
from playwright.async_api import Error as PlaywrightError

from ..core.config import AuthDescriptor, TargetConfig

logger = logging.getLogger(__name__)

STORAGE_NAMES = {"session_storage": "sessionStorage", "local_storage": "localStorage"}
BOOTSTRAP_GOTO_TIMEOUT = 15000
_OPTIONAL_COOKIE_FIELDS = ("httpOnly", "secure", "sameSite", "expires")


@dataclass(frozen=True)
class AuthOutcome:
    kind: str
    applied: bool
    detail: str = ""


def build_cookies(raw_cookies: Iterable[Dict[str, Any]], base_url: str) -> List[Dict[str, Any]]:
    """Fill in domain and path for cookies that only name the value."""

    host = urlparse(base_url).hostname or ""
    cookies: List[Dict[str, Any]] = []
    for raw in raw_cookies:
        name = raw.get("name")
        value = raw.get("value")
        if not name or value is None:
            continue
        cookie: Dict[str, Any] = {
            "name": name,
            "value": str(value),
            "domain": raw.get("domain") or host,
            "path": raw.get("path") or "/",
        }
        for key in _OPTIONAL_COOKIE_FIELDS:
            if raw.get(key) is not None:
                cookie[key] = raw[key]
        cookies.append(cookie)
    return cookies


def storage_pairs(items: Sequence[Dict[str, Any]]) -> List[Dict[str, str]]:
    pairs: List[Dict[str, str]] = []
    for item in items:
        key = item.get("key")
        if not key:
            continue
        value = item.get("value")
        pairs.append({"key": key, "value": value if isinstance(value, str) else json.dumps(value)})
    return pairs


def storage_init_script(storage: str, pairs: Sequence[Dict[str, str]], origin: str) -> str:
    """Script that writes ``pairs`` into ``storage`` on every document of ``origin``."""

    return (
        "(() => {"
        f" const pairs = {json.dumps(list(pairs))};"
        f" const origin = {json.dumps(origin)};"
        " try {"
        "  if (location.origin !== origin) return;"
        f"  for (const {{key, value}} of pairs) {{ {storage}.setItem(key, value); }}"
        " } catch (e) {}"
        "})();"
    )


def bearer_header(auth: AuthDescriptor) -> str:
    token = auth.token or ""
    prefix = f"{auth.scheme} "
    return token if token.startswith(prefix) else prefix + token


class AuthBootstrap:
    """Applies the target's auth descriptor to a fresh browser context."""

    def __init__(self, config: TargetConfig) -> None:
        self.config = config

    async def apply(self, context: BrowserContext, page: Page) -> AuthOutcome:
        auth = self.config.auth
        try:
            if auth.kind == "cookie":
                return await self._apply_cookies(context)
            if auth.kind in STORAGE_NAMES:
                return await self._apply_storage(context, page, STORAGE_NAMES[auth.kind])
            if auth.kind == "bearer":
                return await self._apply_bearer(page)
        except PlaywrightError as exc:
            logger.warning("[auth] %s bootstrap failed: %s", auth.kind, exc)
            return AuthOutcome(kind=auth.kind, applied=False, detail=str(exc))
        return AuthOutcome(kind=auth.kind, applied=False, detail="no auth configured")

    async def _apply_cookies(self, context: BrowserContext) -> AuthOutcome:
        cookies = build_cookies(self.config.auth.cookies, self.config.base_url)
        if not cookies:
            return self._nothing_to_apply("cookie list is empty")
        await context.add_cookies(cookies)
        logger.info("[auth] %d cookie(s) set for %s", len(cookies), self.config.origin)
        return AuthOutcome(kind="cookie", applied=True)

    async def _apply_storage(self, context: BrowserContext, page: Page, storage: str) -> AuthOutcome:
        pairs = storage_pairs(self.config.auth.items)
        if not pairs:
            return self._nothing_to_apply(f"{storage} items are empty")

        origin = self.config.origin
        await context.add_init_script(script=storage_init_script(storage, pairs, origin))

        response = await page.goto(origin + "/", wait_until="domcontentloaded", timeout=BOOTSTRAP_GOTO_TIMEOUT)
        if response is None or not response.ok:
            logger.warning("[auth] goto failed, skipping immediate %s write (url=%s)", storage, page.url)
            return AuthOutcome(kind=self.config.auth.kind, applied=True, detail="init script only")

        await page.evaluate(
            f"pairs => {{ for (const {{key, value}} of pairs) {{ {storage}.setItem(key, value); }} }}",
            pairs,
        )
        logger.info("[auth] %d %s item(s) written", len(pairs), storage)
        return AuthOutcome(kind=self.config.auth.kind, applied=True)

    async def _apply_bearer(self, page: Page) -> AuthOutcome:
        if not self.config.auth.token:
            return self._nothing_to_apply("token is empty")

        header = bearer_header(self.config.auth)

        async def add_authorization(route: Route) -> None:
            headers = {**route.request.headers, "authorization": header}
            await route.continue_(headers=headers)

        await page.route("**/*", add_authorization)
        logger.info("[auth] Authorization header installed (%s scheme)", self.config.auth.scheme)
        return AuthOutcome(kind="bearer", applied=True)

    def _nothing_to_apply(self, reason: str) -> AuthOutcome:
        logger.warning("[auth] %s: %s", self.config.auth.kind, reason)
        return AuthOutcome(kind=self.config.auth.kind, applied=False, detail=reason)
