"""Keeps exploration from clicking its own session away."""

from __future__ import annotations

from typing import Any, Iterable

from bs4 import BeautifulSoup

LOGOUT_KEYWORDS = ("logout", "log out", "sign out", "signout", "退出", "登出", "exit")
LOGIN_KEYWORDS = ("login", "log in", "sign in", "signin", "登录", "登入")
AUTH_KEYWORDS = LOGOUT_KEYWORDS + LOGIN_KEYWORDS


def _contains_any(value: str, keywords: Iterable[str]) -> bool:
    return any(keyword in value for keyword in keywords)


def is_auth_related_html(html: str) -> bool:
    """True when the element's markup looks like a logout or login affordance."""

    if not html:
        return False

    soup = BeautifulSoup(html, "html.parser")
    node = soup.find()
    if node is None:
        return _contains_any(html.lower(), AUTH_KEYWORDS)

    text = node.get_text().lower().strip()
    if _contains_any(text, AUTH_KEYWORDS):
        return True

    href = (node.get("href") or "").lower()
    if "login" in href or "logout" in href:
        return True

    onclick = (node.get("onclick") or "").lower()
    if _contains_any(onclick, AUTH_KEYWORDS):
        return True

    classes = node.get("class") or []
    class_name = " ".join(classes).lower() if isinstance(classes, list) else str(classes).lower()
    element_id = (node.get("id") or "").lower()
    return _contains_any(class_name, ("logout", "login")) or _contains_any(element_id, ("logout", "login"))


async def describe_element(driver: Any, element: Any) -> str:
    """Outer HTML of ``element``; empty when the page no longer has it."""

    return await driver.outer_html(element)


async def is_auth_related(driver: Any, element: Any) -> bool:
    return is_auth_related_html(await describe_element(driver, element))
