from __future__ import annotations

from typing import Iterable, Union

from bs4 import BeautifulSoup
from bs4.element import Comment, Tag

from .utils import clean_text

Markup = Union[str, BeautifulSoup, Tag]

_INVISIBLE_TAGS = frozenset({"script", "style", "noscript", "template"})


def parse_document(html: Markup) -> Union[BeautifulSoup, Tag]:
    """Parse captured page markup; already-parsed trees pass through."""

    if isinstance(html, (BeautifulSoup, Tag)):
        return html
    return BeautifulSoup(html or "", "html5lib")


def page_text(html: Markup) -> str:
    """Return the visible text of the document body, whitespace-collapsed."""

    soup = parse_document(html)
    body = soup.body if isinstance(soup, BeautifulSoup) and soup.body is not None else soup
    parts = [
        str(node)
        for node in body.find_all(string=True)
        if not isinstance(node, Comment) and node.parent is not None and node.parent.name not in _INVISIBLE_TAGS
    ]
    return clean_text(" ".join(parts))


def has_any_selector(html: Markup, selectors: Iterable[str]) -> bool:
    soup = parse_document(html)
    for selector in selectors:
        try:
            if soup.select_one(selector) is not None:
                return True
        except Exception:  # noqa: BLE001
            continue
    return False


def contains_any(text: str, needles: Iterable[str]) -> bool:
    lowered = (text or "").lower()
    return any(needle.lower() in lowered for needle in needles)


__all__ = ["Markup", "contains_any", "has_any_selector", "page_text", "parse_document"]
