"""
Page Inspection
===============
The only surface classification and extraction code uses to read a page.

Two backends implement the same async interface:

- ``PlaywrightInspector``: a live ``playwright.async_api.Page``
- ``HtmlInspector``      : a BeautifulSoup DOM built from an HTML string
  (static snapshots, test fixtures)

Selectors are CSS. ``query`` returns the first match in document order, so a
comma-separated selector list behaves like ``document.querySelector``.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from playwright.async_api import ElementHandle, Page

logger = logging.getLogger(__name__)

_SPACES_RE = re.compile(r"[ \t\r\f\v]+")


def _tidy_lines(text: str) -> str:
    """Collapse runs of spaces within lines and drop blank lines."""
    text = _SPACES_RE.sub(" ", text)
    lines = [line.strip() for line in text.split("\n")]
    return "\n".join(line for line in lines if line)


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class ElementRef(ABC):
    """A single element of the inspected page."""

    @abstractmethod
    async def text(self) -> str:
        """Raw text content, stripped."""

    @abstractmethod
    async def inner_text(self) -> str:
        """Rendered, line-broken text."""

    @abstractmethod
    async def attribute(self, name: str) -> Optional[str]:
        ...

    @abstractmethod
    async def is_disabled(self) -> bool:
        ...

    @abstractmethod
    async def tag_name(self) -> str:
        ...

    @abstractmethod
    async def query(self, selector: str) -> Optional["ElementRef"]:
        ...

    @abstractmethod
    async def query_all(self, selector: str) -> List["ElementRef"]:
        ...

    @abstractmethod
    async def parent(self) -> Optional["ElementRef"]:
        ...

    @abstractmethod
    async def next_text_sibling(self) -> Optional[str]:
        """Text of the immediately following text node, if it has any."""


class PageInspector(ABC):
    """A loaded page."""

    @property
    @abstractmethod
    def url(self) -> str:
        ...

    @abstractmethod
    async def query(self, selector: str) -> Optional[ElementRef]:
        ...

    @abstractmethod
    async def query_all(self, selector: str) -> List[ElementRef]:
        ...

    @abstractmethod
    async def title(self) -> str:
        ...

    @abstractmethod
    async def body_text(self) -> str:
        ...

    @abstractmethod
    async def html(self) -> str:
        ...

    # ── Helpers built on the primitives ─────────────────────────────

    async def exists(self, selector: str) -> bool:
        return await self.query(selector) is not None

    async def first_match(self, selectors: Iterable[str]) -> Optional[ElementRef]:
        """First element matched by the first selector (in list order) that matches."""
        for selector in selectors:
            el = await self.query(selector)
            if el is not None:
                return el
        return None

    async def first_text(self, selectors: Iterable[str]) -> str:
        el = await self.first_match(selectors)
        return await el.text() if el is not None else ""


# ---------------------------------------------------------------------------
# BeautifulSoup backend
# ---------------------------------------------------------------------------

class HtmlElement(ElementRef):

    def __init__(self, tag: Tag):
        self._tag = tag

    async def text(self) -> str:
        return self._tag.get_text().strip()

    async def inner_text(self) -> str:
        return _tidy_lines(self._tag.get_text("\n"))

    async def attribute(self, name: str) -> Optional[str]:
        value = self._tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def is_disabled(self) -> bool:
        if self._tag.has_attr("disabled"):
            return True
        return (self._tag.get("aria-disabled") or "").lower() == "true"

    async def tag_name(self) -> str:
        return self._tag.name.lower()

    async def query(self, selector: str) -> Optional[ElementRef]:
        found = self._tag.select_one(selector)
        return HtmlElement(found) if found is not None else None

    async def query_all(self, selector: str) -> List[ElementRef]:
        return [HtmlElement(t) for t in self._tag.select(selector)]

    async def parent(self) -> Optional[ElementRef]:
        parent = self._tag.parent
        if isinstance(parent, Tag) and parent.name != "[document]":
            return HtmlElement(parent)
        return None

    async def next_text_sibling(self) -> Optional[str]:
        sibling = self._tag.next_sibling
        if isinstance(sibling, NavigableString) and not isinstance(sibling, Comment):
            text = str(sibling).strip()
            return text or None
        return None


class HtmlInspector(PageInspector):
    """
    Inspector over static HTML.

    Usage::

        inspector = HtmlInspector(html, url="https://shop.cl/producto/x")
        el = await inspector.query("h1")
    """

    def __init__(self, html: str, url: str = ""):
        self._html = html
        self._url = url
        self._soup = BeautifulSoup(html, "lxml")

    @property
    def url(self) -> str:
        return self._url

    async def query(self, selector: str) -> Optional[ElementRef]:
        found = self._soup.select_one(selector)
        return HtmlElement(found) if found is not None else None

    async def query_all(self, selector: str) -> List[ElementRef]:
        return [HtmlElement(t) for t in self._soup.select(selector)]

    async def title(self) -> str:
        return self._soup.title.get_text().strip() if self._soup.title else ""

    async def body_text(self) -> str:
        root = self._soup.body or self._soup
        return root.get_text("\n")

    async def html(self) -> str:
        return self._html


# ---------------------------------------------------------------------------
# Playwright backend
# ---------------------------------------------------------------------------

_NEXT_TEXT_JS = """
el => {
    const sib = el.nextSibling;
    if (sib && sib.nodeType === 3 && sib.textContent.trim()) {
        return sib.textContent.trim();
    }
    return null;
}
"""


class PlaywrightElement(ElementRef):

    def __init__(self, handle: ElementHandle):
        self._handle = handle

    async def text(self) -> str:
        return ((await self._handle.text_content()) or "").strip()

    async def inner_text(self) -> str:
        return _tidy_lines(await self._handle.inner_text())

    async def attribute(self, name: str) -> Optional[str]:
        return await self._handle.get_attribute(name)

    async def is_disabled(self) -> bool:
        return await self._handle.is_disabled()

    async def tag_name(self) -> str:
        return (await self._handle.evaluate("el => el.tagName")).lower()

    async def query(self, selector: str) -> Optional[ElementRef]:
        found = await self._handle.query_selector(selector)
        return PlaywrightElement(found) if found is not None else None

    async def query_all(self, selector: str) -> List[ElementRef]:
        return [PlaywrightElement(h) for h in await self._handle.query_selector_all(selector)]

    async def parent(self) -> Optional[ElementRef]:
        js_handle = await self._handle.evaluate_handle("el => el.parentElement")
        element = js_handle.as_element()
        return PlaywrightElement(element) if element is not None else None

    async def next_text_sibling(self) -> Optional[str]:
        return await self._handle.evaluate(_NEXT_TEXT_JS)


class PlaywrightInspector(PageInspector):
    """Inspector over a live Playwright page."""

    def __init__(self, page: Page):
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def query(self, selector: str) -> Optional[ElementRef]:
        found = await self._page.query_selector(selector)
        return PlaywrightElement(found) if found is not None else None

    async def query_all(self, selector: str) -> List[ElementRef]:
        return [PlaywrightElement(h) for h in await self._page.query_selector_all(selector)]

    async def title(self) -> str:
        return (await self._page.title()).strip()

    async def body_text(self) -> str:
        return await self._page.inner_text("body")

    async def html(self) -> str:
        return await self._page.content()
