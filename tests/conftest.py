"""
Shared fixtures: a browserless WebDriver stand-in.

FakeDriver parses an HTML fixture with BeautifulSoup and answers the
Selenium calls relocator makes. CSS queries are evaluated by soupsieve,
and the fixed page scripts are answered from `data-box="x,y,w,h"`
attributes (every displayed element without one gets a 100x20 box).
"""

from typing import Any, Dict, List, Optional, Tuple

import pytest
import soupsieve
from bs4 import BeautifulSoup
from selenium.common.exceptions import (
    InvalidSelectorException,
    NoSuchElementException,
    NoSuchWindowException,
    StaleElementReferenceException,
)
from selenium.webdriver.common.by import By

from relocator.core import page as scripts

DEFAULT_BOX = (0.0, 0.0, 100.0, 20.0)


def _style_hides(style: str) -> bool:
    compact = style.replace(" ", "").lower()
    return "display:none" in compact or "visibility:hidden" in compact


class FakeElement:
    """WebElement look-alike wrapping one soup tag."""

    def __init__(self, driver: "FakeDriver", tag):
        self._driver = driver
        self._tag = tag

    def __eq__(self, other):
        return isinstance(other, FakeElement) and other._tag is self._tag

    def __hash__(self):
        return id(self._tag)

    def __repr__(self):
        return f"<FakeElement {self._tag.name} {dict(self._tag.attrs)}>"

    def _check(self):
        self._driver._check_alive()
        if not self._driver.is_attached(self._tag):
            raise StaleElementReferenceException("element is not attached to the page document")

    @property
    def tag_name(self) -> str:
        self._check()
        return self._tag.name

    @property
    def text(self) -> str:
        self._check()
        if not self.is_displayed():
            return ""
        return " ".join(self._tag.get_text().split())

    def get_dom_attribute(self, name: str) -> Optional[str]:
        self._check()
        return self._tag.get(name)

    def get_property(self, name: str) -> Any:
        self._check()
        if name == "value":
            if self._tag.name == "textarea":
                return self._tag.get_text()
            if self._tag.name in ("input", "button", "select"):
                return self._tag.get("value", "")
            return None
        if name == "textContent":
            return self._tag.get_text()
        return self._tag.get(name)

    def is_displayed(self) -> bool:
        self._check()
        if self._tag.name == "input" and (self._tag.get("type") or "").lower() == "hidden":
            return False
        node = self._tag
        while node is not None and node.name != "[document]":
            if node.has_attr("hidden") or _style_hides(node.get("style") or ""):
                return False
            node = node.parent
        return True

    def find_elements(self, by: str, value: str) -> List["FakeElement"]:
        self._check()
        if by == By.XPATH:
            if value == "./*":
                return [self._driver.wrap(c) for c in self._tag.find_all(recursive=False)]
            if value == "..":
                return [self.find_element(by, value)]
            raise InvalidSelectorException(f"unsupported xpath {value}")
        if by == By.CSS_SELECTOR:
            return self._driver.select(self._tag, value)
        raise InvalidSelectorException(f"unsupported locator {by}")

    def find_element(self, by: str, value: str) -> "FakeElement":
        self._check()
        if by == By.XPATH and value == "..":
            parent = self._tag.parent
            if parent is None or parent.name == "[document]":
                raise NoSuchElementException("no parent element")
            return self._driver.wrap(parent)
        matches = self.find_elements(by, value)
        if not matches:
            raise NoSuchElementException(value)
        return matches[0]

    def box(self) -> Tuple[float, float, float, float]:
        if not self.is_displayed():
            return (0.0, 0.0, 0.0, 0.0)
        raw = self._tag.get("data-box")
        if not raw:
            return DEFAULT_BOX
        x, y, w, h = (float(part) for part in raw.split(","))
        return (x, y, w, h)


class FakeDriver:
    """WebDriver look-alike over an HTML string."""

    def __init__(self, html: str, width: float = 1000.0, height: float = 2000.0):
        self.page_width = width
        self.page_height = height
        self.scroll_x = 0.0
        self.scroll_y = 0.0
        self.alive = True
        self.current_url = "about:blank"
        self.watching = False
        self.dirty = False
        self.mounted: List[Dict[str, Any]] = []
        self.style_calls: List[Tuple[FakeElement, Dict[str, str]]] = []
        self.removed: List[FakeElement] = []
        self.scrolled_into_view: List[FakeElement] = []
        self.load(html)

    # -- page control used by tests --------------------------------------

    def load(self, html: str) -> None:
        """Replace the document; elements of the old one go stale."""
        if "<body" not in html:
            html = f"<html><body>{html}</body></html>"
        self.soup = BeautifulSoup(html, "html.parser", multi_valued_attributes=None)
        self.watching = False
        self.dirty = False

    def scroll_to(self, x: float, y: float) -> None:
        self.scroll_x, self.scroll_y = x, y
        if self.watching:
            self.dirty = True

    def close_window(self) -> None:
        self.alive = False

    def overlay_nodes(self) -> List[FakeElement]:
        return self.select(self.soup, "[data-relocator-overlay][data-relocator-id]")

    def css(self, selector: str) -> List[FakeElement]:
        return self.select(self.soup, selector)

    # -- WebDriver surface -----------------------------------------------

    def _check_alive(self):
        if not self.alive:
            raise NoSuchWindowException("no such window: target window already closed")

    def is_attached(self, tag) -> bool:
        node = tag
        while node.parent is not None:
            node = node.parent
        return node is self.soup

    def wrap(self, tag) -> FakeElement:
        return FakeElement(self, tag)

    def select(self, root, selector: str) -> List[FakeElement]:
        self._check_alive()
        try:
            return [self.wrap(t) for t in root.select(selector)]
        except soupsieve.SelectorSyntaxError as e:
            raise InvalidSelectorException(str(e)) from e

    def find_elements(self, by: str, value: str) -> List[FakeElement]:
        if by == By.CSS_SELECTOR:
            return self.select(self.soup, value)
        if by == By.TAG_NAME:
            return self.select(self.soup, value)
        raise InvalidSelectorException(f"unsupported locator {by}")

    def find_element(self, by: str, value: str) -> FakeElement:
        matches = self.find_elements(by, value)
        if not matches:
            raise NoSuchElementException(value)
        return matches[0]

    def get(self, url: str) -> None:
        self._check_alive()
        self.current_url = url

    def quit(self) -> None:
        self.alive = False

    def execute_script(self, script: str, *args):
        self._check_alive()

        if script == scripts.RECT_SCRIPT:
            x, y, w, h = args[0].box()
            if w == 0 and h == 0:
                return {"left": 0, "top": 0, "width": 0, "height": 0}
            return {"left": x - self.scroll_x, "top": y - self.scroll_y, "width": w, "height": h}

        if script == scripts.RENDERED_SCRIPT:
            _, _, w, h = args[0].box()
            return not (w == 0 and h == 0)

        if script == scripts.PAGE_METRICS_SCRIPT:
            return {
                "scrollX": self.scroll_x,
                "scrollY": self.scroll_y,
                "width": self.page_width,
                "height": self.page_height,
            }

        if script == scripts.MOUNT_OVERLAY_SCRIPT:
            return self._mount(*args)

        if script == scripts.APPLY_STYLE_SCRIPT:
            node, styles = args
            node._check()
            self.style_calls.append((node, dict(styles)))
            return None

        if script == scripts.APPLY_LABEL_STYLE_SCRIPT:
            node, styles = args
            node._check()
            label = node._tag.find("span", class_=scripts.OVERLAY_LABEL_CLASS)
            if label is None:
                return False
            self.style_calls.append((self.wrap(label), dict(styles)))
            return True

        if script == scripts.REMOVE_NODE_SCRIPT:
            node = args[0]
            node._check()
            node._tag.extract()
            self.removed.append(node)
            return None

        if script == scripts.INSTALL_VIEWPORT_WATCH_SCRIPT:
            if self.watching:
                return False
            self.watching = True
            return True

        if script == scripts.UNINSTALL_VIEWPORT_WATCH_SCRIPT:
            was = self.watching
            self.watching = False
            return was

        if script == scripts.CONSUME_VIEWPORT_CHANGE_SCRIPT:
            if not self.watching:
                return False
            dirty, self.dirty = self.dirty, False
            return dirty

        if script == scripts.SCROLL_INTO_VIEW_SCRIPT:
            args[0]._check()
            self.scrolled_into_view.append(args[0])
            return None

        raise AssertionError(f"unexpected script: {script[:60]!r}")

    def _mount(self, overlay_id, css_text, label_text, label_css):
        node = self.soup.new_tag("div", attrs={
            "class": "relocator-overlay",
            scripts.OVERLAY_MARKER: "true",
            scripts.OVERLAY_ID_ATTRIBUTE: overlay_id,
            "style": css_text,
        })
        if label_text:
            label = self.soup.new_tag("span", attrs={
                "class": scripts.OVERLAY_LABEL_CLASS,
                scripts.OVERLAY_MARKER: "true",
                "style": label_css,
            })
            label.string = label_text
            node.append(label)
        self.soup.body.append(node)
        self.mounted.append({
            "id": overlay_id,
            "css": css_text,
            "label": label_text,
        })
        return self.wrap(node)


class FakeTime:
    """Manually advanced time source for FrameClock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def make_driver():
    """Factory: make_driver(html) -> FakeDriver."""
    def _make(html: str, **kwargs) -> FakeDriver:
        return FakeDriver(html, **kwargs)
    return _make


@pytest.fixture
def fake_time():
    return FakeTime()
