"""
Page Context - The in-page scripts the core depends on.

WebDriver's element API covers attributes, properties, text and
queries. Geometry, overlay nodes and scroll/resize notifications need a
few lines of JavaScript; they are collected here as fixed scripts so the
rest of the code never builds JavaScript on the fly.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, TYPE_CHECKING
import logging

from selenium.common.exceptions import InvalidSessionIdException, NoSuchWindowException
from selenium.webdriver.common.by import By

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver
    from selenium.webdriver.remote.webelement import WebElement

logger = logging.getLogger(__name__)

OVERLAY_MARKER = "data-relocator-overlay"
OVERLAY_ID_ATTRIBUTE = "data-relocator-id"
OVERLAY_LABEL_CLASS = "relocator-overlay-label"

# The browser side is gone; no retry on this page can succeed
SESSION_LOST = (NoSuchWindowException, InvalidSessionIdException)


RECT_SCRIPT = r"""
const r = arguments[0].getBoundingClientRect();
return {left: r.left, top: r.top, width: r.width, height: r.height};
"""

RENDERED_SCRIPT = r"""
const el = arguments[0];
const style = window.getComputedStyle(el);
if (style.display === 'none') return false;
if (style.visibility === 'hidden') return false;
if (parseFloat(style.opacity) === 0) return false;
const r = el.getBoundingClientRect();
return !(r.width === 0 && r.height === 0);
"""

PAGE_METRICS_SCRIPT = r"""
const doc = document.documentElement;
return {
    scrollX: window.scrollX || window.pageXOffset || 0,
    scrollY: window.scrollY || window.pageYOffset || 0,
    width: doc.scrollWidth,
    height: doc.scrollHeight
};
"""

MOUNT_OVERLAY_SCRIPT = r"""
const [overlayId, cssText, labelText, labelCss] = [arguments[0], arguments[1], arguments[2], arguments[3]];
const overlay = document.createElement('div');
overlay.className = 'relocator-overlay';
overlay.setAttribute('data-relocator-overlay', 'true');
overlay.setAttribute('data-relocator-id', overlayId);
overlay.style.cssText = cssText;
if (labelText) {
    const label = document.createElement('span');
    label.className = 'relocator-overlay-label';
    label.setAttribute('data-relocator-overlay', 'true');
    label.textContent = labelText;
    label.style.cssText = labelCss;
    overlay.appendChild(label);
}
document.body.appendChild(overlay);
return overlay;
"""

APPLY_STYLE_SCRIPT = r"""
const node = arguments[0];
const styles = arguments[1];
for (const key of Object.keys(styles)) {
    node.style.setProperty(key, styles[key]);
}
"""

APPLY_LABEL_STYLE_SCRIPT = r"""
const label = arguments[0].querySelector('.relocator-overlay-label');
if (!label) return false;
const styles = arguments[1];
for (const key of Object.keys(styles)) {
    label.style.setProperty(key, styles[key]);
}
return true;
"""

REMOVE_NODE_SCRIPT = r"""
arguments[0].remove();
"""

INSTALL_VIEWPORT_WATCH_SCRIPT = r"""
if (window.__relocatorViewport) return false;
const state = {dirty: false};
state.handler = () => { state.dirty = true; };
// Capture phase: scroll events from nested containers do not bubble
window.addEventListener('scroll', state.handler, true);
window.addEventListener('resize', state.handler);
window.__relocatorViewport = state;
return true;
"""

UNINSTALL_VIEWPORT_WATCH_SCRIPT = r"""
const state = window.__relocatorViewport;
if (!state) return false;
window.removeEventListener('scroll', state.handler, true);
window.removeEventListener('resize', state.handler);
delete window.__relocatorViewport;
return true;
"""

CONSUME_VIEWPORT_CHANGE_SCRIPT = r"""
const state = window.__relocatorViewport;
if (!state) return false;
const dirty = state.dirty;
state.dirty = false;
return dirty;
"""

SCROLL_INTO_VIEW_SCRIPT = r"""
arguments[0].scrollIntoView({behavior: 'smooth', block: 'center'});
"""


@dataclass
class Rect:
    """Viewport-relative bounding box in CSS pixels."""
    left: float
    top: float
    width: float
    height: float

    @property
    def is_degenerate(self) -> bool:
        """Zero width and zero height: rendered nowhere."""
        return self.width == 0 and self.height == 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Rect":
        """Create from the dictionary RECT_SCRIPT returns."""
        data = data or {}
        return cls(
            left=float(data.get("left", 0) or 0),
            top=float(data.get("top", 0) or 0),
            width=float(data.get("width", 0) or 0),
            height=float(data.get("height", 0) or 0),
        )


@dataclass
class PageMetrics:
    """Scroll offsets and full document size."""
    scroll_x: float
    scroll_y: float
    width: float
    height: float


class PageContext:
    """
    Thin facade over a WebDriver for the scripted parts of the page.

    Example:
        >>> page = PageContext(driver)
        >>> rect = page.bounding_rect(element)
        >>> rect.is_degenerate
        False
    """

    def __init__(self, driver: "WebDriver"):
        """
        Initialize the page context.

        Args:
            driver: Selenium WebDriver for the tracked page
        """
        self.driver = driver

    def body(self) -> "WebElement":
        """The document body."""
        return self.driver.find_element(By.TAG_NAME, "body")

    def bounding_rect(self, element: "WebElement") -> Rect:
        """Viewport rectangle of an element."""
        return Rect.from_dict(self.driver.execute_script(RECT_SCRIPT, element))

    def is_rendered(self, element: "WebElement") -> bool:
        """Displayed, not transparent, and occupying space."""
        return bool(self.driver.execute_script(RENDERED_SCRIPT, element))

    def metrics(self) -> PageMetrics:
        """Current scroll position and document size."""
        data = self.driver.execute_script(PAGE_METRICS_SCRIPT) or {}
        return PageMetrics(
            scroll_x=float(data.get("scrollX", 0) or 0),
            scroll_y=float(data.get("scrollY", 0) or 0),
            width=float(data.get("width", 0) or 0),
            height=float(data.get("height", 0) or 0),
        )

    def mount_overlay(
        self,
        overlay_id: str,
        styles: Dict[str, str],
        label_text: Optional[str] = None,
        label_styles: Optional[Dict[str, str]] = None,
    ) -> "WebElement":
        """Append a marked overlay node to the body and return it."""
        return self.driver.execute_script(
            MOUNT_OVERLAY_SCRIPT,
            overlay_id,
            css_text(styles),
            label_text or "",
            css_text(label_styles or {}),
        )

    def apply_style(self, node: "WebElement", styles: Dict[str, str]) -> None:
        self.driver.execute_script(APPLY_STYLE_SCRIPT, node, styles)

    def apply_label_style(self, node: "WebElement", styles: Dict[str, str]) -> bool:
        return bool(self.driver.execute_script(APPLY_LABEL_STYLE_SCRIPT, node, styles))

    def remove_node(self, node: "WebElement") -> None:
        self.driver.execute_script(REMOVE_NODE_SCRIPT, node)

    def install_viewport_watch(self) -> bool:
        """Start flagging scroll (capture phase) and resize events."""
        return bool(self.driver.execute_script(INSTALL_VIEWPORT_WATCH_SCRIPT))

    def uninstall_viewport_watch(self) -> bool:
        return bool(self.driver.execute_script(UNINSTALL_VIEWPORT_WATCH_SCRIPT))

    def consume_viewport_change(self) -> bool:
        """True if the page scrolled or resized since the last call."""
        return bool(self.driver.execute_script(CONSUME_VIEWPORT_CHANGE_SCRIPT))

    def scroll_into_view(self, element: "WebElement") -> None:
        self.driver.execute_script(SCROLL_INTO_VIEW_SCRIPT, element)


def css_text(styles: Dict[str, str]) -> str:
    """Render a style dictionary as a cssText string."""
    return "; ".join(f"{key}: {value}" for key, value in styles.items())
