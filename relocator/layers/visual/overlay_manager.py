"""
Overlay Manager - Non-intrusive highlight overlays.

Overlays are fixed-position nodes appended to <body>; the tracked
elements themselves are never touched. Geometry is refreshed when the
page reports a scroll or resize, and a pulsing glow is animated by the
frame clock while few enough overlays are active.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING
import logging
import math
import re

from selenium.common.exceptions import WebDriverException

from relocator.core.config import OverlayStyle
from relocator.core.exceptions import InvisibleElementError, SelectorEvaluationError
from relocator.core.page import SESSION_LOST, Rect
from relocator.layers.sense.dom import attr, children_of, class_tokens, parent_of, query_first

if TYPE_CHECKING:
    from selenium.webdriver.remote.webelement import WebElement
    from relocator.core.clock import FrameClock
    from relocator.core.page import PageContext

logger = logging.getLogger(__name__)

Z_INDEX_TOP = "2147483647"
EDITOR_CLASSES = ("ProseMirror", "editor")

_HEX_COLOR_RE = re.compile(r"#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})")


@dataclass
class OverlayOptions:
    """Color and optional badge text of one overlay."""
    color: str
    label: Optional[str] = None


@dataclass
class _Overlay:
    node: "WebElement"
    element: "WebElement"
    options: OverlayOptions
    style: Dict[str, str] = field(default_factory=dict)
    animated: Optional[bool] = None  # None until a mode is applied
    visible: bool = True


def normalize_color(color: str) -> str:
    """
    Expand a hex color to #rrggbb.

    The background tint appends a two-digit alpha to the color, and the
    pulse converts it to rgba(), so only hex colors are accepted.

    Raises:
        ValueError: The color is not #rgb or #rrggbb
    """
    match = _HEX_COLOR_RE.fullmatch((color or "").strip())
    if match is None:
        raise ValueError(f"Unsupported overlay color {color!r}: expected #rgb or #rrggbb")
    value = match.group(1).lower()
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    return f"#{value}"


def _rgb(color: str) -> Tuple[int, int, int]:
    value = normalize_color(color)
    return int(value[1:3], 16), int(value[3:5], 16), int(value[5:7], 16)


def hex_to_rgba(color: str, alpha: float) -> str:
    """Convert #rgb / #rrggbb to an rgba() string."""
    r, g, b = _rgb(color)
    return f"rgba({r}, {g}, {b}, {alpha:g})"


def _px(value: float) -> str:
    return f"{value:g}px"


def geometry_styles(rect: Rect) -> Dict[str, str]:
    return {
        "left": _px(rect.left),
        "top": _px(rect.top),
        "width": _px(rect.width),
        "height": _px(rect.height),
    }


class OverlayManager:
    """
    Registry of highlight overlays keyed by id.

    While the number of overlays stays at or below the animation
    threshold every overlay pulses; above it every overlay switches to
    a static glow, and back again when the count drops.

    Example:
        >>> manager = OverlayManager(PageContext(driver), FrameClock())
        >>> manager.init()
        >>> manager.create("scan-0", element, OverlayOptions("#00bfff", "#0"))
        >>> manager.sync()  # call once per frame
    """

    def __init__(
        self,
        page: "PageContext",
        clock: "FrameClock",
        style: Optional[OverlayStyle] = None,
    ):
        """
        Initialize the manager.

        Args:
            page: Scripted access to the tracked page
            clock: Frame clock driving the pulse animation
            style: Colors and animation bounds
        """
        self.page = page
        self.clock = clock
        self.style = style or OverlayStyle()
        self._overlays: Dict[str, _Overlay] = {}
        self._animations: Dict[str, int] = {}
        self._watching = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Start watching the page for scroll and resize."""
        self.page.install_viewport_watch()
        self._watching = True
        logger.debug("Overlay manager initialized")

    def destroy(self) -> None:
        """Remove every overlay and stop watching the page."""
        self.clear_all()
        if self._watching:
            try:
                self.page.uninstall_viewport_watch()
            except WebDriverException as e:
                logger.debug("Viewport watch already gone: %s", e)
            self._watching = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def count(self) -> int:
        return len(self._overlays)

    @property
    def animation_count(self) -> int:
        """Number of live animation handles."""
        return len(self._animations)

    @property
    def overlay_ids(self) -> List[str]:
        return list(self._overlays)

    def has_overlay(self, overlay_id: str) -> bool:
        return overlay_id in self._overlays

    def overlay_style(self, overlay_id: str) -> Dict[str, str]:
        """Last style values written to an overlay node."""
        return dict(self._overlays[overlay_id].style)

    def is_animated(self, overlay_id: str) -> bool:
        return bool(self._overlays[overlay_id].animated)

    def is_visible(self, overlay_id: str) -> bool:
        return self._overlays[overlay_id].visible

    def node_for(self, overlay_id: str) -> Optional["WebElement"]:
        overlay = self._overlays.get(overlay_id)
        return overlay.node if overlay else None

    # ------------------------------------------------------------------
    # Create / remove
    # ------------------------------------------------------------------

    def create(
        self,
        overlay_id: str,
        element: "WebElement",
        options: OverlayOptions,
    ) -> Optional["WebElement"]:
        """
        Create (or replace) the overlay for an element.

        Returns:
            The overlay node, or None if the element has no visible geometry

        Raises:
            ValueError: The color is not #rgb or #rrggbb
        """
        color = normalize_color(options.color)
        self.remove_overlay(overlay_id)

        rect = self._locate(element)
        if rect is None:
            logger.warning("%s", InvisibleElementError(overlay_id))
            return None

        styles = self._base_styles(rect, color)
        label_styles = self._label_styles(color) if options.label else None
        node = self.page.mount_overlay(overlay_id, styles, options.label, label_styles)

        self._overlays[overlay_id] = _Overlay(
            node=node,
            element=element,
            options=OverlayOptions(color, options.label),
            style=styles,
        )
        self._rebalance()
        created = self._overlays.get(overlay_id)
        if created is None:
            return None
        logger.debug(
            "Created overlay %s (%s) [%d/%d]",
            overlay_id,
            "animated" if created.animated else "static",
            self.count,
            self.style.animation_threshold,
        )
        return node

    def remove_overlay(self, overlay_id: str) -> bool:
        """Remove one overlay. Returns False if there was none."""
        self._stop_pulse(overlay_id)
        overlay = self._overlays.pop(overlay_id, None)
        if overlay is None:
            return False

        self._detach(overlay)
        self._rebalance()
        logger.debug("Removed overlay %s", overlay_id)
        return True

    def clear_all(self) -> None:
        """Remove every overlay and cancel every animation."""
        for handle in self._animations.values():
            self.clock.cancel_frame(handle)
        self._animations.clear()

        for overlay in self._overlays.values():
            self._detach(overlay)
        self._overlays.clear()
        logger.debug("Cleared all overlays")

    def _drop(self, overlay_id: str) -> None:
        """Forget an overlay whose node the page no longer has."""
        self._stop_pulse(overlay_id)
        overlay = self._overlays.pop(overlay_id, None)
        if overlay is not None:
            self._detach(overlay)
            logger.debug("Overlay %s lost its node, dropped", overlay_id)

    def _detach(self, overlay: _Overlay) -> None:
        try:
            self.page.remove_node(overlay.node)
        except WebDriverException as e:
            # The page already dropped the node (navigation, re-render)
            logger.debug("Overlay node already detached: %s", e)

    # ------------------------------------------------------------------
    # Position and color
    # ------------------------------------------------------------------

    def sync(self) -> bool:
        """Reposition overlays if the page scrolled or resized since last call."""
        if not self._overlays:
            return False
        if not self.page.consume_viewport_change():
            return False
        self.update_all_positions()
        return True

    def update_all_positions(self) -> int:
        """
        Move every overlay onto its target's current rectangle.

        Targets without geometry hide their overlay until they reappear.

        Returns:
            Number of overlays currently shown
        """
        shown = 0
        before = self.count
        for overlay_id, overlay in list(self._overlays.items()):
            rect = self._locate(overlay.element)
            if rect is None:
                if overlay.visible:
                    logger.debug("Overlay %s target has no geometry, hiding", overlay_id)
                if self._apply(overlay_id, overlay, {"display": "none"}):
                    overlay.visible = False
                continue

            styles = geometry_styles(rect)
            styles["display"] = "block"
            if self._apply(overlay_id, overlay, styles):
                overlay.visible = True
                shown += 1

        if self.count != before:
            self._rebalance()
        return shown

    def update_overlay_color(self, overlay_id: str, color: str) -> bool:
        """
        Recolor an overlay and restart its glow in the current mode.

        Returns:
            False if there is no such overlay, or its node is gone

        Raises:
            ValueError: The color is not #rgb or #rrggbb
        """
        color = normalize_color(color)
        overlay = self._overlays.get(overlay_id)
        if overlay is None:
            return False

        overlay.options.color = color
        applied = self._apply(overlay_id, overlay, {
            "border-color": color,
            "background-color": f"{color}15",
        })
        if not applied:
            self._rebalance()
            return False
        try:
            self.page.apply_label_style(overlay.node, {"background": color})
        except SESSION_LOST:
            raise
        except WebDriverException as e:
            logger.debug("Overlay %s label not restyled: %s", overlay_id, e)

        self._stop_pulse(overlay_id)
        overlay.animated = None
        self._apply_mode(overlay_id, overlay, self._animate_all())
        return True

    # ------------------------------------------------------------------
    # Animation
    # ------------------------------------------------------------------

    def _animate_all(self) -> bool:
        return self.count <= self.style.animation_threshold

    def _rebalance(self) -> None:
        """Put every overlay in the mode the current count calls for."""
        animate = self._animate_all()
        for overlay_id, overlay in list(self._overlays.items()):
            if overlay_id in self._overlays and overlay.animated is not animate:
                self._apply_mode(overlay_id, overlay, animate)
        # Dropping a dead overlay can bring the count back under the threshold
        if self._overlays and self._animate_all() is not animate:
            self._rebalance()

    def _apply_mode(self, overlay_id: str, overlay: _Overlay, animate: bool) -> None:
        if animate:
            self._start_pulse(overlay_id, overlay)
        else:
            self._stop_pulse(overlay_id)
            self._apply(overlay_id, overlay, {
                "box-shadow": f"0 0 {_px(self.style.static_blur)} {overlay.options.color}",
            })
        overlay.animated = animate

    def _start_pulse(self, overlay_id: str, overlay: _Overlay) -> None:
        self._stop_pulse(overlay_id)
        start_ms = self.clock.now() * 1000.0
        period = self.style.pulse_period_ms

        def animate(now_ms: float) -> None:
            if self._overlays.get(overlay_id) is not overlay:
                return
            progress = ((now_ms - start_ms) % period) / period
            intensity = abs(math.sin(progress * math.pi * 2))
            shadow = self.pulse_shadow(overlay.options.color, intensity)
            if not self._apply(overlay_id, overlay, {"box-shadow": shadow}):
                self._rebalance()
                return
            self._animations[overlay_id] = self.clock.request_frame(animate)

        self._animations[overlay_id] = self.clock.request_frame(animate)

    def _stop_pulse(self, overlay_id: str) -> None:
        self.clock.cancel_frame(self._animations.pop(overlay_id, None))

    def pulse_shadow(self, color: str, intensity: float) -> str:
        """box-shadow value for a pulse intensity in [0, 1]."""
        s = self.style
        blur = s.blur_min + (s.blur_max - s.blur_min) * intensity
        alpha = s.alpha_min + (s.alpha_max - s.alpha_min) * intensity
        return f"0 0 {_px(round(blur, 2))} {hex_to_rgba(color, round(alpha, 3))}"

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def _apply(self, overlay_id: str, overlay: _Overlay, styles: Dict[str, str]) -> bool:
        """Write styles to an overlay node. A node the page dropped drops the overlay."""
        try:
            self.page.apply_style(overlay.node, styles)
        except SESSION_LOST:
            raise
        except WebDriverException as e:
            logger.debug("Overlay %s node unreachable: %s", overlay_id, e)
            self._drop(overlay_id)
            return False
        overlay.style.update(styles)
        return True

    def _locate(self, element: "WebElement") -> Optional[Rect]:
        """Target rectangle, borrowing a visible stand-in for hidden inputs."""
        try:
            rect = self.page.bounding_rect(element)
        except SESSION_LOST:
            raise
        except WebDriverException:
            return None
        if not rect.is_degenerate:
            return rect

        surrogate = self._find_surrogate(element)
        if surrogate is None:
            return None
        logger.debug("Using visible stand-in for a zero-size target")
        try:
            return self.page.bounding_rect(surrogate)
        except WebDriverException:
            return None

    def _find_surrogate(self, element: "WebElement") -> Optional["WebElement"]:
        """
        Visible element that renders a hidden field.

        Rich-text editors keep the real <textarea> hidden next to a
        contenteditable surface; the surface is what the user sees.
        """
        parent = parent_of(element)
        if parent is None:
            return None

        try:
            editable = query_first(parent, '[contenteditable="true"]')
        except SelectorEvaluationError:
            editable = None
        if editable is not None and self._is_rendered(editable):
            return editable

        for sibling in children_of(parent):
            if sibling == element or not self._is_rendered(sibling):
                continue
            classes = class_tokens(sibling)
            if any(c in classes for c in EDITOR_CLASSES) or attr(sibling, "role") == "textbox":
                return sibling
        return None

    def _is_rendered(self, element: "WebElement") -> bool:
        try:
            return self.page.is_rendered(element)
        except WebDriverException:
            return False

    @staticmethod
    def _base_styles(rect: Rect, color: str) -> Dict[str, str]:
        styles = {"position": "fixed"}
        styles.update(geometry_styles(rect))
        styles.update({
            "display": "block",
            "border": f"3px solid {color}",
            "box-shadow": f"0 0 10px {color}",
            "background-color": f"{color}15",
            "pointer-events": "none",
            "user-select": "none",
            "z-index": Z_INDEX_TOP,
            "border-radius": "4px",
            "box-sizing": "border-box",
        })
        return styles

    @staticmethod
    def _label_styles(color: str) -> Dict[str, str]:
        return {
            "position": "absolute",
            "top": "-8px",
            "left": "-8px",
            "background": color,
            "color": "white",
            "font-size": "12px",
            "font-weight": "bold",
            "padding": "3px 6px",
            "border-radius": "3px",
            "z-index": "1",
            "pointer-events": "none",
            "box-shadow": "0 2px 4px rgba(0, 0, 0, 0.2)",
            "font-family": '-apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif',
        }
