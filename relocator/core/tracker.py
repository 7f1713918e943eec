"""
Page Tracker - The page-side owner of scanning, resolution and overlays.

One tracker is bound to one WebDriver session. It keeps the latest
scan generation and the latest saved configuration, owns the overlay
manager and the frame clock, and answers the boundary operations both
as methods and as {type, payload} messages.
"""

from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING
import logging

from selenium.common.exceptions import WebDriverException

from relocator.core.clock import FrameClock
from relocator.core.config import TrackerConfig
from relocator.core.exceptions import ElementNotFoundError, RelocatorError
from relocator.core.page import SESSION_LOST, PageContext
from relocator.layers.action.resolver import ElementResolver, ExtractResult
from relocator.layers.sense.classifier import ElementClassifier
from relocator.layers.sense.scanner import ElementDescriptor, ElementScanner, SavedConfigEntry
from relocator.layers.sense.selector_builder import StableSelectorBuilder
from relocator.layers.visual.overlay_manager import OverlayManager, OverlayOptions
from relocator.layers.visual.replica import ReplicaGenerator, ReplicaLayoutEntry

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver

logger = logging.getLogger(__name__)


def scan_overlay_id(index: int) -> str:
    return f"scan-{index}"


def extract_overlay_id(config_index: int) -> str:
    return f"extract-{config_index}"


def parse_entries(raw: Any) -> List[SavedConfigEntry]:
    """Entries from a message payload (dicts or entries)."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("config must be a list of entries")
    return [
        item if isinstance(item, SavedConfigEntry) else SavedConfigEntry.from_dict(item)
        for item in raw
    ]


class PageTracker:
    """
    Locate, remember and re-acquire form elements on one page.

    Example:
        >>> tracker = PageTracker(driver)
        >>> descriptors = tracker.scan_all()
        >>> entries = tracker.save_by_indexes([0, 2])
        >>> driver.refresh()
        >>> results = tracker.extract_by_config(entries)
        >>> tracker.run_for(2)  # keep overlays animated and in place
    """

    def __init__(
        self,
        driver: "WebDriver",
        config: Optional[TrackerConfig] = None,
        clock: Optional[FrameClock] = None,
    ):
        """
        Initialize the tracker.

        Args:
            driver: Selenium WebDriver for the tracked page
            config: Policies, colors and timings (defaults apply)
            clock: Frame clock (one is created at the configured frame rate)
        """
        self.driver = driver
        self.config = config or TrackerConfig()
        self.clock = clock or FrameClock(frame_rate=self.config.frame_rate)
        self.page = PageContext(driver)

        classifier = ElementClassifier()
        self.scanner = ElementScanner(
            driver,
            classifier=classifier,
            selector_builder=StableSelectorBuilder(self.config.volatility),
        )
        self.resolver = ElementResolver(driver, classifier=classifier)
        self.overlays = OverlayManager(self.page, self.clock, self.config.overlay)
        self.replica = ReplicaGenerator(self.page)

        self.saved_config: List[SavedConfigEntry] = []
        self._highlight_timers: Dict[str, int] = {}

        self._handlers: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "SCAN_ALL": self._on_scan_all,
            "SAVE_BY_INDEXES": self._on_save_by_indexes,
            "EXTRACT_BY_CONFIG": self._on_extract_by_config,
            "GENERATE_REPLICA_DATA": self._on_generate_replica_data,
            "HIGHLIGHT_BY_INDEX": self._on_highlight_by_index,
            "HIGHLIGHT_BY_CONFIG_ENTRY": self._on_highlight_by_config_entry,
            "CLEAR_HIGHLIGHT": self._on_clear_highlight,
        }

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def scan_all(self) -> List[ElementDescriptor]:
        """Scan the page and mark every descriptor with a numbered overlay."""
        self.clear_highlight()
        descriptors = self.scanner.scan()

        self.overlays.init()
        color = self.config.overlay.scan_color
        for descriptor in descriptors:
            element = self.scanner.element_for(descriptor.index)
            self.overlays.create(
                scan_overlay_id(descriptor.index),
                element,
                OverlayOptions(color, f"#{descriptor.index}"),
            )
        return descriptors

    def save_by_indexes(self, indexes: List[int]) -> List[SavedConfigEntry]:
        """
        Build the saved configuration from the latest scan.

        Replaces the previous saved configuration. Indexes that are not
        part of the latest scan are skipped.
        """
        entries: List[SavedConfigEntry] = []
        color = self.config.overlay.saved_color

        for index in indexes:
            descriptor = self.scanner.descriptor_for(index)
            if descriptor is None:
                logger.warning("Index %s is not part of the latest scan, skipping", index)
                continue
            entries.append(SavedConfigEntry.from_descriptor(descriptor))
            self.overlays.update_overlay_color(scan_overlay_id(index), color)

        self.saved_config = entries
        logger.info("Saved %d entries", len(entries))
        return entries

    def extract_by_config(self, entries: List[SavedConfigEntry]) -> List[ExtractResult]:
        """Resolve saved entries on the current page and mark each hit."""
        self.clear_highlight()
        results = self.resolver.resolve_all(entries)

        self.overlays.init()
        color = self.config.overlay.extract_color
        for result in results:
            self.overlays.create(
                extract_overlay_id(result.config_index),
                result.element,
                OverlayOptions(color, f"✓{result.config_index}"),
            )

        if results:
            self._scroll_to(results[0].element)
        return results

    def generate_replica_data(self, entries: List[SavedConfigEntry]) -> List[ReplicaLayoutEntry]:
        """Resolve entries and lay them out relative to the page."""
        results = self.resolver.resolve_all(entries)
        return self.replica.generate(results, entries)

    def highlight_by_index(self, index: int) -> None:
        """Briefly highlight an element from the latest scan."""
        element = self.scanner.element_for(index)
        if element is None:
            logger.warning("Index %s is not part of the latest scan", index)
            return

        self._flash(
            f"highlight-{index}",
            element,
            OverlayOptions(self.config.overlay.highlight_color),
            self.config.index_highlight_seconds,
        )

    def highlight_by_config_entry(self, config_index: int, entry: SavedConfigEntry) -> None:
        """Resolve one saved entry and briefly highlight it."""
        match = self.resolver.resolve_one(entry)
        if match is None:
            logger.warning("%s", ElementNotFoundError(entry.display_name, config_index))
            return

        self._flash(
            f"highlight-entry-{config_index}",
            match.element,
            OverlayOptions(self.config.overlay.highlight_color, f"✓{config_index}"),
            self.config.entry_highlight_seconds,
        )

    def clear_highlight(self) -> None:
        """Remove every overlay and cancel pending auto-clear timers."""
        for handle in self._highlight_timers.values():
            self.clock.cancel(handle)
        self._highlight_timers.clear()
        self.overlays.clear_all()

    def _scroll_to(self, element) -> None:
        try:
            self.page.scroll_into_view(element)
        except SESSION_LOST:
            raise
        except WebDriverException as e:
            # Re-rendered between lookup and scroll; results still stand
            logger.warning("Could not scroll element into view: %s", e)

    def _flash(
        self,
        overlay_id: str,
        element,
        options: OverlayOptions,
        seconds: float,
    ) -> None:
        self.clock.cancel(self._highlight_timers.pop(overlay_id, None))

        self.overlays.init()
        if self.overlays.create(overlay_id, element, options) is None:
            return
        self._scroll_to(element)

        def expire() -> None:
            self._highlight_timers.pop(overlay_id, None)
            self.overlays.remove_overlay(overlay_id)

        self._highlight_timers[overlay_id] = self.clock.call_later(seconds, expire)

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------

    def pump(self) -> int:
        """Run one frame: reposition if needed, then animations and timers."""
        self.overlays.sync()
        return self.clock.tick()

    def run_for(self, seconds: float) -> None:
        """Keep overlays live for a while (blocking)."""
        self.clock.run_for(seconds, on_frame=self.overlays.sync)

    def close(self) -> None:
        """Remove overlays and page listeners."""
        self.clear_highlight()
        self.overlays.destroy()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def handle_message(self, message: Dict[str, Any]) -> Any:
        """
        Answer one {type, payload} message.

        Returns:
            A JSON-serializable result, or {"error": message} on failure.
            Lost browser sessions propagate to the caller.
        """
        message_type = message.get("type")
        payload = message.get("payload") or {}

        handler = self._handlers.get(message_type)
        if handler is None:
            return {"error": f"Unknown message type: {message_type}"}

        try:
            return handler(payload)
        except (RelocatorError, ValueError, TypeError, KeyError) as e:
            logger.error("%s failed: %s", message_type, e)
            return {"error": str(e)}

    def _on_scan_all(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [d.to_dict() for d in self.scan_all()]

    def _on_save_by_indexes(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        indexes = [int(i) for i in payload.get("indexes") or []]
        return [e.to_dict() for e in self.save_by_indexes(indexes)]

    def _on_extract_by_config(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        entries = parse_entries(payload.get("config"))
        return [r.to_dict() for r in self.extract_by_config(entries)]

    def _on_generate_replica_data(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        entries = parse_entries(payload.get("config"))
        return [e.to_dict() for e in self.generate_replica_data(entries)]

    def _on_highlight_by_index(self, payload: Dict[str, Any]) -> None:
        self.highlight_by_index(int(payload.get("index") or 0))

    def _on_highlight_by_config_entry(self, payload: Dict[str, Any]) -> None:
        config = payload.get("config")
        if not isinstance(config, dict):
            raise ValueError("config must be a single entry")
        self.highlight_by_config_entry(
            int(payload.get("configIndex") or 0),
            SavedConfigEntry.from_dict(config),
        )

    def _on_clear_highlight(self, payload: Dict[str, Any]) -> None:
        self.clear_highlight()
