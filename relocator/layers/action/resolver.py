"""
Element Resolver - Re-acquire saved elements on a live page.

Each saved entry is resolved through an ordered chain of strategies
chosen by its element type. The first strategy that accepts a
candidate wins and its name is reported back, so callers can see how
an element was found. A strategy that cannot evaluate its selector is
a miss; it never aborts the rest of the chain.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING
import logging

from selenium.common.exceptions import WebDriverException

from relocator.core.exceptions import ElementNotFoundError, SelectorEvaluationError
from relocator.core.page import SESSION_LOST
from relocator.layers.sense.classifier import ElementClassifier, ElementType
from relocator.layers.sense.dom import (
    BUTTON_LIKE_SELECTOR,
    INPUT_LIKE_SELECTOR,
    button_caption,
    css_string,
    form_group_label,
    is_displayed,
    is_overlay_node,
    query_all,
    tag_of,
    text_content,
)

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver
    from selenium.webdriver.remote.webelement import WebElement
    from relocator.layers.sense.scanner import SavedConfigEntry

logger = logging.getLogger(__name__)


class FoundBy:
    """Strategy tags reported in ExtractResult.found_by."""
    CONTAINER_LABEL = "container+label"
    CONTAINER = "container"
    CONTAINER_UNVERIFIED = "container (label unverified)"
    NAME = "name"
    NAME_LABEL = "name+label"
    NAME_FIRST = "name (first)"
    PLACEHOLDER = "placeholder"
    BUTTON_TEXT = "button-text"
    BUTTON_TEXT_LABEL = "button-text+label"
    DATA_NAME = "data-name"
    DATA_NAME_LABEL = "data-name+label"
    DATA_NAME_FIRST = "data-name (first)"


@dataclass
class Match:
    """A live element accepted by a strategy."""
    element: "WebElement"
    found_by: str


@dataclass
class ExtractResult:
    """Outcome of resolving one saved entry."""
    config_index: int
    label: Optional[str]
    element: "WebElement"
    value: str
    found_by: str
    element_type: ElementType = ElementType.TEXT_DISPLAY

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format (the live element stays behind)."""
        return {
            "configIndex": self.config_index,
            "label": self.label,
            "value": self.value,
            "foundBy": self.found_by,
            "elementType": self.element_type.value,
        }


Strategy = Callable[["SavedConfigEntry"], Optional[Match]]


class ElementResolver:
    """
    Resolve saved entries to live elements.

    Strategy chains per element type:

    - input: container (+label), name attribute, placeholder
    - button: container (+button text, +label), document-wide button text
    - select-display / text-display: container (data-name, xtype, any
      data-name descendant), document-wide data-name

    Example:
        >>> resolver = ElementResolver(driver)
        >>> for result in resolver.resolve_all(entries):
        ...     print(result.label, result.value, result.found_by)
    """

    def __init__(
        self,
        driver: "WebDriver",
        classifier: Optional[ElementClassifier] = None,
    ):
        """
        Initialize the resolver.

        Args:
            driver: Selenium WebDriver for the tracked page
            classifier: Element classifier used for button checks
        """
        self.driver = driver
        self.classifier = classifier or ElementClassifier()
        display_chain: List[Strategy] = [self._by_container_display, self._by_data_name]
        self._chains: Dict[ElementType, List[Strategy]] = {
            ElementType.INPUT: [self._by_container_input, self._by_name, self._by_placeholder],
            ElementType.BUTTON: [self._by_container_button, self._by_button_text],
            ElementType.SELECT_DISPLAY: display_chain,
            ElementType.TEXT_DISPLAY: display_chain,
        }

    def resolve_one(self, entry: "SavedConfigEntry") -> Optional[Match]:
        """
        Resolve one entry. Never raises for selector or page churn.

        Returns:
            The first accepted Match, or None when every strategy missed
        """
        for strategy in self._chains[entry.element_type]:
            try:
                match = strategy(entry)
            except SESSION_LOST:
                raise
            except SelectorEvaluationError as e:
                logger.debug("%s: %s", strategy.__name__, e)
                continue
            except WebDriverException as e:
                # Candidate went stale mid-check
                logger.debug("%s: page changed during resolution: %s", strategy.__name__, e)
                continue
            if match is not None:
                return match
        return None

    def resolve_all(self, entries: List["SavedConfigEntry"]) -> List[ExtractResult]:
        """
        Resolve a batch of entries.

        Unresolved entries are omitted, so the result has at most
        len(entries) items, in entry order.
        """
        results: List[ExtractResult] = []
        for config_index, entry in enumerate(entries):
            match = self.resolve_one(entry)
            if match is None:
                logger.warning("%s", ElementNotFoundError(entry.display_name, config_index))
                continue

            value = self.extract_value(match.element, entry.element_type)
            results.append(ExtractResult(
                config_index=config_index,
                label=entry.label,
                element=match.element,
                value=value,
                found_by=match.found_by,
                element_type=entry.element_type,
            ))
            logger.info("[%d] found %s via %s", config_index, entry.display_name, match.found_by)

        logger.info("Resolved %d/%d entries", len(results), len(entries))
        return results

    def extract_value(self, element: "WebElement", element_type: ElementType) -> str:
        """Current value of a resolved element."""
        try:
            if element_type == ElementType.INPUT:
                value = element.get_property("value")
                return "" if value is None else str(value)
            if element_type == ElementType.BUTTON:
                return button_caption(element)
        except WebDriverException:
            return ""
        return text_content(element).strip()

    # ------------------------------------------------------------------
    # Container strategies
    # ------------------------------------------------------------------

    def _containers(self, entry: "SavedConfigEntry") -> List["WebElement"]:
        if not entry.container_selector:
            return []
        return query_all(self.driver, entry.container_selector)

    def _verify_label(self, element: "WebElement", label: Optional[str]) -> Optional[str]:
        """
        Check a candidate against the saved label.

        Returns the strategy tag on acceptance, None on rejection.
        """
        if not label:
            return FoundBy.CONTAINER
        page_label = form_group_label(element)
        if page_label is None:
            return FoundBy.CONTAINER_UNVERIFIED
        if page_label == label:
            return FoundBy.CONTAINER_LABEL
        return None

    def _by_container_input(self, entry: "SavedConfigEntry") -> Optional[Match]:
        for container in self._containers(entry):
            if self.classifier.is_input_like(container):
                candidate = container
            else:
                candidate = self._first_visible_input(container)
            if candidate is None:
                continue
            found_by = self._verify_label(candidate, entry.label)
            if found_by:
                return Match(candidate, found_by)
        return None

    def _first_visible_input(self, container: "WebElement") -> Optional["WebElement"]:
        for element in query_all(container, INPUT_LIKE_SELECTOR):
            if is_displayed(element) and not self.classifier.is_button(element):
                return element
        return None

    def _by_container_button(self, entry: "SavedConfigEntry") -> Optional[Match]:
        for container in self._containers(entry):
            if self.classifier.is_button(container):
                candidates = [container]
            else:
                candidates = [
                    e for e in query_all(container, BUTTON_LIKE_SELECTOR)
                    if self.classifier.is_button(e)
                ]
            for candidate in candidates:
                if entry.button_text and button_caption(candidate) != entry.button_text:
                    continue
                found_by = self._verify_label(candidate, entry.label)
                if found_by:
                    return Match(candidate, found_by)
        return None

    def _by_container_display(self, entry: "SavedConfigEntry") -> Optional[Match]:
        for container in self._containers(entry):
            candidate = self._display_descendant(container, entry)
            if candidate is None:
                continue
            found_by = self._verify_label(candidate, entry.label)
            if found_by:
                return Match(candidate, found_by)
        return None

    def _display_descendant(
        self, container: "WebElement", entry: "SavedConfigEntry"
    ) -> Optional["WebElement"]:
        selectors = []
        if entry.data_name:
            selectors.append(f"[data-name={css_string(entry.data_name)}]")
        if entry.xtype:
            selectors.append(f"[xtype={css_string(entry.xtype)}]")
        selectors.append("[data-name]")

        for selector in selectors:
            matches = query_all(container, selector)
            if matches:
                return matches[0]
        return None

    # ------------------------------------------------------------------
    # Document-wide fallbacks
    # ------------------------------------------------------------------

    def _pick_by_label(
        self,
        candidates: List["WebElement"],
        label: Optional[str],
        unique_tag: str,
        label_tag: str,
        first_tag: str,
    ) -> Optional[Match]:
        """Unique candidate wins; several are narrowed by label, else first."""
        if not candidates:
            return None
        if len(candidates) == 1:
            return Match(candidates[0], unique_tag)
        if label:
            for candidate in candidates:
                if form_group_label(candidate) == label:
                    return Match(candidate, label_tag)
        return Match(candidates[0], first_tag)

    def _by_name(self, entry: "SavedConfigEntry") -> Optional[Match]:
        if not entry.fallback_name:
            return None
        name = css_string(entry.fallback_name)
        candidates = query_all(
            self.driver,
            f'input[name={name}]:not([type="hidden"]), textarea[name={name}]',
        )
        return self._pick_by_label(
            candidates, entry.label, FoundBy.NAME, FoundBy.NAME_LABEL, FoundBy.NAME_FIRST
        )

    def _by_placeholder(self, entry: "SavedConfigEntry") -> Optional[Match]:
        if not entry.placeholder:
            return None
        placeholder = css_string(entry.placeholder)
        candidates = query_all(
            self.driver,
            f'input[placeholder={placeholder}]:not([type="hidden"]), '
            f"textarea[placeholder={placeholder}]",
        )
        if candidates:
            return Match(candidates[0], FoundBy.PLACEHOLDER)
        return None

    def _by_button_text(self, entry: "SavedConfigEntry") -> Optional[Match]:
        if not entry.button_text:
            return None
        candidates = [
            e for e in query_all(self.driver, BUTTON_LIKE_SELECTOR)
            if self.classifier.is_button(e) and button_caption(e) == entry.button_text
        ]
        if not candidates:
            return None
        if entry.label:
            for candidate in candidates:
                if form_group_label(candidate) == entry.label:
                    return Match(candidate, FoundBy.BUTTON_TEXT_LABEL)
        return Match(candidates[0], FoundBy.BUTTON_TEXT)

    def _by_data_name(self, entry: "SavedConfigEntry") -> Optional[Match]:
        if not entry.data_name:
            return None
        candidates = query_all(self.driver, f"[data-name={css_string(entry.data_name)}]")
        candidates = [c for c in candidates if tag_of(c) and not is_overlay_node(c)]
        return self._pick_by_label(
            candidates,
            entry.label,
            FoundBy.DATA_NAME,
            FoundBy.DATA_NAME_LABEL,
            FoundBy.DATA_NAME_FIRST,
        )
