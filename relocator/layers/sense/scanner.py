"""
Element Scanner - Discovery of trackable elements.

Walks the page once, classifies every candidate element and records
how to find it again: its container's stable selector, its label and
the attributes later resolution strategies fall back on.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING
import logging

from relocator.layers.sense.classifier import ElementClassifier, ElementType
from relocator.layers.sense.dom import (
    attr,
    button_caption,
    closest,
    has_attr,
    input_type,
    is_overlay_node,
    label_text,
    parent_of,
    query_all,
    tag_of,
)
from relocator.layers.sense.selector_builder import StableSelectorBuilder

if TYPE_CHECKING:
    from selenium.webdriver.remote.webdriver import WebDriver
    from selenium.webdriver.remote.webelement import WebElement

logger = logging.getLogger(__name__)


@dataclass
class ElementDescriptor:
    """
    One element found by a scan.

    Descriptors are only meaningful within their scan generation: the
    next scan renumbers everything.
    """
    index: int
    label: Optional[str]
    name: Optional[str]
    id: Optional[str]
    type: str  # Input type for inputs, tag name otherwise
    element_type: ElementType
    data_name: Optional[str]
    xtype: Optional[str]
    container_path: str
    placeholder: Optional[str] = None
    button_text: Optional[str] = None
    disabled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format."""
        return {
            "index": self.index,
            "label": self.label,
            "name": self.name,
            "id": self.id,
            "type": self.type,
            "elementType": self.element_type.value,
            "dataName": self.data_name,
            "xtype": self.xtype,
            "containerPath": self.container_path,
            "placeholder": self.placeholder,
            "buttonText": self.button_text,
            "disabled": self.disabled,
        }

    def __str__(self) -> str:
        """Human-readable one-liner."""
        title = self.label or self.name or self.button_text or self.data_name or "(unnamed)"
        return f"#{self.index} [{self.element_type.value}] {title} @ {self.container_path}"


@dataclass
class SavedConfigEntry:
    """The durable part of a descriptor, kept across page reloads."""
    label: Optional[str]
    name: Optional[str]
    container_selector: str
    fallback_name: Optional[str]
    placeholder: Optional[str]
    element_type: ElementType
    data_name: Optional[str] = None
    xtype: Optional[str] = None
    button_text: Optional[str] = None
    index: Optional[int] = None
    found_by: Optional[str] = None

    @classmethod
    def from_descriptor(cls, descriptor: ElementDescriptor) -> "SavedConfigEntry":
        return cls(
            label=descriptor.label,
            name=descriptor.name,
            container_selector=descriptor.container_path,
            fallback_name=descriptor.name,
            placeholder=descriptor.placeholder,
            element_type=descriptor.element_type,
            data_name=descriptor.data_name,
            xtype=descriptor.xtype,
            button_text=descriptor.button_text,
            index=descriptor.index,
        )

    @property
    def display_name(self) -> str:
        return (
            self.label
            or self.fallback_name
            or self.name
            or self.button_text
            or self.data_name
            or "(unnamed)"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire/store format."""
        data = {
            "index": self.index,
            "label": self.label,
            "name": self.name,
            "containerSelector": self.container_selector,
            "fallbackName": self.fallback_name,
            "placeholder": self.placeholder,
            "elementType": self.element_type.value,
            "dataName": self.data_name,
            "xtype": self.xtype,
            "buttonText": self.button_text,
        }
        if self.found_by:
            data["foundBy"] = self.found_by
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedConfigEntry":
        """Create from the wire/store format."""
        return cls(
            label=data.get("label"),
            name=data.get("name"),
            container_selector=data.get("containerSelector") or "",
            fallback_name=data.get("fallbackName"),
            placeholder=data.get("placeholder"),
            element_type=ElementType.parse(data.get("elementType") or ""),
            data_name=data.get("dataName"),
            xtype=data.get("xtype"),
            button_text=data.get("buttonText"),
            index=data.get("index"),
            found_by=data.get("foundBy"),
        )


class ElementScanner:
    """
    Find and describe every trackable element on the page.

    Keeps the latest scan generation so later calls can map an index
    back to its live element.

    Example:
        >>> scanner = ElementScanner(driver)
        >>> for descriptor in scanner.scan():
        ...     print(descriptor)
    """

    # Candidate elements, in one document-order query
    CANDIDATE_SELECTOR = ", ".join([
        'input:not([type="hidden"])',
        "textarea",
        "button",
        'a[role="button"]',
        "a[data-action]",
        'a[class*="btn"]',
        'a[class*="button"]',
        'p[xtype="select"]',
        "p[data-name]",
        "span[data-name]",
        "div.bh-form-static[data-name]",
    ])

    # Ancestors that anchor a container, tried in order from the parent up
    CONTAINER_ATTRIBUTES = ["data-name", "data-field", "data-caption"]

    def __init__(
        self,
        driver: "WebDriver",
        classifier: Optional[ElementClassifier] = None,
        selector_builder: Optional[StableSelectorBuilder] = None,
    ):
        """
        Initialize the scanner.

        Args:
            driver: Selenium WebDriver for the tracked page
            classifier: Element classifier (a default one is created)
            selector_builder: Container selector builder
        """
        self.driver = driver
        self.classifier = classifier or ElementClassifier()
        self.selector_builder = selector_builder or StableSelectorBuilder()
        self._generation: List[Tuple[ElementDescriptor, "WebElement"]] = []

    @property
    def descriptors(self) -> List[ElementDescriptor]:
        """Descriptors of the latest scan."""
        return [descriptor for descriptor, _ in self._generation]

    def scan(self) -> List[ElementDescriptor]:
        """
        Scan the page, replacing the previous generation.

        Returns:
            Descriptors in document order, indexed from 0
        """
        self._generation = []
        candidates = query_all(self.driver, self.CANDIDATE_SELECTOR)

        for element in candidates:
            if self._is_overlay_owned(element):
                continue
            descriptor = self.describe(element, len(self._generation))
            if descriptor is None:
                continue
            self._generation.append((descriptor, element))

        logger.info("Scanned %d trackable elements", len(self._generation))
        return self.descriptors

    def element_for(self, index: int) -> Optional["WebElement"]:
        """Live element of a descriptor from the latest scan."""
        for descriptor, element in self._generation:
            if descriptor.index == index:
                return element
        return None

    def descriptor_for(self, index: int) -> Optional[ElementDescriptor]:
        for descriptor, _ in self._generation:
            if descriptor.index == index:
                return descriptor
        return None

    def describe(self, element: "WebElement", index: int) -> Optional[ElementDescriptor]:
        """Build the descriptor for one element; None if it went stale."""
        tag = tag_of(element)
        if not tag:
            return None

        element_type = self.classifier.classify(element)
        container = self.find_container(element)
        label = label_text(container) if container is not None else None

        name = element_id = placeholder = button_text = None
        disabled = False

        if element_type == ElementType.INPUT:
            name = attr(element, "name") or None
            element_id = attr(element, "id") or None
            placeholder = attr(element, "placeholder") or None
            raw_type = "textarea" if tag == "textarea" else input_type(element)
        elif element_type == ElementType.BUTTON:
            name = attr(element, "name") or None
            element_id = attr(element, "id") or None
            button_text = button_caption(element) or None
            disabled = has_attr(element, "disabled") or attr(element, "aria-disabled") == "true"
            raw_type = input_type(element) if tag == "input" else tag
        else:
            raw_type = tag

        container_path = self.selector_builder.generate(container if container is not None else element)

        return ElementDescriptor(
            index=index,
            label=label or None,
            name=name,
            id=element_id,
            type=raw_type,
            element_type=element_type,
            data_name=attr(element, "data-name"),
            xtype=attr(element, "xtype"),
            container_path=container_path,
            placeholder=placeholder,
            button_text=button_text,
            disabled=disabled,
        )

    def find_container(self, element: "WebElement") -> Optional["WebElement"]:
        """
        Pick the ancestor that anchors the element's selector.

        Semantic attribute holders above the element win, then form
        groups, then anything whose class mentions a form or field,
        then the direct parent.
        """
        parent = parent_of(element)
        if parent is not None:
            for name in self.CONTAINER_ATTRIBUTES:
                found = closest(parent, lambda node, name=name: has_attr(node, name))
                if found is not None:
                    return found

        predicates = [
            lambda node: "bh-form-group" in (attr(node, "class") or "").split(),
            lambda node: tag_of(node) == "div" and "form" in (attr(node, "class") or ""),
            lambda node: tag_of(node) == "div" and "field" in (attr(node, "class") or ""),
        ]
        for predicate in predicates:
            found = closest(element, predicate)
            if found is not None:
                return found

        return parent

    def _is_overlay_owned(self, element: "WebElement") -> bool:
        if is_overlay_node(element):
            return True
        parent = parent_of(element)
        return parent is not None and is_overlay_node(parent)
