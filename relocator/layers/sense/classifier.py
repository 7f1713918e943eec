"""
Element Classifier - One capability tag per element.

Classification happens once, at scan time. The resulting tag travels
with the descriptor and the saved entry, and the resolver dispatches on
it instead of inspecting the live node again.
"""

from enum import Enum
from typing import TYPE_CHECKING

from relocator.layers.sense.dom import attr, class_tokens, has_attr, input_type, tag_of

if TYPE_CHECKING:
    from selenium.webdriver.remote.webelement import WebElement


class ElementType(str, Enum):
    """Capability tag of a tracked element."""
    INPUT = "input"
    BUTTON = "button"
    SELECT_DISPLAY = "select-display"
    TEXT_DISPLAY = "text-display"

    @classmethod
    def parse(cls, value: str) -> "ElementType":
        """Parse a wire value; unknown values fall back to text-display."""
        try:
            return cls(value)
        except ValueError:
            return cls.TEXT_DISPLAY


class ElementClassifier:
    """
    Assign exactly one ElementType to any element.

    Rules are evaluated in strict priority order and the first match
    wins: button, input, select-display, text-display.

    Example:
        >>> classifier = ElementClassifier()
        >>> classifier.classify(submit_button)
        <ElementType.BUTTON: 'button'>
    """

    BUTTON_INPUT_TYPES = ("button", "submit", "reset")
    INPUT_TAGS = ("input", "textarea")
    STATIC_DISPLAY_CLASS = "bh-form-static"
    SEMANTIC_NAME_ATTRIBUTE = "data-name"

    def classify(self, element: "WebElement") -> ElementType:
        """Classify an element. Total: stale elements are text-display."""
        if self.is_button(element):
            return ElementType.BUTTON
        if self.is_input(element):
            return ElementType.INPUT
        if self.is_select_display(element):
            return ElementType.SELECT_DISPLAY
        return ElementType.TEXT_DISPLAY

    def is_button(self, element: "WebElement") -> bool:
        tag = tag_of(element)
        if tag == "button":
            return True
        if tag == "input":
            return input_type(element) in self.BUTTON_INPUT_TYPES
        if tag == "a":
            return self._is_button_link(element)
        return False

    def is_input(self, element: "WebElement") -> bool:
        """Text-entry field (button-typed inputs are caught earlier)."""
        return tag_of(element) in self.INPUT_TAGS

    def is_input_like(self, element: "WebElement") -> bool:
        """An input that is neither hidden nor button-typed."""
        if not self.is_input(element) or self.is_button(element):
            return False
        return tag_of(element) == "textarea" or input_type(element) != "hidden"

    def is_select_display(self, element: "WebElement") -> bool:
        if attr(element, "xtype") == "select":
            return True
        return (
            has_attr(element, self.SEMANTIC_NAME_ATTRIBUTE)
            and self.STATIC_DISPLAY_CLASS in class_tokens(element)
        )

    def _is_button_link(self, element: "WebElement") -> bool:
        """Anchors styled or wired as buttons."""
        if attr(element, "role") == "button":
            return True
        if has_attr(element, "data-action"):
            return True
        classes = attr(element, "class") or ""
        return "btn" in classes or "button" in classes
