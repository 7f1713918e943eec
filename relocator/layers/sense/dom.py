"""
DOM helpers shared by the scanner, the resolver and the overlay layer.

All reads go through the Selenium element API. A read on an element
that went stale returns "absent" rather than raising, so callers can
treat churn as a miss; only CSS queries raise, as SelectorEvaluationError.
"""

from typing import Callable, List, Optional, TYPE_CHECKING
import re

from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.by import By

from relocator.core.exceptions import SelectorEvaluationError
from relocator.core.page import OVERLAY_MARKER, SESSION_LOST

if TYPE_CHECKING:
    from selenium.webdriver.remote.webelement import WebElement


INPUT_LIKE_SELECTOR = (
    'input:not([type="hidden"]):not([type="submit"])'
    ':not([type="button"]):not([type="reset"]), textarea'
)

BUTTON_LIKE_SELECTOR = (
    'button, input[type="button"], input[type="submit"], input[type="reset"], '
    'a[role="button"], a[data-action], a[class*="btn"], a[class*="button"]'
)

LABEL_SELECTOR = '.bh-form-label, label, [class*="label"]'

ROOT_TAGS = ("html", "body")

_PLAIN_IDENT_CHAR = re.compile(r"[A-Za-z0-9_\-]")


def attr(element: "WebElement", name: str) -> Optional[str]:
    """Attribute value as written in the markup, or None."""
    try:
        return element.get_dom_attribute(name)
    except WebDriverException:
        return None


def has_attr(element: "WebElement", name: str) -> bool:
    return attr(element, name) is not None


def tag_of(element: "WebElement") -> str:
    """Lower-case tag name, or an empty string for a stale element."""
    try:
        return (element.tag_name or "").lower()
    except WebDriverException:
        return ""


def class_tokens(element: "WebElement") -> List[str]:
    return (attr(element, "class") or "").split()


def input_type(element: "WebElement") -> str:
    """The effective input type; a missing type attribute means text."""
    return (attr(element, "type") or "text").strip().lower()


def text_content(element: "WebElement") -> str:
    try:
        return element.get_property("textContent") or ""
    except WebDriverException:
        return ""


def visible_text(element: "WebElement") -> str:
    try:
        return (element.text or "").strip()
    except WebDriverException:
        return ""


def is_displayed(element: "WebElement") -> bool:
    try:
        return element.is_displayed()
    except WebDriverException:
        return False


def parent_of(element: "WebElement") -> Optional["WebElement"]:
    """Parent element; None above <html> or for a detached element."""
    if tag_of(element) in ("html", ""):
        return None
    try:
        return element.find_element(By.XPATH, "..")
    except WebDriverException:
        return None


def children_of(element: "WebElement") -> List["WebElement"]:
    try:
        return element.find_elements(By.XPATH, "./*")
    except WebDriverException:
        return []


def query_all(root, selector: str) -> List["WebElement"]:
    """
    Evaluate a CSS selector under a root (driver or element).

    Raises:
        SelectorEvaluationError: malformed selector or stale root
    """
    try:
        return root.find_elements(By.CSS_SELECTOR, selector)
    except SESSION_LOST:
        raise
    except WebDriverException as e:
        raise SelectorEvaluationError(selector, e) from e


def query_first(root, selector: str) -> Optional["WebElement"]:
    matches = query_all(root, selector)
    return matches[0] if matches else None


def closest(
    element: "WebElement",
    predicate: Callable[["WebElement"], bool],
    include_self: bool = True,
) -> Optional["WebElement"]:
    """Nearest ancestor (or the element itself) satisfying a predicate."""
    current = element if include_self else parent_of(element)
    while current is not None:
        if predicate(current):
            return current
        current = parent_of(current)
    return None


def is_form_group(element: "WebElement") -> bool:
    """Matches `.bh-form-group, [class*="form"]`."""
    classes = attr(element, "class") or ""
    return "bh-form-group" in classes.split() or "form" in classes


def label_text(container: "WebElement") -> Optional[str]:
    """
    Trimmed text of the first label-like node in a container.

    Returns None when the container has no label node at all, and an
    empty string when it has one without text.
    """
    try:
        label = query_first(container, LABEL_SELECTOR)
    except SelectorEvaluationError:
        return None
    if label is None:
        return None
    return text_content(label).strip()


def form_group_label(element: "WebElement") -> Optional[str]:
    """Label text of the nearest form-group-like ancestor."""
    group = closest(element, is_form_group)
    if group is None:
        return None
    return label_text(group)


def is_overlay_node(element: "WebElement") -> bool:
    """True for nodes the overlay layer owns."""
    return has_attr(element, OVERLAY_MARKER)


def css_string(value: str) -> str:
    """Quote a value for use inside an attribute selector."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\a ")
    return f'"{escaped}"'


def css_identifier(value: str) -> str:
    """Escape an id or class token the way CSS.escape() does."""
    out = []
    for i, ch in enumerate(value):
        leading_digit = ch.isdigit() and (i == 0 or (i == 1 and value[0] == "-"))
        if leading_digit:
            out.append(f"\\{ord(ch):x} ")
        elif _PLAIN_IDENT_CHAR.match(ch) or ord(ch) >= 0x80:
            out.append(ch)
        else:
            out.append("\\" + ch)
    if value == "-":
        return "\\-"
    return "".join(out)


def button_caption(element: "WebElement") -> str:
    """Visible caption of a button, falling back to its value."""
    return visible_text(element) or (attr(element, "value") or "").strip()
