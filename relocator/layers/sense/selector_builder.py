"""
Stable Selector Builder - Regeneration-resistant CSS paths.

Builds a short selector for a container element by walking up its
ancestors. Volatile ids and class names (widget prefixes, long digit
runs) are skipped so the selector still matches after the page
re-renders with freshly generated identifiers.
"""

from typing import List, Optional, TYPE_CHECKING
import logging

from relocator.core.config import VolatilityPolicy
from relocator.core.exceptions import SelectorEvaluationError
from relocator.layers.sense.dom import (
    ROOT_TAGS,
    attr,
    children_of,
    class_tokens,
    css_identifier,
    css_string,
    parent_of,
    query_all,
    tag_of,
)

if TYPE_CHECKING:
    from selenium.webdriver.remote.webelement import WebElement

logger = logging.getLogger(__name__)


class StableSelectorBuilder:
    """
    Generate container selectors that survive id/class regeneration.

    Each level contributes its tag plus, in order of preference:
    a stable id (which ends the walk), up to two stable classes, a
    semantic attribute, or an :nth-child() qualifier when siblings
    would otherwise be indistinguishable.

    Example:
        >>> builder = StableSelectorBuilder()
        >>> builder.generate(container)
        'form#checkout div.form-group:nth-child(2)'
    """

    def __init__(self, policy: Optional[VolatilityPolicy] = None):
        """
        Initialize the builder.

        Args:
            policy: Volatility heuristic and depth cap (defaults apply)
        """
        self.policy = policy or VolatilityPolicy()

    def generate(self, element: "WebElement") -> str:
        """
        Build the selector for an element.

        Args:
            element: The container to describe

        Returns:
            Levels joined top-down with the descendant combinator
        """
        parts: List[str] = []
        current: Optional["WebElement"] = element
        depth = 0

        while current is not None and depth < self.policy.max_depth:
            tag = tag_of(current)
            if not tag or tag in ROOT_TAGS:
                break
            parent = parent_of(current)
            if parent is None:
                break

            element_id = attr(current, "id")
            if element_id and self.policy.is_stable_id(element_id):
                # Ids are assumed document-unique
                parts.insert(0, f"{tag}#{css_identifier(element_id)}")
                break

            level = self._level_token(current, tag)
            parts.insert(0, level)
            current = parent
            depth += 1

        if not parts:
            return tag_of(element) or "*"
        return " ".join(parts)

    def stable_classes(self, element: "WebElement") -> List[str]:
        """Up to max_classes class tokens the policy considers stable."""
        stable = [c for c in class_tokens(element) if self.policy.is_stable_class(c)]
        return stable[: self.policy.max_classes]

    def _level_token(self, element: "WebElement", tag: str) -> str:
        token = tag
        classes = self.stable_classes(element)
        if classes:
            token += "".join("." + css_identifier(c) for c in classes)

        for name in self.policy.semantic_attributes:
            value = attr(element, name)
            if value:
                return f"{token}[{name}={css_string(value)}]"

        if self._has_similar_siblings(element, token):
            token += f":nth-child({self._nth_child_index(element)})"
        return token

    def _has_similar_siblings(self, element: "WebElement", token: str) -> bool:
        """More than one direct child of the parent matches the token."""
        parent = parent_of(element)
        if parent is None:
            return False
        try:
            return len(query_all(parent, f":scope > {token}")) > 1
        except SelectorEvaluationError:
            logger.debug("Sibling check failed for %s, adding position", token)
            return True

    def _nth_child_index(self, element: "WebElement") -> int:
        parent = parent_of(element)
        if parent is None:
            return 1
        for position, child in enumerate(children_of(parent), start=1):
            if child == element:
                return position
        return 1
