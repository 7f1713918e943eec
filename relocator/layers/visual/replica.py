"""
Replica Generator - Page-relative layout of extraction results.

Positions are expressed as fractions of the full document size, so a
preview can redraw the tracked fields at any scale.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING
import logging

from selenium.common.exceptions import WebDriverException

from relocator.layers.sense.classifier import ElementType

if TYPE_CHECKING:
    from relocator.core.page import PageContext
    from relocator.layers.action.resolver import ExtractResult
    from relocator.layers.sense.scanner import SavedConfigEntry

logger = logging.getLogger(__name__)


@dataclass
class ReplicaLayoutEntry:
    """One tracked element laid out on a unit page."""
    config_index: int
    label: Optional[str]
    element_type: ElementType
    value: str
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format."""
        return {
            "configIndex": self.config_index,
            "label": self.label,
            "elementType": self.element_type.value,
            "value": self.value,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


def _fraction(value: float, total: float) -> float:
    return value / total if total else 0.0


class ReplicaGenerator:
    """
    Turn extraction results into normalized layout entries.

    Example:
        >>> generator = ReplicaGenerator(PageContext(driver))
        >>> layout = generator.generate(results, entries)
        >>> layout[0].x  # 0.0 .. 1.0
    """

    def __init__(self, page: "PageContext"):
        self.page = page

    def generate(
        self,
        results: Sequence["ExtractResult"],
        entries: Sequence["SavedConfigEntry"],
    ) -> List[ReplicaLayoutEntry]:
        """
        Lay out each result relative to the document.

        Args:
            results: Resolved elements, as returned by the resolver
            entries: The saved entries the results refer to (for elementType)

        Returns:
            One layout entry per result whose element is still attached
        """
        metrics = self.page.metrics()
        layout: List[ReplicaLayoutEntry] = []

        for result in results:
            try:
                rect = self.page.bounding_rect(result.element)
            except WebDriverException as e:
                logger.warning("Entry %d went stale before layout: %s", result.config_index, e)
                continue

            element_type = result.element_type
            if 0 <= result.config_index < len(entries):
                element_type = entries[result.config_index].element_type

            layout.append(ReplicaLayoutEntry(
                config_index=result.config_index,
                label=result.label,
                element_type=element_type,
                value=result.value,
                x=_fraction(rect.left + metrics.scroll_x, metrics.width),
                y=_fraction(rect.top + metrics.scroll_y, metrics.height),
                width=_fraction(rect.width, metrics.width),
                height=_fraction(rect.height, metrics.height),
            ))

        logger.info("Generated replica layout for %d elements", len(layout))
        return layout
