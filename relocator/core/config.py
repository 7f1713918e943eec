"""
Configuration - Tunable policies for scanning, resolving and highlighting.

The volatility thresholds were tuned by observation on real pages, not
derived. They live here as an explicit policy so they can be overridden
per site instead of being baked into the selector builder.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Pattern
import re


DEFAULT_ID_PATTERN = r"jqx|random|dynamic|\d{6,}"
DEFAULT_CLASS_PATTERN = r"jqx|random|dynamic|\d{5,}"

DEFAULT_SEMANTIC_ATTRIBUTES = [
    "data-name",
    "data-field",
    "data-caption",
    "emap-role",
    "data-role",
    "xtype",
]


@dataclass
class VolatilityPolicy:
    """
    Decides which ids and class tokens are likely regenerated.

    A value is volatile when its pattern matches anywhere in it
    (case-insensitive). Ids and classes have separate patterns because
    framework class names carry shorter numeric suffixes than ids.
    """
    id_pattern: str = DEFAULT_ID_PATTERN
    class_pattern: str = DEFAULT_CLASS_PATTERN
    max_depth: int = 5
    max_classes: int = 2
    semantic_attributes: List[str] = field(
        default_factory=lambda: list(DEFAULT_SEMANTIC_ATTRIBUTES)
    )

    def __post_init__(self):
        self._id_re: Pattern[str] = re.compile(self.id_pattern, re.IGNORECASE)
        self._class_re: Pattern[str] = re.compile(self.class_pattern, re.IGNORECASE)

    def is_stable_id(self, value: str) -> bool:
        """Check if an id survives reloads."""
        if not value:
            return False
        return self._id_re.search(value) is None

    def is_stable_class(self, value: str) -> bool:
        """Check if a single class token survives reloads."""
        if not value:
            return False
        return self._class_re.search(value) is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id_pattern": self.id_pattern,
            "class_pattern": self.class_pattern,
            "max_depth": self.max_depth,
            "max_classes": self.max_classes,
            "semantic_attributes": list(self.semantic_attributes),
        }


@dataclass
class OverlayStyle:
    """Colors and animation bounds for highlight overlays."""
    scan_color: str = "#00bfff"
    saved_color: str = "#4caf50"
    extract_color: str = "#ff9800"
    highlight_color: str = "#4caf50"
    animation_threshold: int = 20  # Above this many overlays, go static
    pulse_period_ms: float = 2000.0
    blur_min: float = 10.0
    blur_max: float = 20.0
    alpha_min: float = 0.5
    alpha_max: float = 0.8
    static_blur: float = 20.0


@dataclass
class TrackerConfig:
    """Configuration for a PageTracker session."""
    volatility: VolatilityPolicy = field(default_factory=VolatilityPolicy)
    overlay: OverlayStyle = field(default_factory=OverlayStyle)
    index_highlight_seconds: float = 1.0
    entry_highlight_seconds: float = 2.0
    frame_rate: int = 60
    store_path: str = "./.relocator/config.json"
