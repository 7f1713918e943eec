"""Core module - Configuration, scheduling and page access."""

from relocator.core.clock import FrameClock
from relocator.core.config import OverlayStyle, TrackerConfig, VolatilityPolicy
from relocator.core.page import PageContext

__all__ = ["FrameClock", "OverlayStyle", "PageContext", "TrackerConfig", "VolatilityPolicy"]
