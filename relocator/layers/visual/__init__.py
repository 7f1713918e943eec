"""Visual Layer - Overlays and page-relative layout."""

from relocator.layers.visual.overlay_manager import OverlayManager, OverlayOptions
from relocator.layers.visual.replica import ReplicaGenerator, ReplicaLayoutEntry

__all__ = ["OverlayManager", "OverlayOptions", "ReplicaGenerator", "ReplicaLayoutEntry"]
