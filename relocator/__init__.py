"""
Relocator - Stable element tracking for web forms

Scan a live page for inputs, buttons and display fields, remember how to
find them again, and re-acquire them after the page re-renders with
regenerated ids and class names.
"""

__version__ = "0.1.0"

from relocator.core.tracker import PageTracker

__all__ = [
    "PageTracker",
    "__version__",
]
