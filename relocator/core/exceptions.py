"""
Exceptions - Failure taxonomy for element tracking.

Every failure the core can report derives from RelocatorError. Most of
them never escape a batch operation: a strategy that hits a bad selector
is a miss, an entry that cannot be resolved is omitted, an invisible
target simply gets no overlay.
"""

from typing import Any, Optional


class RelocatorError(Exception):
    """Base exception for the framework."""
    pass


class ConfigError(RelocatorError):
    """Raised when a stored or imported configuration is invalid."""
    pass


class SelectorEvaluationError(RelocatorError):
    """
    Raised when a selector cannot be evaluated.

    Covers malformed selectors as well as query roots that went stale
    because the page re-rendered underneath them.
    """

    def __init__(self, selector: str, original_exception: Optional[BaseException] = None):
        super().__init__(f"Could not evaluate selector: {selector}")
        self.selector = selector
        self.original_exception = original_exception


class ElementNotFoundError(RelocatorError):
    """Raised when every resolution strategy for an entry is exhausted."""

    def __init__(self, entry_label: str, config_index: Optional[int] = None):
        where = f" (entry {config_index})" if config_index is not None else ""
        super().__init__(f"Element not found: {entry_label}{where}")
        self.entry_label = entry_label
        self.config_index = config_index


class InvisibleElementError(RelocatorError):
    """Raised when a target has zero geometry and no visible stand-in."""

    def __init__(self, overlay_id: str):
        super().__init__(f"Element for overlay {overlay_id} has no visible geometry")
        self.overlay_id = overlay_id


class ChannelFailure(RelocatorError):
    """
    Raised when the page context is gone.

    The browser window was closed, the session died, or the page
    navigated away mid-call. The whole request fails; retrying is the
    caller's decision.
    """

    def __init__(self, message: str, original_exception: Optional[BaseException] = None):
        super().__init__(message)
        self.original_exception = original_exception


class MessageError(RelocatorError):
    """Raised when the page context answered a request with an error."""

    def __init__(self, message_type: str, error: Any):
        super().__init__(f"{message_type} failed: {error}")
        self.message_type = message_type
        self.error = error
