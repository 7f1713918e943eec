"""
Tracker Channel - Request/response boundary to the page tracker.

Every call is one round trip that completes exactly once, with either
the handler's result or a failure. There is no streaming and no
cancellation; callers wait on the returned future.
"""

from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING
import logging

from selenium.common.exceptions import WebDriverException

from relocator.core.exceptions import ChannelFailure, MessageError
from relocator.core.page import SESSION_LOST

if TYPE_CHECKING:
    from relocator.core.tracker import PageTracker

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    """Operations the tracker answers."""
    SCAN_ALL = "SCAN_ALL"
    SAVE_BY_INDEXES = "SAVE_BY_INDEXES"
    EXTRACT_BY_CONFIG = "EXTRACT_BY_CONFIG"
    GENERATE_REPLICA_DATA = "GENERATE_REPLICA_DATA"
    HIGHLIGHT_BY_INDEX = "HIGHLIGHT_BY_INDEX"
    HIGHLIGHT_BY_CONFIG_ENTRY = "HIGHLIGHT_BY_CONFIG_ENTRY"
    CLEAR_HIGHLIGHT = "CLEAR_HIGHLIGHT"


@dataclass
class Message:
    """A {type, payload} request."""
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format."""
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Create from the wire format."""
        return cls(type=data.get("type", ""), payload=data.get("payload") or {})


class TrackerChannel:
    """
    Send messages to a PageTracker.

    Example:
        >>> channel = TrackerChannel(tracker)
        >>> descriptors = channel.request(MessageType.SCAN_ALL)
        >>> future = channel.send(MessageType.SAVE_BY_INDEXES, {"indexes": [0, 1]})
        >>> entries = future.result()
    """

    def __init__(self, tracker: "PageTracker"):
        self.tracker = tracker

    def send(self, message_type, payload: Optional[Dict[str, Any]] = None) -> Future:
        """
        Deliver one message.

        Returns:
            A future completed once with the response, or with a
            ChannelFailure if the page context is gone
        """
        message = Message(type=_type_name(message_type), payload=payload or {})
        future: Future = Future()
        future.set_running_or_notify_cancel()

        try:
            response = self.tracker.handle_message(message.to_dict())
        except SESSION_LOST as e:
            logger.error("%s: browser session lost", message.type)
            future.set_exception(ChannelFailure(f"{message.type}: page context is gone", e))
        except WebDriverException as e:
            logger.error("%s: page became unreachable: %s", message.type, e)
            future.set_exception(ChannelFailure(f"{message.type}: page unreachable", e))
        else:
            future.set_result(response)

        return future

    def request(
        self,
        message_type,
        payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Send and wait for the response.

        Raises:
            ChannelFailure: The page context is gone
            MessageError: The tracker answered with {"error": ...}
        """
        name = _type_name(message_type)
        response = self.send(name, payload).result(timeout)
        if isinstance(response, dict) and "error" in response:
            raise MessageError(name, response["error"])
        return response


def _type_name(message_type) -> str:
    if isinstance(message_type, MessageType):
        return message_type.value
    return str(message_type)
