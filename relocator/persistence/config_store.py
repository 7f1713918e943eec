"""
Config Store - Saved entries on disk.

The store file holds the entries the user chose to track together with
the time they were saved:

    {"savedConfig": [...], "timestamp": 1718000000000}

Import and export use the bare entry array, pretty-printed.
"""

from typing import Any, Dict, List, Optional
import json
import logging
import os
import time

from relocator.core.exceptions import ConfigError
from relocator.layers.sense.scanner import SavedConfigEntry

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def parse_config_json(text: str) -> List[SavedConfigEntry]:
    """
    Parse an exported entry array.

    Raises:
        ConfigError: The text is not JSON, not an array, or holds non-objects
    """
    if not text or not text.strip():
        raise ConfigError("No configuration JSON given")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON: {e}") from e
    if not isinstance(data, list):
        raise ConfigError("Configuration must be a JSON array")

    entries = []
    for position, item in enumerate(data):
        if not isinstance(item, dict):
            raise ConfigError(f"Entry {position} is not an object")
        entries.append(SavedConfigEntry.from_dict(item))
    return entries


class ConfigStore:
    """
    JSON file holding the saved configuration.

    Example:
        >>> store = ConfigStore("./.relocator/config.json")
        >>> store.save(entries)
        >>> store.load() == entries
        True
    """

    def __init__(self, path: str = "./.relocator/config.json"):
        """
        Initialize the store.

        Args:
            path: Location of the store file (its directory is created on save)
        """
        self.path = path

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def _read(self) -> Optional[Dict[str, Any]]:
        if not self.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Store file {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("savedConfig", []), list):
            raise ConfigError(f"Store file {self.path} has an unexpected layout")
        return data

    def load(self) -> List[SavedConfigEntry]:
        """Saved entries, or an empty list if nothing was saved yet."""
        data = self._read()
        if data is None:
            return []
        return [SavedConfigEntry.from_dict(item) for item in data.get("savedConfig", [])]

    @property
    def timestamp(self) -> Optional[int]:
        """Epoch milliseconds of the last save."""
        data = self._read()
        return data.get("timestamp") if data else None

    def save(self, entries: List[SavedConfigEntry]) -> str:
        """
        Replace the stored entries.

        Returns:
            Path to the store file
        """
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        data = {
            "savedConfig": [entry.to_dict() for entry in entries],
            "timestamp": _now_ms(),
        }
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.info("Saved %d entries to %s", len(entries), self.path)
        return self.path

    def delete(self, config_index: int) -> SavedConfigEntry:
        """Remove one entry by position and save the rest."""
        entries = self.load()
        if not 0 <= config_index < len(entries):
            raise ConfigError(f"No saved entry at position {config_index}")
        removed = entries.pop(config_index)
        self.save(entries)
        return removed

    def clear(self) -> bool:
        """Delete the store file. Returns False if there was none."""
        if not self.exists():
            return False
        os.remove(self.path)
        logger.info("Cleared %s", self.path)
        return True

    def export_json(self, entries: Optional[List[SavedConfigEntry]] = None) -> str:
        """Entry array as pretty-printed JSON (the stored entries by default)."""
        if entries is None:
            entries = self.load()
        return json.dumps([entry.to_dict() for entry in entries], indent=2, ensure_ascii=False)

    def import_json(self, text: str) -> List[SavedConfigEntry]:
        """Validate an exported entry array and make it the stored configuration."""
        entries = parse_config_json(text)
        self.save(entries)
        return entries
