"""Persistence - Saved configuration storage."""

from relocator.persistence.config_store import ConfigStore

__all__ = ["ConfigStore"]
