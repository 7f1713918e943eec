"""Sense Layer - Discovery, classification and selector generation."""

from relocator.layers.sense.classifier import ElementClassifier, ElementType
from relocator.layers.sense.scanner import ElementDescriptor, ElementScanner, SavedConfigEntry
from relocator.layers.sense.selector_builder import StableSelectorBuilder

__all__ = [
    "ElementClassifier",
    "ElementDescriptor",
    "ElementScanner",
    "ElementType",
    "SavedConfigEntry",
    "StableSelectorBuilder",
]
