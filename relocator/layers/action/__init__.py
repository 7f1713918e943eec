"""Action Layer - Re-acquisition of saved elements."""

from relocator.layers.action.resolver import ElementResolver, ExtractResult, Match

__all__ = ["ElementResolver", "ExtractResult", "Match"]
