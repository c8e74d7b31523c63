"""Completion event delivery."""

from .bus import CompletionEventBus, CompletionHandler


__all__ = ["CompletionEventBus", "CompletionHandler"]
