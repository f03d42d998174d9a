"""UI-facing layer: the event bus and the workspace controller."""

from .events import EventBus

__all__ = ["EventBus"]
