"""Event bus and the events published by the document session core.

The session manager and render pipelines publish events synchronously: by the
time a mutating call returns, every subscriber has already observed it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, TYPE_CHECKING
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events published on the :class:`EventBus`."""


# Published on every render transition; kept out of the debug log.
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Session events
# =============================================================================


@dataclass(slots=True)
class DocumentOpened(Event):
    """A document was appended to the session.

    Attributes:
        document_id: Identifier assigned at open time.
        category: The ``DocumentCategory`` value of the new document.
        path: The filesystem path the document came from, if any.
    """

    document_id: str
    category: str
    path: str | None = None


@dataclass(slots=True)
class DocumentModified(Event):
    """A document's in-memory content was replaced.

    Attributes:
        document_id: The modified document.
        dirty: Whether the content now differs from the last saved snapshot.
    """

    document_id: str
    dirty: bool


@dataclass(slots=True)
class DocumentSaved(Event):
    """The last saved snapshot of a document was refreshed after a persist.

    Attributes:
        document_id: The saved document.
        path: The path the content was written to, if known.
    """

    document_id: str
    path: str | None = None


@dataclass(slots=True)
class DocumentClosed(Event):
    """A document was removed from the session.

    Attributes:
        document_id: The closed document.
        was_dirty: Whether unsaved changes were discarded.
    """

    document_id: str
    was_dirty: bool = False


@dataclass(slots=True)
class ActiveDocumentChanged(Event):
    """The active selection moved.

    Attributes:
        document_id: The newly active document, or ``None`` when the session is empty.
        previous_id: The previously active document, if any.
    """

    document_id: str | None
    previous_id: str | None = None


@dataclass(slots=True)
class DocumentsReordered(Event):
    """The user moved a document inside the tab order.

    Attributes:
        order: Document identifiers in their new order.
    """

    order: tuple[str, ...]


@dataclass(slots=True)
class ViewerModeChanged(Event):
    """The session switched between read and edit mode.

    Attributes:
        mode: The ``ViewerMode`` value now in effect.
    """

    mode: str


# =============================================================================
# Render events
# =============================================================================


@dataclass(slots=True)
class RenderStateChanged(Event):
    """A render pipeline moved to a new state.

    Attributes:
        document_id: The document the pipeline belongs to.
        state: The ``RenderState`` value entered.
        error: Displayable message when the state is ``failed``.
    """

    document_id: str | None
    state: str
    error: str | None = None


@dataclass(slots=True)
class PageRendered(Event):
    """A render completed and painted the surface.

    Attributes:
        document_id: The document the pipeline belongs to.
        page_number: 1-indexed page shown on the surface.
        scale: Zoom factor used for the render.
        rotation: Rotation in degrees used for the render.
    """

    document_id: str | None
    page_number: int
    scale: float
    rotation: int


_QUIET_EVENT_TYPES.add(RenderStateChanged)


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Handlers are stored as weak references where possible (bound methods) so
    a subscriber that goes away never keeps receiving events.

    Example::

        bus = EventBus()
        bus.subscribe(DocumentOpened, lambda event: print(event.document_id))
        bus.publish(DocumentOpened(document_id="abc", category="text"))

    Thread Safety:
        Not thread-safe. All operations happen on the event loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``.

        Subscribing the same handler twice results in two invocations.
        """
        handler_ref = _HandlerRef.create(handler)
        self._handlers[event_type].append(handler_ref)
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Invoke every handler registered for the event's type, in order.

        A handler that raises is logged and the remaining handlers still run.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if handlers is None:
            if not is_quiet:
                logger.debug("No handlers for event type %s", event_type.__name__)
            return

        if not is_quiet:
            logger.debug(
                "Publishing %s to %d handler(s)",
                event_type.__name__,
                len(handlers),
            )

        dead_refs: list[_HandlerRef] = []

        # Iterate over a copy so handlers may subscribe/unsubscribe while running.
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead_refs.append(handler_ref)
                continue

            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for handler_ref in dead_refs:
            if handler_ref in handlers:
                handlers.remove(handler_ref)

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return the number of handlers for ``event_type`` (or in total)."""
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    """Get a human-readable name for a handler for logging purposes."""
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "DocumentOpened",
    "DocumentModified",
    "DocumentSaved",
    "DocumentClosed",
    "ActiveDocumentChanged",
    "DocumentsReordered",
    "ViewerModeChanged",
    "RenderStateChanged",
    "PageRendered",
]
