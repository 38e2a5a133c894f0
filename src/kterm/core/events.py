"""Events flowing through the bus into the state machine.

Background tasks never touch state directly; everything they learn is sent
as one of these values.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from kterm.core.types import ResourceItem, ResourceType


@dataclass(frozen=True)
class KeyPress:
    """A key from the terminal.

    ``key`` uses Textual key names ("j", "down", "ctrl+c", "shift+tab").
    ``character`` is the printable character, if the key produces one.
    """

    key: str
    character: str | None = None

    @property
    def char(self) -> str | None:
        """The printable character, or None for control and navigation keys."""
        if self.character and len(self.character) == 1 and self.character.isprintable():
            return self.character
        return None


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class ResourcesUpdated:
    """Full snapshot of the watched resources, ordered by key."""

    items: tuple[ResourceItem, ...]
    generation: int = 0


@dataclass(frozen=True)
class NamespacesLoaded:
    namespaces: tuple[str, ...]
    preferred: str | None = None


@dataclass(frozen=True)
class DetailLoaded:
    text: str


@dataclass(frozen=True)
class LogLine:
    line: str
    generation: int = 0


@dataclass(frozen=True)
class LogStreamEnded:
    generation: int = 0


@dataclass(frozen=True)
class ContextsLoaded:
    contexts: tuple[str, ...]
    current: str


@dataclass(frozen=True)
class ContextSwitchFailed:
    """A switch did not connect; `active` is the context still in use."""

    active: str | None


@dataclass(frozen=True)
class ErrorEvent:
    message: str


@dataclass(frozen=True)
class SearchResultsBatch:
    context: str
    resource_type: ResourceType
    items: tuple[ResourceItem, ...] = field(default=())
    generation: int = 0


@dataclass(frozen=True)
class SearchScanComplete:
    context: str
    generation: int = 0


AppEvent = (
    KeyPress
    | Resize
    | Tick
    | ResourcesUpdated
    | NamespacesLoaded
    | DetailLoaded
    | LogLine
    | LogStreamEnded
    | ContextsLoaded
    | ContextSwitchFailed
    | ErrorEvent
    | SearchResultsBatch
    | SearchScanComplete
)

# Raw terminal input, dropped from the queue while a child process owns the terminal
INPUT_EVENT_TYPES: tuple[type, ...] = (KeyPress, Resize)


def is_input_event(event: AppEvent) -> bool:
    return isinstance(event, INPUT_EVENT_TYPES)
