"""
Domain events raised by source control operations.

Subscribers register a callable per event class. Publishing calls every
subscriber of the event class (and of its base classes) in registration order.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Type

from releasegraph.model.version import ModuleVersion, NodePath, Version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleEvent:
    """Base class of events concerning a module."""

    node_path: NodePath


@dataclass(frozen=True)
class VersionCreatedEvent(ModuleEvent):
    version: Version

    @property
    def module_version(self) -> ModuleVersion:
        return ModuleVersion(self.node_path, self.version)


@dataclass(frozen=True)
class DynamicVersionCreatedEvent(VersionCreatedEvent):
    """A new branch was created and pushed."""


@dataclass(frozen=True)
class StaticVersionCreatedEvent(VersionCreatedEvent):
    """A new tag was created and pushed."""


class EventBus:
    def __init__(self):
        self._subscribers: Dict[Type[ModuleEvent], List[Callable]] = {}

    def subscribe(self, event_class: Type[ModuleEvent], callback: Callable) -> None:
        self._subscribers.setdefault(event_class, []).append(callback)

    def unsubscribe(self, event_class: Type[ModuleEvent], callback: Callable) -> None:
        callbacks = self._subscribers.get(event_class, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def publish(self, event: ModuleEvent) -> None:
        logger.debug(f"Publishing {type(event).__name__} for {event.node_path}")
        for event_class in type(event).__mro__:
            for callback in list(self._subscribers.get(event_class, [])):
                callback(event)
