"""Structured event sinks.

Components report progress through an injected sink instead of a global
logger so a run can be rendered on the console, written to a log file or
captured in tests without patching.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field
from rich.console import Console
from rich.markup import escape

from kube_reboot.logging_config import get_logger


class Event(BaseModel):
    """A single progress event emitted during a run."""

    name: str
    message: str
    level: int = logging.INFO
    node: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    def render(self) -> str:
        """Plain-text rendering used for log lines."""
        parts = [self.message]
        if self.node:
            parts.append(f"node={self.node}")
        parts.extend(f"{key}={value}" for key, value in self.data.items())
        return " ".join(parts)


class EventSink:
    """Base class for event sinks; subclasses implement emit()."""

    def emit(self, event: Event) -> None:
        raise NotImplementedError

    def info(self, name: str, message: str, node: str | None = None, **fields: Any) -> None:
        self.emit(Event(name=name, message=message, level=logging.INFO, node=node, data=fields))

    def warning(self, name: str, message: str, node: str | None = None, **fields: Any) -> None:
        self.emit(
            Event(name=name, message=message, level=logging.WARNING, node=node, data=fields)
        )

    def error(self, name: str, message: str, node: str | None = None, **fields: Any) -> None:
        self.emit(Event(name=name, message=message, level=logging.ERROR, node=node, data=fields))


class LoggingEventSink(EventSink):
    """Forward events to the standard logging tree."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or get_logger("kube_reboot.events")

    def emit(self, event: Event) -> None:
        self.logger.log(event.level, f"[{event.name}] {event.render()}")


class ConsoleEventSink(LoggingEventSink):
    """Print events with rich and also forward them to logging."""

    STYLES = {
        logging.WARNING: "[yellow]Warning:[/yellow] ",
        logging.ERROR: "[red]Error:[/red] ",
    }

    def __init__(self, console: Console | None = None, logger: logging.Logger | None = None):
        super().__init__(logger)
        self.console = console or Console()

    def emit(self, event: Event) -> None:
        super().emit(event)

        prefix = self.STYLES.get(event.level, "")
        node = f"[cyan]{escape(event.node)}[/cyan] " if event.node else ""
        line = f"{prefix}{node}{escape(event.message)}"
        if event.data:
            details = " ".join(f"{key}={value}" for key, value in event.data.items())
            line += f" [dim]{escape(details)}[/dim]"
        self.console.print(line)


class RecordingEventSink(EventSink):
    """Keep events in memory, in emission order."""

    def __init__(self):
        self.events: list[Event] = []

    def emit(self, event: Event) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [event.name for event in self.events]

    def for_node(self, node: str) -> list[Event]:
        return [event for event in self.events if event.node == node]
