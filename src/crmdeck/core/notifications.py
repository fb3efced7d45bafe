"""User-facing success/failure notifications (toast messages)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationLevel(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str


class Notifier(Protocol):
    def notify(self, level: NotificationLevel, message: str) -> None: ...


@dataclass
class NotificationLog:
    """Notifier that records messages until the presentation layer drains them."""

    entries: list[Notification] = field(default_factory=list)

    def notify(self, level: NotificationLevel, message: str) -> None:
        logger.debug("notify[%s] %s", level, message)
        self.entries.append(Notification(level=NotificationLevel(level), message=message))

    def success(self, message: str) -> None:
        self.notify(NotificationLevel.SUCCESS, message)

    def error(self, message: str) -> None:
        self.notify(NotificationLevel.ERROR, message)

    def drain(self) -> list[Notification]:
        entries, self.entries = self.entries, []
        return entries
