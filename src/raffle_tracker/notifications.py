from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .models import ContributionRecord

log = logging.getLogger(__name__)


class NotificationKind(Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    denom: str
    record: Optional[ContributionRecord] = None
    error: Optional[Exception] = None


Listener = Callable[[Notification], None]


class Notifier:
    """
    Fan-out channel for background resolution events.

    COMPLETED fires once for a contribution that was closed by the user and
    then finished resolving; FAILED fires when a resolution run gives up.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, notification: Notification) -> None:
        log.debug("notify %s %s", notification.kind.value, notification.denom)
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                # A broken listener must not stall the resolver that published.
                log.exception("Notification listener failed for %s", notification.denom)

    def completed(self, record: ContributionRecord) -> None:
        self.publish(Notification(NotificationKind.COMPLETED, record.denom, record=record))

    def failed(self, denom: str, error: Exception, record: Optional[ContributionRecord] = None) -> None:
        self.publish(Notification(NotificationKind.FAILED, denom, record=record, error=error))
