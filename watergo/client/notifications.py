# watergo/client/notifications.py
"""
Stage-entry notifications for the tracking screen.

The firing rule lives in StageNotifier.observe(); what a stage looks and
sounds like lives in the tables below. Adding a stage means adding rows,
not branches.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from watergo.models.status import OrderStatus

logger = logging.getLogger(__name__)

DEFAULT_CUE = "stage-notification.mp3"
ARRIVED_CUE = "stage-arrived.mp3"

# Cue overrides; every other stage uses DEFAULT_CUE.
# ON_THE_WAY is the courier-at-the-door stage in the courier app.
STAGE_CUES: dict[OrderStatus, str] = {
    OrderStatus.ON_THE_WAY: ARRIVED_CUE,
}

STAGE_MESSAGES: dict[OrderStatus, tuple[str, str]] = {
    OrderStatus.PENDING: (
        "Order Placed",
        "Your order is in the queue.",
    ),
    OrderStatus.ASSIGNED: (
        "Courier Assigned",
        "A courier has been assigned to your order.",
    ),
    OrderStatus.ON_THE_WAY: (
        "Courier On The Way",
        "The courier is on the way.",
    ),
    OrderStatus.DELIVERED: (
        "Order Delivered",
        "Your order has been delivered. Thank you!",
    ),
    OrderStatus.CANCELLED: (
        "Order Cancelled",
        "Your order has been cancelled.",
    ),
}


@dataclass(frozen=True)
class StageNotification:
    stage: OrderStatus
    title: str
    body: str
    # None when sound is muted
    cue: str | None


def notification_for(stage: OrderStatus, sound_enabled: bool = True) -> StageNotification:
    title, body = STAGE_MESSAGES.get(stage, (stage.value.replace("_", " ").title(), ""))
    cue = STAGE_CUES.get(stage, DEFAULT_CUE) if sound_enabled else None
    return StageNotification(stage=stage, title=title, body=body, cue=cue)


Listener = Callable[[StageNotification], None]


class StageNotifier:
    """
    Turns a stream of observed stages into one event per real change.

    previous_stage starts unset, so the very first observation fires.
    Repeats of the same stage never fire. Failed polls never reach
    observe(), so they cannot reset or advance previous_stage.
    """

    def __init__(self, sound_enabled: bool = True):
        self.previous_stage: OrderStatus | None = None
        self.sound_enabled = sound_enabled
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def observe(self, stage: OrderStatus) -> StageNotification | None:
        if stage == self.previous_stage:
            return None

        logger.debug("Stage change %s -> %s", self.previous_stage, stage)
        self.previous_stage = stage
        event = notification_for(stage, self.sound_enabled)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A broken listener must not stop the poll loop
                logger.exception("Stage listener %r failed", listener)
        return event

    def set_sound_enabled(self, enabled: bool) -> None:
        self.sound_enabled = enabled

    def reset(self) -> None:
        """Forget the last stage (used when tracking switches orders)."""
        self.previous_stage = None
