"""Run-loop notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from ody.config import NotifySetting

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "ody"
LOOP_FINISHED_MESSAGE = "Agent loop complete"


class Notifier(Protocol):
    """Delivers a short notification to the user."""

    def send(self, title: str, message: str) -> None:
        """Deliver one notification; failures must not propagate."""


class LoggingNotifier:
    """Default notifier: writes notifications to the log."""

    def send(self, title: str, message: str) -> None:
        logger.info("[%s] %s", title, message)


@dataclass(slots=True)
class RecordingNotifier:
    """Keeps every notification in memory."""

    sent: list[tuple[str, str]] = field(default_factory=list)

    def send(self, title: str, message: str) -> None:
        self.sent.append((title, message))


def notify_iteration(notifier: Notifier, setting: NotifySetting, iteration: int) -> None:
    if setting is NotifySetting.INDIVIDUAL:
        notifier.send(NOTIFICATION_TITLE, f"Iteration {iteration} complete")


def notify_loop_finished(notifier: Notifier, setting: NotifySetting) -> None:
    if setting is NotifySetting.ALL:
        notifier.send(NOTIFICATION_TITLE, LOOP_FINISHED_MESSAGE)
