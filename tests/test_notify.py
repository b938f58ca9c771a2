from __future__ import annotations

import logging

import allure

from ody.config import NotifySetting
from ody.notify import (
    LoggingNotifier,
    RecordingNotifier,
    notify_iteration,
    notify_loop_finished,
)

pytestmark = [
    allure.epic("Agent Run Loop"),
    allure.feature("Notifications"),
]


def test_logging_notifier_writes_to_log(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="ody.notify"):
        LoggingNotifier().send("ody", "Agent loop complete")

    assert "[ody] Agent loop complete" in caplog.text


def test_cadence_helpers_follow_setting() -> None:
    notifier = RecordingNotifier()

    for setting in NotifySetting:
        notify_iteration(notifier, setting, 3)
        notify_loop_finished(notifier, setting)

    assert notifier.sent == [("ody", "Agent loop complete"), ("ody", "Iteration 3 complete")]
