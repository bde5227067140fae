"""Auto-observation: proactively ask the Live model about the camera view.

While the model is waiting for input and the user has been silent, a tick
timer asks for feedback on the latest frame. Feedback requests are gated by a
cooldown since the last auto request and by how fresh the last frame is.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sightline.logging_config import get_logger

logger: Any = get_logger(__name__)

MANUAL_VISION_PROMPT = (
    "Analyze the latest camera frame now. Give concise feedback about what you see "
    "and one actionable suggestion."
)
AUTO_VISION_PROMPT = (
    "Based on the latest camera frame, provide a short helpful update. "
    "Mention what changed and one next step."
)


class FeedbackMode(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


@dataclass(slots=True)
class ActivityClock:
    """Timestamps on the observer's clock; None means "never"."""

    last_user_activity: float | None = None
    last_frame_capture: float | None = None
    last_auto_feedback: float | None = None


class AutoObserver:
    """Silence/cooldown/freshness driven feedback prompts.

    The gating flags (``enabled``, ``connected``, ``camera_enabled``,
    ``waiting_for_input``) are plain attributes owned by the caller.
    """

    def __init__(
        self,
        send_text: Callable[[str], None],
        *,
        clock: Callable[[], float] = time.monotonic,
        enabled: bool = True,
        interval: float = 7.0,
        silence: float = 6.0,
        cooldown: float = 6.5,
        freshness: float = 4.5,
    ) -> None:
        self._send_text = send_text
        self._clock = clock
        self.interval = interval
        self.silence = silence
        self.cooldown = cooldown
        self.freshness = freshness

        self.enabled = enabled
        self.connected = False
        self.camera_enabled = False
        self.waiting_for_input = False

        self.activity = ActivityClock()
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        """Whether the tick timer is allowed to fire at all."""
        return self.enabled and self.connected and self.camera_enabled and self.waiting_for_input

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def note_user_activity(self) -> None:
        self.activity.last_user_activity = self._clock()

    def note_frame_captured(self) -> None:
        self.activity.last_frame_capture = self._clock()

    def reset_feedback(self) -> None:
        self.activity.last_auto_feedback = None

    def reset(self) -> None:
        self.activity = ActivityClock()

    def silence_elapsed(self, now: float | None = None) -> bool:
        last = self.activity.last_user_activity
        if last is None:
            return True
        now = self._clock() if now is None else now
        return now - last >= self.silence

    def frame_is_fresh(self, now: float | None = None) -> bool:
        last = self.activity.last_frame_capture
        if last is None:
            return False
        now = self._clock() if now is None else now
        return now - last <= self.freshness

    def cooldown_elapsed(self, now: float | None = None) -> bool:
        last = self.activity.last_auto_feedback
        if last is None:
            return True
        now = self._clock() if now is None else now
        return now - last >= self.cooldown

    def tick(self) -> bool:
        """One timer tick; returns True if an auto prompt was sent."""
        if not self.active:
            return False
        if not self.silence_elapsed():
            return False
        return self.request_feedback(FeedbackMode.AUTO)

    def request_feedback(self, mode: FeedbackMode) -> bool:
        """Send a vision prompt if the camera and channel are ready.

        Auto requests additionally honour the cooldown. Manual requests count
        as user activity.
        """
        if not (self.connected and self.camera_enabled):
            return False

        now = self._clock()
        if mode is FeedbackMode.AUTO and not self.cooldown_elapsed(now):
            return False
        if not self.frame_is_fresh(now):
            return False

        if mode is FeedbackMode.AUTO:
            self._send_text(AUTO_VISION_PROMPT)
            self.activity.last_auto_feedback = now
            logger.debug("Auto-observation prompt sent")
        else:
            self._send_text(MANUAL_VISION_PROMPT)
            self.activity.last_user_activity = now
        return True

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.tick()
