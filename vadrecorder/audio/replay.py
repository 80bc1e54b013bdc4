"""Capture backend that replays a recorded loudness trace."""

import logging
from typing import Iterable, List, Optional

from ..exceptions import CaptureError
from ..models.result import CaptureInfo
from ..models.session import SessionConfig
from ..vad.classifier import SILENCE_FLOOR_DB, amplitude_to_db
from .backend import CaptureBackend

logger = logging.getLogger(__name__)


class ReplayCaptureBackend(CaptureBackend):
    """Feeds one pre-recorded level per poll, then a constant trailing level.

    Useful for reproducing a session offline: pair it with a ManualClock and
    the recorder makes exactly the decisions it made live. No audio file is
    produced.
    """

    def __init__(self,
                 levels: Iterable[float],
                 trailing_level: float = SILENCE_FLOOR_DB,
                 amplitude: bool = False,
                 full_scale: float = 32767.0):
        """Initialize the replay backend.

        Args:
            levels: Loudness per poll, in dB (or linear amplitude if ``amplitude``)
            trailing_level: dB level reported once the trace is exhausted
            amplitude: Treat ``levels`` as raw amplitudes to convert to dB
            full_scale: Full-scale amplitude used for conversion
        """
        values = list(levels)
        if amplitude:
            values = [amplitude_to_db(value, full_scale) for value in values]

        self.levels: List[float] = values
        self.trailing_level = trailing_level
        self.position = 0
        self.is_recording = False
        self.fail_at: Optional[int] = None

    def start_capture(self, config: SessionConfig) -> None:
        if self.is_recording:
            raise CaptureError("Capture already in progress")
        self.position = 0
        self.is_recording = True
        logger.info(f"Replaying {len(self.levels)} levels")

    def poll_level(self) -> float:
        if not self.is_recording:
            raise CaptureError("No capture in progress")
        if self.fail_at is not None and self.position >= self.fail_at:
            raise CaptureError(f"Replay failure injected at poll {self.position}")

        if self.position < len(self.levels):
            level = self.levels[self.position]
        else:
            level = self.trailing_level
        self.position += 1
        return level

    def stop_capture(self) -> CaptureInfo:
        if not self.is_recording:
            raise CaptureError("No capture in progress")
        self.is_recording = False
        return CaptureInfo(file_path="", file_size_bytes=0)

    def discard_capture(self) -> None:
        self.is_recording = False
