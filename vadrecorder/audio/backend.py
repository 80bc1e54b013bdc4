"""Capability interface that platform capture backends implement."""

from abc import ABC, abstractmethod

from ..models.result import CaptureInfo
from ..models.session import SessionConfig


class CaptureBackend(ABC):
    """Audio capture device plus its output file, owned by one session at a time."""

    def has_permission(self) -> bool:
        """Whether the process may record from the microphone."""
        return True

    def request_permission(self) -> bool:
        """Ask for microphone permission.

        Returns:
            True if permission is (now) granted
        """
        return self.has_permission()

    @abstractmethod
    def start_capture(self, config: SessionConfig) -> None:
        """Open the device and start writing output.

        Raises:
            CaptureError: If the device or output file cannot be set up
        """
        pass

    @abstractmethod
    def poll_level(self) -> float:
        """Current loudness in dBFS.

        Raises:
            CaptureError: If capture failed after it started
        """
        pass

    @abstractmethod
    def stop_capture(self) -> CaptureInfo:
        """Stop capturing and finalize the output file.

        Raises:
            CaptureError: If the output could not be finalized
        """
        pass

    @abstractmethod
    def discard_capture(self) -> None:
        """Stop capturing and delete any output. Safe to call when not capturing."""
        pass
