"""Exception types raised by the recorder."""


class RecorderError(Exception):
    """Base class for recorder rejections and failures.

    Every error carries a short machine-readable ``code`` alongside the
    human-readable message.
    """

    code = "recorder_error"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)


class InvalidConfigError(RecorderError):
    """Raised when a session configuration fails validation."""
    code = "invalid_config"


class PermissionDeniedError(RecorderError):
    """Raised when microphone permission is missing or refused."""
    code = "permission_denied"


class RecordingInProgressError(RecorderError):
    """Raised when a session is started while another one is active."""
    code = "recording_in_progress"


class NotRecordingError(RecorderError):
    """Raised when stop or cancel is requested with no active session."""
    code = "not_recording"


class CaptureStartError(RecorderError):
    """Raised when the capture backend fails to start."""
    code = "recording_start_error"


class CaptureError(RecorderError):
    """Raised by capture backends when the device or output file fails."""
    code = "capture_error"
