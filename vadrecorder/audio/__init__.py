"""Audio capture backends and session event publishing."""

from .backend import CaptureBackend
from .publisher import SessionEventPublisher
from .replay import ReplayCaptureBackend

__all__ = [
    'CaptureBackend',
    'ReplayCaptureBackend',
    'SessionEventPublisher',
]
