"""Microphone capture backend built on PyAudio."""

import logging
import threading
import wave
from threading import Thread, Event
from typing import List, Optional

import pyaudio

from ..exceptions import CaptureError
from ..models.result import CaptureInfo
from ..models.session import SessionConfig
from ..storage.file_manager import FileManager
from ..vad.classifier import SILENCE_FLOOR_DB, pcm_level_db
from .backend import CaptureBackend

logger = logging.getLogger(__name__)


class PyAudioCaptureBackend(CaptureBackend):
    """Records 16-bit PCM from the default input device into a WAV file.

    A background thread reads the stream continuously and keeps the level
    of the most recent chunk for ``poll_level``.
    """

    def __init__(self, file_manager: FileManager, chunk_size: int = 1024):
        """Initialize the backend.

        Args:
            file_manager: Decides where recordings are written
            chunk_size: Samples per stream read
        """
        self.file_manager = file_manager
        self.chunk_size = chunk_size
        self.format = pyaudio.paInt16

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        self.sample_rate = 0
        self.channels = 0
        self.output_path: Optional[str] = None
        self.total_chunks = 0

        self._lock = threading.Lock()
        self._frames: List[bytes] = []
        self._latest_level_db = SILENCE_FLOOR_DB
        self._error: Optional[BaseException] = None

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None

    def start_capture(self, config: SessionConfig) -> None:
        if self.is_recording:
            raise CaptureError("Capture already in progress")
        if config.format != "wav":
            raise CaptureError(f"Format {config.format!r} is not supported by the PyAudio backend, use 'wav'")

        self.sample_rate = config.sample_rate
        self.channels = config.channels
        self.total_chunks = 0
        self._frames = []
        self._latest_level_db = SILENCE_FLOOR_DB
        self._error = None
        self.output_path = self.file_manager.create_recording_path(config.format)

        try:
            self._open_audio_stream()
        except (OSError, ValueError) as e:
            self._close_audio_stream()
            raise CaptureError(f"Failed to open audio input: {e}") from e

        self.stop_event.clear()
        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()
        self.is_recording = True
        logger.info(f"Audio capture started, writing to {self.output_path}")

    def _open_audio_stream(self) -> None:
        self.pyaudio_instance = pyaudio.PyAudio()
        self.stream = self.pyaudio_instance.open(
            format=self.format,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=self.chunk_size,
            stream_callback=None
        )
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.channels}ch, {self.chunk_size} samples/chunk")

    def _close_audio_stream(self) -> None:
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except OSError as e:
                logger.warning(f"Error closing audio stream: {e}")
            self.stream = None
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None

    def _record_continuously(self) -> None:
        """Internal method: continuous recording loop in background thread."""
        try:
            while not self.stop_event.is_set():
                audio_chunk = self.stream.read(self.chunk_size, exception_on_overflow=False)
                level_db = pcm_level_db(audio_chunk)
                with self._lock:
                    self._frames.append(audio_chunk)
                    self._latest_level_db = level_db
                    self.total_chunks += 1
        except Exception as e:
            logger.error(f"Audio capture failed: {e}", exc_info=True)
            with self._lock:
                self._error = e
        finally:
            self._close_audio_stream()

    def _stop_thread(self) -> None:
        self.stop_event.set()

        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")

        self.recording_thread = None
        self.is_recording = False

    def poll_level(self) -> float:
        with self._lock:
            if self._error is not None:
                raise CaptureError(f"Audio capture failed: {self._error}")
            return self._latest_level_db

    def stop_capture(self) -> CaptureInfo:
        if not self.is_recording:
            raise CaptureError("No capture in progress")

        self._stop_thread()
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}")

        with self._lock:
            frames = self._frames
            self._frames = []

        try:
            self._save_to_file(self.output_path, frames)
        except (OSError, wave.Error) as e:
            raise CaptureError(f"Error saving audio file: {e}") from e

        return CaptureInfo(
            file_path=self.output_path,
            file_size_bytes=self.file_manager.get_file_size(self.output_path),
        )

    def _save_to_file(self, filepath: str, frames: List[bytes]) -> None:
        """Save recorded audio to WAV file."""
        with wave.open(filepath, 'wb') as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(pyaudio.get_sample_size(self.format))
            wf.setframerate(self.sample_rate)

            for chunk in frames:
                wf.writeframes(chunk)

        logger.info(f"Audio saved to {filepath}")

    def discard_capture(self) -> None:
        if self.is_recording:
            self._stop_thread()
        else:
            self._close_audio_stream()

        with self._lock:
            self._frames = []

        if self.output_path:
            try:
                self.file_manager.delete_recording(self.output_path)
            except OSError as e:
                raise CaptureError(f"Failed to delete recording {self.output_path}: {e}") from e
        logger.info("Audio capture discarded")

    def __del__(self):
        """Ensure resources are cleaned up on deletion."""
        if self.is_recording:
            self._stop_thread()
