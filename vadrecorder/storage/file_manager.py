"""File management for recording output and result metadata."""

import json
import logging
import time
from pathlib import Path
from typing import List, Optional

from ..models.result import RecordingResult

logger = logging.getLogger(__name__)


class FileManager:
    """Manages where recordings are written and their metadata sidecars."""

    def __init__(self, data_dir: str = "./data"):
        """Initialize file manager with data directory.

        Args:
            data_dir: Base directory for storing all data
        """
        self.data_dir = Path(data_dir)
        self.recordings_dir = self.data_dir / "recordings"

        self._ensure_directories()

        logger.info(f"FileManager initialized with data_dir: {self.data_dir}")

    def _ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        for directory in [self.data_dir, self.recordings_dir]:
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {directory}")

    def create_recording_path(self, format: str) -> str:
        """Reserve a unique output path for a new recording.

        Args:
            format: File extension / format tag (e.g. "wav")

        Returns:
            Full path for the new recording file
        """
        millis = int(time.time() * 1000)
        path = self.recordings_dir / f"recording_{millis}.{format}"
        while path.exists():
            millis += 1
            path = self.recordings_dir / f"recording_{millis}.{format}"

        logger.debug(f"Reserved recording path: {path}")
        return str(path)

    def get_file_size(self, file_path: str) -> int:
        """Size of a file in bytes, 0 if it does not exist."""
        path = Path(file_path)
        if not file_path or not path.is_file():
            return 0
        return path.stat().st_size

    def delete_recording(self, file_path: str) -> bool:
        """Delete a recording and its metadata sidecar.

        Returns:
            True if the recording file existed and was removed
        """
        if not file_path:
            return False

        path = Path(file_path)
        self._info_path(path).unlink(missing_ok=True)

        if not path.exists():
            logger.debug(f"Recording already absent: {path}")
            return False

        path.unlink()
        logger.info(f"Deleted recording: {path}")
        return True

    def _info_path(self, audio_path: Path) -> Path:
        return audio_path.with_name(audio_path.name + ".json")

    def save_recording_info(self, result: RecordingResult) -> str:
        """Save a recording result as JSON next to its audio file.

        Args:
            result: Result to save

        Returns:
            Path to saved info file
        """
        if not result.file_path:
            raise ValueError("Cannot save info for a result without a file path")

        info_file = self._info_path(Path(result.file_path))

        try:
            with open(info_file, 'w', encoding='utf-8') as f:
                json.dump(result.to_dict(), f, indent=2)

            logger.info(f"Recording info saved: {info_file}")
            return str(info_file)

        except Exception as e:
            logger.error(f"Error saving recording info: {e}")
            raise

    def load_recording_info(self, file_path: str) -> Optional[RecordingResult]:
        """Load the saved result for a recording.

        Returns:
            RecordingResult or None if no readable info exists
        """
        info_file = self._info_path(Path(file_path))

        if not info_file.exists():
            logger.warning(f"Recording info file not found: {info_file}")
            return None

        try:
            with open(info_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return RecordingResult.from_dict(data)

        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Error loading recording info: {e}")
            return None

    def list_recordings(self) -> List[str]:
        """List recording files, oldest first."""
        recordings = [
            str(path) for path in self.recordings_dir.iterdir()
            if path.is_file() and path.name.startswith("recording_") and path.suffix != ".json"
        ]
        recordings.sort()
        logger.debug(f"Found {len(recordings)} recordings")
        return recordings

    def cleanup_old_recordings(self, max_age_days: int = 30) -> int:
        """Delete recordings older than ``max_age_days``.

        Returns:
            Number of recordings removed
        """
        cutoff_time = time.time() - (max_age_days * 24 * 60 * 60)
        cleaned_count = 0

        for file_path in self.list_recordings():
            if Path(file_path).stat().st_mtime < cutoff_time:
                if self.delete_recording(file_path):
                    cleaned_count += 1

        logger.info(f"Cleaned up {cleaned_count} old recordings")
        return cleaned_count
