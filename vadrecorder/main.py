"""Command line entry point for vadrecorder."""

import sys
import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pubsub import pub
from rich.console import Console
from rich.table import Table

from .audio.publisher import SessionEventPublisher
from .audio.replay import ReplayCaptureBackend
from .config import VadRecorderConfig
from .engine.scheduler import ManualClock
from .exceptions import RecorderError
from .models.events import SessionEvent
from .models.result import RecordingResult, StopReason
from .services.recording_service import AudioRecorder, HIGH_QUALITY_PRESET, VOICE_MESSAGE_PRESET
from .storage.file_manager import FileManager
from .vad.classifier import SILENCE_FLOOR_DB

logger = logging.getLogger(__name__)

SESSION_TOPIC = "recorder.session"

PRESETS = {
    'voice': VOICE_MESSAGE_PRESET,
    'hq': HIGH_QUALITY_PRESET,
}


class RecorderApp:
    """Wires configuration, logging and the recording service together."""

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        self.config = VadRecorderConfig(config_path)
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)
        self.console = Console()
        self.publisher = SessionEventPublisher(SESSION_TOPIC)
        pub.subscribe(self.on_session_event, SESSION_TOPIC)

    def on_session_event(self, event: SessionEvent) -> None:
        labels = {
            'started': "[blue]Listening...[/blue]",
            'voice_detected': "[green]Voice detected[/green]",
            'thinking_pause': "[yellow]Pause detected, waiting for more speech[/yellow]",
            'speech_resumed': "[green]Speech resumed[/green]",
            'cancelled': "[red]Recording cancelled[/red]",
        }
        label = labels.get(event.event_type)
        if label:
            self.console.print(label)

    def record(self, preset: Optional[str], overrides: Dict[str, Any], save_info: bool) -> RecordingResult:
        """Record from the microphone until voice activity detection ends the session."""
        service = AudioRecorder.from_config(self.config, publisher=self.publisher)

        settings = dict(PRESETS.get(preset, {}))
        settings.update(overrides)

        future = service.start_recording(**settings)
        try:
            result = future.result()
        except KeyboardInterrupt:
            if not service.is_recording():
                raise
            logger.info("Interrupted, stopping recording")
            result = service.stop_recording()

        if save_info and result.file_path:
            FileManager(self.config.get_data_directory()).save_recording_info(result)
        return result

    def simulate(self, trace_path: str, amplitude: bool, overrides: Dict[str, Any]) -> RecordingResult:
        """Replay a loudness trace through the engine on virtual time."""
        trace = load_trace(trace_path)
        clock = ManualClock()
        backend = ReplayCaptureBackend(
            trace['levels'],
            trailing_level=trace.get('trailing_level', SILENCE_FLOOR_DB),
            amplitude=amplitude,
        )
        service = AudioRecorder.from_config(self.config, backend=backend, clock=clock,
                                            publisher=self.publisher)

        settings = dict(trace.get('recording') or {})
        settings.update(overrides)
        future = service.start_recording(**settings)

        config = service.build_config(**settings)
        step = service.recorder.poll_interval
        deadline = config.max_duration_seconds + step
        while not future.done() and clock.now() <= deadline:
            clock.advance(step)

        return future.result(timeout=0)

    def print_result(self, result: RecordingResult) -> None:
        table = Table(title="Recording result")
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        style = "red" if result.reason is StopReason.ERROR else "green"
        table.add_row("Reason", f"[{style}]{result.reason.value}[/{style}]")
        table.add_row("Duration", f"{result.duration:.2f}s")
        table.add_row("Speech", f"{result.actual_speech_duration:.2f}s")
        table.add_row("File", result.file_path or "-")
        table.add_row("Size", f"{result.file_size} bytes")
        if result.error_message:
            table.add_row("Error", result.error_message)
        self.console.print(table)


def load_trace(trace_path: str) -> Dict[str, Any]:
    """Load a loudness trace: a YAML list of levels or a mapping with 'levels'."""
    with open(trace_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if isinstance(data, list):
        data = {'levels': data}
    if not isinstance(data, dict) or not isinstance(data.get('levels'), list):
        raise ValueError(f"Trace file {trace_path} must contain a list of levels")
    return data


def setup_logging(config: VadRecorderConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/vadrecorder.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("vadrecorder starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def collect_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides = {}
    if args.max_duration is not None:
        overrides['max_duration_seconds'] = args.max_duration
    if args.thinking_pause is not None:
        overrides['thinking_pause_threshold'] = args.thinking_pause
    if args.end_of_speech is not None:
        overrides['end_of_speech_threshold'] = args.end_of_speech
    return overrides


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="vadrecorder - voice-activity driven audio recording"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in settings)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version="vadrecorder v0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    record_parser = subparsers.add_parser("record", help="Record from the microphone until you stop talking")
    record_parser.add_argument("--preset", choices=sorted(PRESETS), help="Use a recording preset")
    record_parser.add_argument("--save-info", action="store_true",
                               help="Write the result as JSON next to the recording")

    simulate_parser = subparsers.add_parser("simulate", help="Replay a loudness trace through the detector")
    simulate_parser.add_argument("trace", type=str, help="YAML file with one level per poll tick")
    simulate_parser.add_argument("--amplitude", action="store_true",
                                 help="Trace holds raw 16-bit amplitudes instead of dB")

    for sub in (record_parser, simulate_parser):
        sub.add_argument("--max-duration", type=float, help="Maximum recording length in seconds")
        sub.add_argument("--thinking-pause", type=float, help="Silence tolerated as a thinking pause (s)")
        sub.add_argument("--end-of-speech", type=float, help="Silence that ends the recording (s)")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for vadrecorder."""
    args = build_parser().parse_args(argv)

    try:
        app = RecorderApp(args.config, args.log_level)
        overrides = collect_overrides(args)
        if args.command == "record":
            result = app.record(args.preset, overrides, args.save_info)
        else:
            result = app.simulate(args.trace, args.amplitude, overrides)
        app.print_result(result)
    except RecorderError as e:
        print(f"Error [{e.code}]: {e}")
        logger.error(f"Recorder error: {e}")
        sys.exit(1)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        logger.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
