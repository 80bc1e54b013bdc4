"""Unit tests for the command line interface."""

import logging
from pathlib import Path

import pytest
import yaml

from vadrecorder.main import RecorderApp, build_parser, collect_overrides, load_trace, main
from vadrecorder.models.result import StopReason

VOICE = -20.0
SILENCE = -70.0


@pytest.fixture(autouse=True)
def restore_logging():
    """setup_logging replaces the root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_path(temp_data_dir):
    path = Path(temp_data_dir) / "config.yaml"
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump({
            'storage': {'data_directory': 'data'},
            'logging': {'file_path': 'logs/test.log', 'console_output': False},
        }, f)
    return str(path)


@pytest.fixture
def trace_path(temp_data_dir):
    # One level per 100ms poll: voice from 0.2s to 0.9s, then silence
    path = Path(temp_data_dir) / "trace.yaml"
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump({'levels': [SILENCE] + [VOICE] * 8 + [SILENCE] * 5}, f)
    return str(path)


@pytest.mark.unit
class TestLoadTrace:
    """Test cases for trace loading."""

    def test_list_trace(self, temp_data_dir):
        path = Path(temp_data_dir) / "list.yaml"
        path.write_text("- -70\n- -20\n")

        assert load_trace(str(path)) == {'levels': [-70, -20]}

    def test_mapping_trace(self, trace_path):
        trace = load_trace(trace_path)

        assert len(trace['levels']) == 14

    def test_invalid_trace(self, temp_data_dir):
        path = Path(temp_data_dir) / "bad.yaml"
        path.write_text("levels: loud\n")

        with pytest.raises(ValueError, match="list of levels"):
            load_trace(str(path))


@pytest.mark.unit
class TestCommandLine:
    """Test cases for argument parsing and the simulate command."""

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_collect_overrides(self):
        args = build_parser().parse_args(["record", "--preset", "voice", "--max-duration", "30",
                                          "--end-of-speech", "4"])

        assert args.preset == "voice"
        assert collect_overrides(args) == {'max_duration_seconds': 30.0,
                                           'end_of_speech_threshold': 4.0}

    def test_setup_writes_log_file(self, config_path, temp_data_dir):
        RecorderApp(config_path)

        assert (Path(temp_data_dir) / "logs" / "test.log").exists()

    def test_simulate_replays_trace(self, config_path, trace_path):
        app = RecorderApp(config_path)

        result = app.simulate(trace_path, amplitude=False, overrides={})

        assert result.reason is StopReason.SILENCE_DETECTED
        assert result.duration == pytest.approx(3.4)
        assert result.actual_speech_duration == pytest.approx(0.7)
        assert result.file_path == ""

    def test_simulate_amplitude_trace(self, config_path, temp_data_dir):
        path = Path(temp_data_dir) / "amplitude.yaml"
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump({'levels': [0, 20000, 20000, 0],
                            'recording': {'max_duration_seconds': 1.0}}, f)
        app = RecorderApp(config_path)

        result = app.simulate(str(path), amplitude=True, overrides={})

        assert result.reason is StopReason.MAX_DURATION_REACHED
        assert result.duration == pytest.approx(1.0)
        assert result.actual_speech_duration == pytest.approx(0.8)

    def test_simulate_with_overrides(self, config_path, trace_path):
        app = RecorderApp(config_path)

        result = app.simulate(trace_path, amplitude=False,
                              overrides={'thinking_pause_threshold': 0.5,
                                         'end_of_speech_threshold': 1.0})

        assert result.reason is StopReason.SILENCE_DETECTED
        assert result.duration == pytest.approx(1.9)

    def test_main_simulate_prints_result(self, config_path, trace_path, capsys):
        main(["--config", config_path, "simulate", trace_path])

        out = capsys.readouterr().out
        assert "silence_detected" in out
        assert "Voice detected" in out

    def test_main_reports_invalid_config(self, config_path, trace_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", config_path, "simulate", trace_path,
                  "--thinking-pause", "3", "--end-of-speech", "2"])

        assert exc_info.value.code == 1
        assert "Error [invalid_config]" in capsys.readouterr().out

    def test_main_reports_missing_trace(self, config_path, temp_data_dir, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", config_path, "simulate", str(Path(temp_data_dir) / "none.yaml")])

        assert exc_info.value.code == 1
        assert "Error:" in capsys.readouterr().out
