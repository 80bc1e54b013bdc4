"""Unit tests for the replay backend and session event publisher."""

import pytest
from pubsub import pub

from vadrecorder.audio.publisher import SessionEventPublisher
from vadrecorder.audio.replay import ReplayCaptureBackend
from vadrecorder.engine.recorder import VoiceActivityRecorder
from vadrecorder.exceptions import CaptureError
from vadrecorder.models.result import StopReason
from vadrecorder.vad.classifier import SILENCE_FLOOR_DB


@pytest.mark.unit
class TestReplayCaptureBackend:
    """Test cases for ReplayCaptureBackend."""

    def test_replays_levels_then_trailing(self, make_config):
        backend = ReplayCaptureBackend([-20.0, -30.0], trailing_level=-80.0)
        backend.start_capture(make_config())

        assert [backend.poll_level() for _ in range(4)] == [-20.0, -30.0, -80.0, -80.0]

    def test_default_trailing_is_silence_floor(self, make_config):
        backend = ReplayCaptureBackend([])
        backend.start_capture(make_config())

        assert backend.poll_level() == SILENCE_FLOOR_DB

    def test_amplitude_levels_converted(self, make_config):
        backend = ReplayCaptureBackend([32767, 0], amplitude=True)
        backend.start_capture(make_config())

        assert backend.poll_level() == pytest.approx(0.0)
        assert backend.poll_level() == SILENCE_FLOOR_DB

    def test_requires_active_capture(self, make_config):
        backend = ReplayCaptureBackend([-20.0])

        with pytest.raises(CaptureError):
            backend.poll_level()
        with pytest.raises(CaptureError):
            backend.stop_capture()

    def test_stop_produces_no_file(self, make_config):
        backend = ReplayCaptureBackend([-20.0])
        backend.start_capture(make_config())

        info = backend.stop_capture()

        assert info.file_path == ""
        assert info.file_size_bytes == 0

    def test_injected_failure_ends_session(self, manual_clock, make_config):
        backend = ReplayCaptureBackend([-20.0] * 10)
        backend.fail_at = 3
        recorder = VoiceActivityRecorder(backend, clock=manual_clock, poll_interval=0.1)

        future = recorder.start(make_config())
        manual_clock.advance_to(1.0)

        result = future.result(timeout=0)
        assert result.reason is StopReason.ERROR
        assert result.duration == pytest.approx(0.4)
        assert "poll 3" in result.error_message


@pytest.mark.unit
class TestSessionEventPublisher:
    """Test cases for SessionEventPublisher."""

    def test_publish_sends_event(self, publisher, event_topic):
        received = []

        def listener(event):
            received.append(event)

        pub.subscribe(listener, event_topic)
        try:
            event = publisher.publish("started", {"session_id": 1})
        finally:
            pub.unsubscribe(listener, event_topic)

        assert received == [event]
        assert event.event_type == "started"
        assert event.metadata == {"session_id": 1}
        assert len(event.event_id) == 32

    def test_event_ids_are_unique(self, event_topic):
        publisher = SessionEventPublisher(event_topic)

        first = publisher.publish("started")
        second = publisher.publish("stopped")

        assert first.event_id != second.event_id
        assert second.metadata == {}
