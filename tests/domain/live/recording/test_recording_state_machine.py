import pytest

from app.domain.live.recording.recording_state_machine import RecordingStateMachine
from app.schemas import RecordingStatus


class TestRecordingStateMachine:
    @pytest.mark.parametrize(
        ("current", "new"),
        [
            (RecordingStatus.PENDING, RecordingStatus.PROCESSING),
            (RecordingStatus.PENDING, RecordingStatus.READY),
            (RecordingStatus.PROCESSING, RecordingStatus.READY),
            (RecordingStatus.PROCESSING, RecordingStatus.FAILED),
            (RecordingStatus.READY, RecordingStatus.DELETED),
            (RecordingStatus.FAILED, RecordingStatus.DELETED),
        ],
    )
    def test_allowed(self, current, new):
        assert RecordingStateMachine.can_transition(current, new) is True

    @pytest.mark.parametrize(
        ("current", "new"),
        [
            (RecordingStatus.READY, RecordingStatus.FAILED),
            (RecordingStatus.FAILED, RecordingStatus.READY),
            (RecordingStatus.PROCESSING, RecordingStatus.PENDING),
            (RecordingStatus.DELETED, RecordingStatus.READY),
        ],
    )
    def test_rejected(self, current, new):
        assert RecordingStateMachine.can_transition(current, new) is False

    def test_only_in_flight_states_reach_ready(self):
        assert RecordingStateMachine.get_valid_sources(RecordingStatus.READY) == {
            RecordingStatus.PENDING,
            RecordingStatus.PROCESSING,
        }

    def test_terminal_and_settled(self):
        assert RecordingStateMachine.is_terminal(RecordingStatus.DELETED) is True
        assert RecordingStateMachine.is_terminal(RecordingStatus.READY) is False
        assert RecordingStateMachine.is_settled(RecordingStatus.FAILED) is True
        assert RecordingStateMachine.is_settled(RecordingStatus.PROCESSING) is False
        assert RecordingStateMachine.get_valid_transitions(RecordingStatus.DELETED) == set()
