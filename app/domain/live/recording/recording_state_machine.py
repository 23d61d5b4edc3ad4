"""Recording state machine for managing status transitions."""

from app.schemas import RecordingStatus


class RecordingStateMachine:
    """State machine for recording status transitions.

    State flow with triggers:
    - PENDING -> PROCESSING (provider reported the stream idle) | READY | FAILED | DELETED
    - PROCESSING -> READY (asset.ready webhook) | FAILED (asset.failed webhook) | DELETED
    - READY -> DELETED
    - FAILED -> DELETED
    - DELETED is terminal

    PENDING -> READY is allowed because asset.ready may arrive before the idle signal.
    """

    TRANSITIONS: dict[RecordingStatus, set[RecordingStatus]] = {
        RecordingStatus.PENDING: {
            RecordingStatus.PROCESSING,
            RecordingStatus.READY,
            RecordingStatus.FAILED,
            RecordingStatus.DELETED,
        },
        RecordingStatus.PROCESSING: {
            RecordingStatus.READY,
            RecordingStatus.FAILED,
            RecordingStatus.DELETED,
        },
        RecordingStatus.READY: {RecordingStatus.DELETED},
        RecordingStatus.FAILED: {RecordingStatus.DELETED},
        RecordingStatus.DELETED: set(),
    }

    TERMINAL_STATES: set[RecordingStatus] = {RecordingStatus.DELETED}

    @classmethod
    def can_transition(cls, current: RecordingStatus, new: RecordingStatus) -> bool:
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def is_terminal(cls, state: RecordingStatus) -> bool:
        return state in cls.TERMINAL_STATES

    @classmethod
    def is_settled(cls, state: RecordingStatus) -> bool:
        """True once the provider outcome is known (or the recording is gone)."""
        return state in {RecordingStatus.READY, RecordingStatus.FAILED, RecordingStatus.DELETED}

    @classmethod
    def get_valid_transitions(cls, state: RecordingStatus) -> set[RecordingStatus]:
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def get_valid_sources(cls, target: RecordingStatus) -> set[RecordingStatus]:
        """Get all states that can transition to the target state."""
        return {state for state, targets in cls.TRANSITIONS.items() if target in targets}
