"""Stream state machine for managing status transitions."""

from app.schemas import StreamStatus


class StreamStateMachine:
    """State machine for stream status transitions.

    State flow with triggers:
    - IDLE -> CONFIGURING (provider accepted the ingest credential) | ENDED
    - CONFIGURING -> LIVE (mark_live() or provider stream.started webhook) | IDLE | ENDED
    - LIVE -> ENDED (end() or provider stream.idle webhook)
    - ENDED is terminal; only suspension flags change afterwards
    """

    TRANSITIONS: dict[StreamStatus, set[StreamStatus]] = {
        StreamStatus.IDLE: {StreamStatus.CONFIGURING, StreamStatus.ENDED},
        StreamStatus.CONFIGURING: {
            StreamStatus.LIVE,
            StreamStatus.IDLE,
            StreamStatus.ENDED,
        },
        StreamStatus.LIVE: {StreamStatus.ENDED},
        StreamStatus.ENDED: set(),
    }

    TERMINAL_STATES: set[StreamStatus] = {StreamStatus.ENDED}

    @classmethod
    def can_transition(cls, current: StreamStatus, new: StreamStatus) -> bool:
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def is_terminal(cls, state: StreamStatus) -> bool:
        return state in cls.TERMINAL_STATES

    @classmethod
    def get_valid_transitions(cls, state: StreamStatus) -> set[StreamStatus]:
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def get_valid_sources(cls, target: StreamStatus) -> set[StreamStatus]:
        """Get all states that can transition to the target state."""
        return {state for state, targets in cls.TRANSITIONS.items() if target in targets}
