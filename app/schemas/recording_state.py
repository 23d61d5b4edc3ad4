"""Enums shared by recording schemas."""

from enum import Enum


class RecordingStatus(str, Enum):
    """Recording lifecycle states.

    State Transition Flow:

    PENDING → PROCESSING → READY
       ↓          ↓
     FAILED     FAILED

    Any non-deleted state → DELETED (soft delete)

    State Descriptions:
    - PENDING: Created when a stream ends. Set by create_pending().
    - PROCESSING: Provider reported the stream idle, duration known. Set by mark_processing().
    - READY: Asset playable. Set by the asset.ready webhook.
    - FAILED: Asset processing failed. Set by the asset.failed webhook.
    - DELETED: Soft-deleted by the owner or an administrator.

    Terminal states: READY, FAILED (except for deletion) and DELETED
    """

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"
    DELETED = "deleted"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def in_flight_states(cls) -> list["RecordingStatus"]:
        """States still waiting on the provider."""
        return [RecordingStatus.PENDING, RecordingStatus.PROCESSING]


__all__ = ["RecordingStatus"]
