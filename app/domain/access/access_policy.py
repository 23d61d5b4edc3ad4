"""Visibility and moderation rules for streams and recordings.

Every function here is pure and total: it inspects the given entity and caller
attributes and never raises or touches storage.
"""

from enum import Enum
from typing import Protocol

from pydantic import BaseModel

from app.schemas import RecordingStatus, Visibility

TIER_ORDER = ["free", "basic", "pro"]
ROLE_ADMIN = "admin"


class AccessReason(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    SUSPENDED = "suspended"
    MEMBERS_ONLY = "members_only"
    PROCESSING = "processing"
    FAILED = "failed"
    DELETED = "deleted"
    HIDDEN = "hidden"
    UNAVAILABLE = "unavailable"
    PRIVATE = "private"

    def __str__(self) -> str:
        return self.value


class AccessDecision(BaseModel):
    allowed: bool
    reason: AccessReason | None = None

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: AccessReason) -> "AccessDecision":
        return cls(allowed=False, reason=reason)


class StreamLike(Protocol):
    visibility: Visibility
    is_suspended: bool


class RecordingLike(Protocol):
    creator_id: str
    needs_attribution: bool
    visibility: Visibility
    status: RecordingStatus
    is_hidden: bool
    is_deleted: bool


def tier_rank(tier: str | None) -> int:
    """Position of a tier in free < basic < pro; unknown tiers rank lowest."""
    if not tier:
        return 0
    try:
        return TIER_ORDER.index(tier.lower())
    except ValueError:
        return 0


def _visibility_access(
    visibility: Visibility,
    viewer_id: str | None,
    viewer_tier: str | None,
) -> AccessDecision:
    if visibility == Visibility.PUBLIC:
        return AccessDecision.allow()
    if visibility == Visibility.MEMBERS:
        if not viewer_id:
            return AccessDecision.deny(AccessReason.NOT_AUTHENTICATED)
        if tier_rank(viewer_tier) == 0:
            return AccessDecision.deny(AccessReason.MEMBERS_ONLY)
        return AccessDecision.allow()
    return AccessDecision.deny(AccessReason.PRIVATE)


def _is_owner(recording: RecordingLike, user_id: str | None) -> bool:
    # Unattributed recordings carry a placeholder creator id that nobody owns
    if recording.needs_attribution:
        return False
    return bool(user_id) and user_id == recording.creator_id


def stream_access(
    stream: StreamLike,
    viewer_id: str | None = None,
    viewer_tier: str | None = None,
) -> AccessDecision:
    if stream.is_suspended:
        return AccessDecision.deny(AccessReason.SUSPENDED)
    return _visibility_access(stream.visibility, viewer_id, viewer_tier)


def can_view_stream(
    stream: StreamLike,
    viewer_id: str | None = None,
    viewer_tier: str | None = None,
) -> bool:
    return stream_access(stream, viewer_id, viewer_tier).allowed


def can_view_recording(
    recording: RecordingLike,
    viewer_id: str | None = None,
    viewer_tier: str | None = None,
    viewer_role: str | None = None,
) -> AccessDecision:
    """Evaluate recording access.

    Order matters: admins see everything, moderation and processing state come
    before ownership, and owners bypass the visibility rule.
    """
    if viewer_role == ROLE_ADMIN:
        return AccessDecision.allow()
    if recording.is_deleted or recording.status == RecordingStatus.DELETED:
        return AccessDecision.deny(AccessReason.DELETED)
    if recording.is_hidden:
        return AccessDecision.deny(AccessReason.HIDDEN)
    if recording.status == RecordingStatus.PROCESSING:
        return AccessDecision.deny(AccessReason.PROCESSING)
    if recording.status == RecordingStatus.FAILED:
        return AccessDecision.deny(AccessReason.FAILED)
    if recording.status != RecordingStatus.READY:
        return AccessDecision.deny(AccessReason.UNAVAILABLE)
    if _is_owner(recording, viewer_id):
        return AccessDecision.allow()
    return _visibility_access(recording.visibility, viewer_id, viewer_tier)


def can_manage_recording(
    recording: RecordingLike,
    actor_id: str | None,
    actor_role: str | None = None,
) -> bool:
    if actor_role == ROLE_ADMIN:
        return True
    return _is_owner(recording, actor_id)


__all__ = [
    "AccessDecision",
    "AccessReason",
    "can_manage_recording",
    "can_view_recording",
    "can_view_stream",
    "stream_access",
    "tier_rank",
]
