"""Reconcile provider asset webhooks with recordings."""

from loguru import logger
from pymongo.errors import DuplicateKeyError

from app.domain.utils.idgen import recording_id_for_asset
from app.domain.utils.op_result import OpResult, guard_backend
from app.schemas import UNKNOWN_CREATOR_ID, Recording, RecordingStatus, Visibility
from app.schemas.schema_utils import utc_now

from ._base import BaseRecordingService
from .recording_models import AssetEvent, AssetReconcileResult, MatchStrategy, RecordingResponse
from .recording_state_machine import RecordingStateMachine

BELOW_MINIMUM_DURATION = "below_minimum_duration"
MISSING_PLAYBACK_URL = "missing_playback_url"
DEFAULT_FAILURE_REASON = "Recording processing failed"


class ReconcileOperations(BaseRecordingService):
    """Apply asset.ready / asset.failed events.

    Every event is matched with the correlator and applied as a compare-and-set
    from PENDING or PROCESSING, so re-deliveries and out-of-order events settle
    on the first outcome: a late failure never overrides READY.
    """

    @guard_backend
    async def handle_asset_ready(self, event: AssetEvent) -> OpResult[AssetReconcileResult]:
        recording, match = await self.correlator.resolve(event)
        logger.info(f"Asset {event.asset_id} ready, match={match}")

        if recording is None:
            return await self._synthesize(event)
        return await self._apply_ready(recording, event, match)

    async def _apply_ready(
        self,
        recording: Recording,
        event: AssetEvent,
        match: MatchStrategy,
        synthesized: bool = False,
    ) -> OpResult[AssetReconcileResult]:
        recording_id = recording.recording_id

        def result(doc: Recording) -> AssetReconcileResult:
            return AssetReconcileResult(
                recording=RecordingResponse.from_document(doc),
                match=match,
                synthesized=synthesized,
            )

        if recording.status == RecordingStatus.READY:
            return OpResult.noop(result(recording), reason="already_ready")
        if recording.status == RecordingStatus.DELETED or recording.is_deleted:
            return OpResult.noop(result(recording), reason="recording_deleted")
        if recording.status == RecordingStatus.FAILED:
            logger.warning(f"Asset {event.asset_id} ready for recording {recording_id} that already failed")
            return OpResult.conflict("Recording already failed", value=result(recording))

        duration = self._clamp_duration(recording_id, event.duration_seconds or recording.duration_seconds)
        playback_url = self._playback_url(event)

        if not duration or duration < self.min_duration_seconds:
            return await self._fail(recording, event, match, BELOW_MINIMUM_DURATION)
        if not playback_url:
            return await self._fail(recording, event, match, MISSING_PLAYBACK_URL)

        updated = await Recording.transition(
            recording_id,
            RecordingStateMachine.get_valid_sources(RecordingStatus.READY),
            {
                Recording.status: RecordingStatus.READY,
                Recording.provider_asset_id: event.asset_id,
                Recording.playback_id: event.playback_id,
                Recording.playback_url: playback_url,
                Recording.download_url: event.download_url,
                Recording.duration_seconds: duration,
                Recording.size_bytes: event.size_bytes,
                Recording.resolution: event.resolution,
                Recording.failure_reason: None,
                Recording.ready_at: utc_now(),
            },
        )
        if updated is None:
            fresh = await self._get_recording(recording_id)
            if fresh is None:
                return OpResult.not_found(f"Recording {recording_id} disappeared")
            return await self._apply_ready(fresh, event, match, synthesized)

        logger.info(f"✅ Recording {recording_id} ready ({duration:.0f}s, asset={event.asset_id})")
        return OpResult.apply(result(updated))

    def _playback_url(self, event: AssetEvent) -> str | None:
        if event.playback_url:
            return event.playback_url
        if event.playback_id:
            return self.gateway.playback_url_for(event.playback_id)
        return None

    async def _fail(
        self,
        recording: Recording,
        event: AssetEvent,
        match: MatchStrategy,
        reason: str,
    ) -> OpResult[AssetReconcileResult]:
        updated = await Recording.transition(
            recording.recording_id,
            RecordingStateMachine.get_valid_sources(RecordingStatus.FAILED),
            {
                Recording.status: RecordingStatus.FAILED,
                Recording.provider_asset_id: event.asset_id,
                Recording.failure_reason: reason,
                Recording.failed_at: utc_now(),
            },
        )
        if updated is None:
            fresh = await self._get_recording(recording.recording_id) or recording
            return OpResult.noop(
                AssetReconcileResult(recording=RecordingResponse.from_document(fresh), match=match),
                reason=f"already_{fresh.status}",
            )

        logger.warning(f"❌ Recording {recording.recording_id} failed: {reason}")
        return OpResult.apply(
            AssetReconcileResult(recording=RecordingResponse.from_document(updated), match=match),
            reason=reason,
        )

    async def _synthesize(self, event: AssetEvent) -> OpResult[AssetReconcileResult]:
        """Create a recording for an asset no recording claims.

        The recording is private and flagged for attribution until a stream adopts
        it or an admin assigns it. An asset without a usable duration or playback
        URL is still recorded, as FAILED, so it can be found by asset id.
        """
        recording_id = recording_id_for_asset(event.asset_id)
        duration = self._clamp_duration(recording_id, event.duration_seconds)
        playback_url = self._playback_url(event)

        failure_reason = None
        if not duration or duration < self.min_duration_seconds:
            failure_reason = BELOW_MINIMUM_DURATION
        elif not playback_url:
            failure_reason = MISSING_PLAYBACK_URL

        now = utc_now()
        recording = Recording(
            recording_id=recording_id,
            provider_session_id=event.provider_session_id,
            provider_asset_id=event.asset_id,
            creator_id=UNKNOWN_CREATOR_ID,
            needs_attribution=True,
            title=event.asset_name or f"Recording {event.asset_id}",
            visibility=Visibility.PRIVATE,
            status=RecordingStatus.FAILED if failure_reason else RecordingStatus.READY,
            failure_reason=failure_reason,
            playback_id=event.playback_id,
            playback_url=playback_url,
            download_url=event.download_url,
            duration_seconds=duration,
            size_bytes=event.size_bytes,
            resolution=event.resolution,
            ready_at=None if failure_reason else now,
            failed_at=now if failure_reason else None,
            created_at=now,
            updated_at=now,
        )
        try:
            await recording.insert()
        except DuplicateKeyError:
            existing = await self._get_recording(recording.recording_id)
            logger.info(f"Recording {recording.recording_id} synthesized concurrently")
            return OpResult.noop(
                AssetReconcileResult(
                    recording=RecordingResponse.from_document(existing) if existing else None,
                    synthesized=True,
                ),
                reason="already_synthesized",
            )

        result = AssetReconcileResult(recording=RecordingResponse.from_document(recording), synthesized=True)
        if failure_reason:
            logger.warning(
                f"❌ Asset {event.asset_id} matched no recording and is unusable ({failure_reason}), "
                f"recorded as failed {recording.recording_id} pending attribution"
            )
            return OpResult.apply(result, reason=failure_reason)

        logger.warning(
            f"⚠️ Asset {event.asset_id} matched no recording, synthesized {recording.recording_id} "
            f"(session={event.provider_session_id}) pending attribution"
        )
        return OpResult.apply(result)

    @guard_backend
    async def handle_asset_failed(self, event: AssetEvent) -> OpResult[AssetReconcileResult]:
        recording, match = await self.correlator.resolve(event)
        if recording is None:
            logger.warning(f"Dropping asset.failed for {event.asset_id}: no matching recording")
            return OpResult.dropped("no_matching_recording")

        if not RecordingStateMachine.can_transition(recording.status, RecordingStatus.FAILED):
            return OpResult.noop(
                AssetReconcileResult(recording=RecordingResponse.from_document(recording), match=match),
                reason=f"already_{recording.status}",
            )

        return await self._fail(recording, event, match, event.error_message or DEFAULT_FAILURE_REASON)
