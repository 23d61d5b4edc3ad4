"""End-to-end broadcast scenarios across the stream and recording services."""

from datetime import timedelta

import pytest
from beanie.odm.operators.update.general import Set

from app.app_config import ProviderConfig
from app.domain.live.live_domain import LiveServices, build_live_services
from app.domain.live.stream.stream_models import StreamCreateParams
from app.domain.utils.op_result import OpOutcome
from app.schemas import Recording, RecordingStatus, Stream, StreamStatus
from app.schemas.schema_utils import utc_now
from app.services.integrations.provider_gateway import ProviderGateway
from tests.fixtures.recording_factories import load_recording, make_asset_event


@pytest.fixture
def live() -> LiveServices:
    gateway = ProviderGateway(ProviderConfig(demo_mode=True, playback_base_url="https://play.test/hls"))
    return build_live_services(gateway=gateway, min_recording_duration_seconds=60)


async def start_broadcast(live: LiveServices, title: str = "Morning show", live_for: timedelta | None = None):
    created = await live.streams.create("u.host", StreamCreateParams(title=title))
    stream_id = created.value.stream.stream_id
    await live.streams.mark_live(stream_id)
    if live_for is not None:
        await Stream.find_one(Stream.stream_id == stream_id).update(
            Set({Stream.started_at: utc_now() - live_for})
        )
    return created.value.stream


@pytest.mark.usefixtures("clear_collections")
class TestBroadcastScenarios:
    async def test_broadcast_to_ready_recording(self, live: LiveServices, beanie_db):
        stream = await start_broadcast(live, live_for=timedelta(minutes=5))
        await live.streams.join_viewer(stream.stream_id, viewer_id="v1")
        await live.streams.join_viewer(stream.stream_id, viewer_id="v2")
        await live.streams.leave_viewer(stream.stream_id, "v1")

        ended = await live.streams.end(stream.stream_id)

        assert ended.outcome == OpOutcome.APPLIED
        assert ended.value.recording_id == f"rec_{stream.stream_id}"
        assert ended.value.recording_outcome == "applied"
        pending = await load_recording(ended.value.recording_id)
        assert pending.status == RecordingStatus.PENDING
        assert pending.peak_live_viewers == 2
        assert pending.creator_id == "u.host"

        processing = await live.recordings.mark_processing_for_stream(stream.stream_id, duration_seconds=300.0)
        assert processing.outcome == OpOutcome.APPLIED

        ready = await live.recordings.handle_asset_ready(
            make_asset_event("as_happy", provider_session_id=stream.provider_session_id, duration_seconds=300.0)
        )

        assert ready.outcome == OpOutcome.APPLIED
        recording = await load_recording(ended.value.recording_id)
        assert recording.status == RecordingStatus.READY
        assert recording.playback_url is not None
        public = await live.recordings.list_public()
        assert [r.recording_id for r in public] == [recording.recording_id]

    async def test_asset_before_end_is_adopted(self, live: LiveServices, beanie_db):
        stream = await start_broadcast(live, title="Racy show", live_for=timedelta(minutes=5))

        early = await live.recordings.handle_asset_ready(
            make_asset_event("as_early", provider_session_id=stream.provider_session_id)
        )
        assert early.value.synthesized is True

        ended = await live.streams.end(stream.stream_id)

        assert ended.value.recording_outcome == "applied"
        assert ended.value.recording_id == "rec_asset_as_early"
        assert await Recording.count() == 1
        recording = await load_recording("rec_asset_as_early")
        assert recording.status == RecordingStatus.READY
        assert recording.creator_id == "u.host"
        assert recording.stream_id == stream.stream_id
        assert recording.needs_attribution is False
        assert recording.title == "Racy show"

    async def test_end_repeated_keeps_one_recording(self, live: LiveServices, beanie_db):
        stream = await start_broadcast(live, live_for=timedelta(minutes=5))

        first = await live.streams.end(stream.stream_id)
        second = await live.streams.end(stream.stream_id)

        assert first.outcome == OpOutcome.APPLIED
        assert second.outcome == OpOutcome.NOOP
        assert second.value.recording_id == first.value.recording_id
        assert await Recording.count() == 1

    async def test_short_broadcast_has_no_recording(self, live: LiveServices, beanie_db):
        stream = await start_broadcast(live)

        ended = await live.streams.end(stream.stream_id)

        assert ended.outcome == OpOutcome.APPLIED
        assert ended.value.stream.status == StreamStatus.ENDED
        assert ended.value.recording_id is None
        assert ended.value.recording_skipped_reason == "below_minimum_duration"
        assert await Recording.count() == 0
