from unittest.mock import AsyncMock

import pytest

from app.app_config import ProviderConfig
from app.domain.live.recording.recording_domain import RecordingService
from app.services.integrations.provider_gateway import ProviderGateway


@pytest.fixture
def gateway() -> ProviderGateway:
    gateway = ProviderGateway(
        ProviderConfig(demo_mode=True, playback_base_url="https://play.test/hls")
    )
    gateway.delete_asset = AsyncMock(return_value=True)  # type: ignore[method-assign]
    return gateway


@pytest.fixture
def service(gateway: ProviderGateway) -> RecordingService:
    return RecordingService(gateway=gateway, min_duration_seconds=60, max_duration_hours=4)
