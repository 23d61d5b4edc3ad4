"""Ingest credential operations."""

from loguru import logger

from app.domain.utils.idgen import new_stream_key
from app.domain.utils.op_result import OpResult, guard_backend
from app.schemas import StreamKey
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from ._base import BaseStreamService
from .stream_models import CredentialRotation, StreamSetupInfo


class CredentialOperations(BaseStreamService):
    """Owner-only access to the creator's ingest credential."""

    async def get_stream_key(self, creator_id: str) -> StreamKey:
        """Raises AppError if the creator has never been issued a key."""
        key = await StreamKey.find_one(StreamKey.creator_id == creator_id)
        if key is None:
            raise AppError(
                errcode=AppErrorCode.E_STREAM_KEY_NOT_FOUND,
                errmesg=f"No stream key issued for creator {creator_id}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return key

    @guard_backend
    async def regenerate_credential(self, creator_id: str) -> OpResult[CredentialRotation]:
        """Replace the stored credential.

        The provider is not asked to rotate the key of a stream that is already
        running, so that stream keeps ingesting with the previous key. The result
        names the affected stream instead of hiding it.
        """
        active = await self._get_current_stream(creator_id)
        stream_key = new_stream_key()
        await self._store_stream_key(
            creator_id,
            stream_key,
            active.stream_id if active else None,
            rotated=True,
        )

        warning = None
        if active is not None:
            warning = (
                f"Stream {active.stream_id} is still using the previous key on the provider; "
                "the new key applies to the next stream"
            )
            logger.warning(f"Credential rotated for creator {creator_id} while active: {warning}")
        else:
            logger.info(f"Credential rotated for creator {creator_id}")

        return OpResult.apply(
            CredentialRotation(
                stream_key=stream_key,
                provider_rotated=False,
                active_stream_id=active.stream_id if active else None,
                warning=warning,
            )
        )

    async def get_setup_info(self, creator_id: str) -> StreamSetupInfo:
        """Encoder settings for the creator's current (or next) stream."""
        key = await self.get_stream_key(creator_id)
        active = await self._get_current_stream(creator_id)

        return StreamSetupInfo(
            server_url=(active.ingest_url if active and active.ingest_url else self.gateway.config.ingest_base_url),
            stream_key=key.stream_key,
            stream_id=active.stream_id if active else None,
            playback_url=active.playback_url if active else None,
        )
