"""Streaming provider gateway.

Thin httpx client for the provider's control plane. Provider payloads are
normalized into ProviderSession / ProviderSessionStatus here; nothing above
this module sees provider field names.

Endpoints:
- POST   /session        create an ingest session
- DELETE /session/{id}   delete an ingest session (404 counts as success)
- GET    /session/{id}   session health (cached, never retried)
- DELETE /asset/{id}     delete a recorded asset (404 counts as success)
"""

from __future__ import annotations

import asyncio
import time
from functools import lru_cache
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.app_config import ProviderConfig, get_app_environ_config
from app.domain.utils.idgen import new_stream_key, new_ulid
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

MAX_RETRY_DELAY_SECONDS = 5.0


class ProviderGatewayError(AppError):
    """Provider call failed after the retry budget, or was rejected outright."""

    def __init__(self, errmesg: str, provider_status: int | None = None):
        super().__init__(
            errcode=AppErrorCode.E_PROVIDER_ERROR,
            errmesg=errmesg,
            status_code=HttpStatusCode.BAD_GATEWAY,
        )
        self.provider_status = provider_status


class ProviderSession(BaseModel):
    """Normalized result of creating an ingest session."""

    provider_session_id: str
    ingest_credential: str
    ingest_url: str
    playback_url: str


class ProviderSessionStatus(BaseModel):
    """Normalized session health."""

    is_active: bool = False
    is_healthy: bool = False
    viewer_count: int = 0
    is_stale: bool = False


class _SessionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    stream_key: str = Field(alias="streamKey")
    playback_id: str | None = Field(None, alias="playbackId")
    playback_url: str | None = Field(None, alias="playbackUrl")
    ingest_url: str | None = Field(None, alias="ingestUrl")


class _StatusPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_active: bool = Field(False, alias="isActive")
    is_healthy: bool | None = Field(None, alias="isHealthy")
    viewer_count: int | None = Field(None, alias="viewerCount")


class ProviderGateway:
    """Client for the streaming provider configured by a ProviderConfig."""

    def __init__(
        self,
        config: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._status_cache: dict[str, tuple[float, ProviderSessionStatus]] = {}
        logger.info(
            f"ProviderGateway initialized: base_url={config.api_base_url}, demo_mode={config.demo_mode}"
        )

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def _build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.api_base_url,
            headers=self._build_headers(),
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        max_retries: int | None = None,
        not_found_ok: bool = False,
    ) -> httpx.Response | None:
        """Issue a request, retrying timeouts, transport errors and 5xx responses.

        Returns:
            The response, or None when `not_found_ok` and the provider answered 404.

        Raises:
            ProviderGatewayError: On a non-retryable 4xx or once the retry budget is spent.
        """
        retries = self._config.max_retries if max_retries is None else max_retries
        attempts = retries + 1
        delay = self._config.retry_base_delay
        last_error = "no attempt made"

        for attempt in range(1, attempts + 1):
            try:
                async with self._client() as client:
                    response = await client.request(method, path, json=json)
            except httpx.TransportError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                if not_found_ok and response.status_code == 404:
                    logger.info(f"Provider {method} {path} returned 404, treating as already gone")
                    return None
                if response.status_code < 400:
                    return response
                if response.status_code < 500:
                    raise ProviderGatewayError(
                        f"Provider rejected {method} {path}: HTTP {response.status_code}",
                        provider_status=response.status_code,
                    )
                last_error = f"HTTP {response.status_code}"

            if attempt < attempts:
                logger.warning(
                    f"Provider {method} {path} failed ({last_error}), retrying in {delay}s "
                    f"(attempt {attempt} of {attempts})"
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, MAX_RETRY_DELAY_SECONDS)

        logger.error(f"Provider {method} {path} failed after {attempts} attempts: {last_error}")
        raise ProviderGatewayError(f"Provider {method} {path} failed: {last_error}")

    def playback_url_for(self, playback_id: str) -> str:
        return f"{self._config.playback_base_url}/{playback_id}/index.m3u8"

    async def create_session(self, title: str, creator_id: str) -> ProviderSession:
        """Create an ingest session on the provider."""
        if self._config.demo_mode:
            session_id = new_ulid("demo_")
            logger.info(f"ProviderGateway DEMO_MODE=true: stubbed create_session {session_id}")
            return ProviderSession(
                provider_session_id=session_id,
                ingest_credential=new_stream_key(),
                ingest_url=self._config.ingest_base_url,
                playback_url=self.playback_url_for(session_id),
            )

        response = await self._request(
            "POST",
            "/session",
            json={"name": title, "creatorId": creator_id, "record": True},
        )
        if response is None:
            raise ProviderGatewayError("Provider returned no body for create_session")
        try:
            payload = _SessionPayload.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ProviderGatewayError(f"Malformed create_session response: {exc}") from exc

        playback_url = payload.playback_url
        if not playback_url and payload.playback_id:
            playback_url = self.playback_url_for(payload.playback_id)
        if not playback_url:
            raise ProviderGatewayError("Provider returned no playback id for new session")

        logger.debug(f"Provider session created: {payload.id}")
        return ProviderSession(
            provider_session_id=payload.id,
            ingest_credential=payload.stream_key,
            ingest_url=payload.ingest_url or self._config.ingest_base_url,
            playback_url=playback_url,
        )

    async def delete_session(self, provider_session_id: str) -> bool:
        """Delete an ingest session. Returns True if deleted or already gone."""
        if self._config.demo_mode:
            logger.info(f"ProviderGateway DEMO_MODE=true: stubbed delete_session {provider_session_id}")
            return True

        await self._request("DELETE", f"/session/{provider_session_id}", not_found_ok=True)
        self._status_cache.pop(provider_session_id, None)
        return True

    async def delete_asset(self, asset_id: str) -> bool:
        """Delete a recorded asset. Returns True if deleted or already gone."""
        if self._config.demo_mode:
            logger.info(f"ProviderGateway DEMO_MODE=true: stubbed delete_asset {asset_id}")
            return True

        await self._request("DELETE", f"/asset/{asset_id}", not_found_ok=True)
        return True

    async def get_session_status(self, provider_session_id: str) -> ProviderSessionStatus:
        """Health of an ingest session.

        Single attempt, short timeout, results cached for `status_cache_ttl_seconds`.
        On failure returns the last known status (or an unknown one) marked stale.
        """
        now = time.monotonic()
        cached = self._status_cache.get(provider_session_id)
        if cached and now - cached[0] < self._config.status_cache_ttl_seconds:
            return cached[1]

        if self._config.demo_mode:
            status = ProviderSessionStatus(is_active=False, is_healthy=True)
            self._status_cache[provider_session_id] = (now, status)
            return status

        try:
            response = await self._request(
                "GET",
                f"/session/{provider_session_id}",
                max_retries=0,
            )
            if response is None:
                raise ProviderGatewayError("Provider returned no body for get_session_status")
            payload = _StatusPayload.model_validate(response.json())
        except (ProviderGatewayError, ValueError, ValidationError) as exc:
            logger.warning(f"Provider status unavailable for {provider_session_id}: {exc}")
            if cached:
                return cached[1].model_copy(update={"is_stale": True})
            return ProviderSessionStatus(is_stale=True)

        status = ProviderSessionStatus(
            is_active=payload.is_active,
            is_healthy=payload.is_healthy if payload.is_healthy is not None else payload.is_active,
            viewer_count=payload.viewer_count or 0,
        )
        self._status_cache[provider_session_id] = (now, status)
        return status


@lru_cache(maxsize=1)
def get_provider_gateway() -> ProviderGateway:
    """Process-wide gateway built from the environment once."""
    return ProviderGateway(get_app_environ_config().provider_config())


__all__ = [
    "ProviderGateway",
    "ProviderGatewayError",
    "ProviderSession",
    "ProviderSessionStatus",
    "get_provider_gateway",
]
