"""Provider webhook endpoint for stream and recording asset events.

Event Types:
- stream.started: Provider began receiving media (CONFIGURING -> LIVE)
- stream.idle: Provider stopped receiving media (-> ENDED, recording -> PROCESSING)
- asset.ready: Recording asset is ready for playback (-> READY)
- asset.failed: Recording asset processing failed (-> FAILED)

The endpoint always answers HTTP 200 so the provider does not enter a redelivery
loop. Whether the event was processed is carried in the body: ApiSuccess with the
handler result, or ApiFailure for signature, parse and processing errors.

Pydantic schemas: app.api.webhooks.schemas.provider
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any

from fastapi import APIRouter, Header, Request
from loguru import logger
from pydantic import ValidationError

from app.api.webhooks.schemas.provider import ProviderEventType, ProviderWebhookEvent
from app.app_config import get_app_environ_config
from app.domain.live.live_domain import get_live_services
from app.domain.utils.idgen import new_webhook_audit_id
from app.domain.utils.op_result import OpResult
from app.schemas import WebhookAudit
from app.shared.api.utils import ApiFailure, ApiSuccess, api_failure
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

SIGNATURE_TOLERANCE_SECONDS = 300


class ProviderWebhookSuccess(ApiSuccess):
    """Success response for webhook."""

    results: dict[str, Any]  # type: ignore[assignment]


def verify_provider_signature(
    payload: bytes,
    signature_header: str,
    signing_secret: str,
    tolerance_seconds: int = SIGNATURE_TOLERANCE_SECONDS,
) -> bool:
    """Verify the `provider-signature` header (HMAC SHA256 over "{t}.{body}").

    Returns:
        True if the signature matches, False otherwise

    Raises:
        AppError: If the header is malformed or the timestamp is outside tolerance
    """
    # Format: t=1565220904,v1=20c75c1180c701...
    elements = {}
    for element in signature_header.split(","):
        if "=" not in element:
            continue
        key, value = element.split("=", 1)
        elements[key.strip()] = value.strip()

    if "t" not in elements or "v1" not in elements:
        raise AppError(
            errcode=AppErrorCode.E_WEBHOOK_INVALID_SIGNATURE,
            errmesg="Invalid signature header format - missing t or v1",
            status_code=HttpStatusCode.BAD_REQUEST,
        )

    timestamp_str = elements["t"]
    try:
        timestamp = int(timestamp_str)
    except ValueError as exc:
        raise AppError(
            errcode=AppErrorCode.E_WEBHOOK_INVALID_SIGNATURE,
            errmesg=f"Invalid timestamp in signature: {timestamp_str}",
            status_code=HttpStatusCode.BAD_REQUEST,
        ) from exc

    current_time = int(time.time())
    if abs(current_time - timestamp) > tolerance_seconds:
        raise AppError(
            errcode=AppErrorCode.E_WEBHOOK_INVALID_SIGNATURE,
            errmesg=f"Timestamp outside tolerance window: "
            f"received={timestamp}, current={current_time}, "
            f"diff={abs(current_time - timestamp)}s",
            status_code=HttpStatusCode.BAD_REQUEST,
        )

    signed_payload = f"{timestamp_str}.".encode() + payload
    expected_signature = hmac.new(
        signing_secret.encode("utf-8"),
        signed_payload,
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(expected_signature, elements["v1"])


def _check_signature(body: bytes, signature_header: str | None) -> ApiFailure | None:
    signing_secret = get_app_environ_config().PROVIDER_WEBHOOK_SIGNING_SECRET
    if not signing_secret:
        logger.warning("PROVIDER_WEBHOOK_SIGNING_SECRET not configured, accepting unsigned webhook")
        return None

    if not signature_header:
        return api_failure(
            errcode=AppErrorCode.E_WEBHOOK_INVALID_SIGNATURE,
            errmesg="Missing provider-signature header",
        )

    try:
        if verify_provider_signature(body, signature_header, signing_secret):
            logger.debug("Provider webhook signature verified")
            return None
    except AppError as exc:
        return api_failure(errcode=exc.errcode, errmesg=exc.errmesg)

    return api_failure(
        errcode=AppErrorCode.E_WEBHOOK_INVALID_SIGNATURE,
        errmesg="Invalid webhook signature",
    )


def _summarize(result: OpResult, **extra: Any) -> dict[str, Any]:
    summary: dict[str, Any] = {
        "handled": result.ok,
        "outcome": result.outcome.value,
        "reason": result.reason,
    }
    summary.update(extra)
    return summary


async def handle_asset_ready(event: ProviderWebhookEvent) -> dict[str, Any]:
    asset_event = event.to_asset_event()
    logger.info(f"🎬 ASSET READY: {asset_event.asset_id} (session={asset_event.provider_session_id})")

    result = await get_live_services().recordings.handle_asset_ready(asset_event)
    reconcile = result.value
    return _summarize(
        result,
        event=event.event,
        asset_id=asset_event.asset_id,
        recording_id=reconcile.recording.recording_id if reconcile and reconcile.recording else None,
        match=reconcile.match.value if reconcile else None,
        synthesized=reconcile.synthesized if reconcile else False,
    )


async def handle_asset_failed(event: ProviderWebhookEvent) -> dict[str, Any]:
    asset_event = event.to_asset_event()
    logger.info(f"💥 ASSET FAILED: {asset_event.asset_id} error={asset_event.error_message}")

    result = await get_live_services().recordings.handle_asset_failed(asset_event)
    reconcile = result.value
    return _summarize(
        result,
        event=event.event,
        asset_id=asset_event.asset_id,
        recording_id=reconcile.recording.recording_id if reconcile and reconcile.recording else None,
        match=reconcile.match.value if reconcile else None,
    )


async def handle_stream_started(event: ProviderWebhookEvent) -> dict[str, Any]:
    session_id = event.provider_session_id
    logger.info(f"🟢 STREAM STARTED: {session_id}")

    streams = get_live_services().streams
    stream = await streams.get_stream_by_provider_session(session_id) if session_id else None
    if stream is None:
        logger.warning(f"No stream for provider session {session_id}")
        return {"handled": False, "event": event.event, "reason": "stream_not_found"}

    result = await streams.mark_live(stream.stream_id)
    return _summarize(result, event=event.event, stream_id=stream.stream_id)


async def handle_stream_idle(event: ProviderWebhookEvent) -> dict[str, Any]:
    """End the stream, then move its recording to PROCESSING."""
    session_id = event.provider_session_id
    logger.info(f"⚪ STREAM IDLE: {session_id}")

    services = get_live_services()
    stream = await services.streams.get_stream_by_provider_session(session_id) if session_id else None
    if stream is None:
        logger.warning(f"No stream for provider session {session_id}")
        return {"handled": False, "event": event.event, "reason": "stream_not_found"}

    end_result = await services.streams.end(stream.stream_id)
    summary = _summarize(end_result, event=event.event, stream_id=stream.stream_id)

    ended = end_result.value
    if ended is None or ended.recording_id is None:
        summary["recording_outcome"] = None
        summary["recording_skipped_reason"] = ended.recording_skipped_reason if ended else None
        return summary

    processing = await services.recordings.mark_processing_for_stream(
        stream.stream_id,
        ended_at=ended.stream.ended_at,
        duration_seconds=ended.duration_seconds,
    )
    summary["recording_id"] = ended.recording_id
    summary["recording_outcome"] = processing.outcome.value
    return summary


async def _write_audit(
    event_data: dict[str, Any],
    result: dict[str, Any] | None,
    error: str | None,
) -> None:
    """Best-effort audit record; a store failure never affects the acknowledgement."""
    try:
        asset = event_data.get("asset") if isinstance(event_data.get("asset"), dict) else None
        stream = event_data.get("stream") if isinstance(event_data.get("stream"), dict) else None
        subject = (asset or stream or {}).get("id")
        await WebhookAudit(
            audit_id=new_webhook_audit_id(),
            event_type=event_data.get("event"),
            subject_id=subject,
            payload=event_data,
            result=result,
            error=error,
        ).insert()
    except Exception as exc:
        logger.warning(f"Failed to write webhook audit: {exc}")


@router.post("/provider", response_model=ProviderWebhookSuccess | ApiFailure)
async def provider_webhook(
    request: Request,
    provider_signature: str | None = Header(None, alias="provider-signature"),
) -> ProviderWebhookSuccess | ApiFailure:
    """Receive and process provider webhook events.

    Security:
        - Requires a valid signature when PROVIDER_WEBHOOK_SIGNING_SECRET is set
        - Timestamp must be within 5 minutes (prevents replay attacks)
        - Uses constant-time signature comparison
    """
    body = await request.body()
    event_data: dict[str, Any] = {}
    response: ProviderWebhookSuccess | ApiFailure

    try:
        failure = _check_signature(body, provider_signature)
        if failure is not None:
            logger.warning(f"Rejected provider webhook: {failure.errmesg}")
            return failure

        try:
            event_data = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            response = api_failure(
                errcode=AppErrorCode.E_WEBHOOK_INVALID_JSON,
                errmesg=f"Invalid JSON: {exc!s}",
            )
            event_data = {"raw": body.decode("utf-8", errors="replace")}
            await _write_audit(event_data, None, response.errmesg)
            return response

        if not isinstance(event_data, dict) or not event_data.get("event"):
            response = api_failure(
                errcode=AppErrorCode.E_WEBHOOK_MISSING_EVENT_TYPE,
                errmesg="Missing 'event' field",
            )
            event_data = event_data if isinstance(event_data, dict) else {"raw": event_data}
            await _write_audit(event_data, None, response.errmesg)
            return response

        event_type = event_data["event"]
        separator = "=" * 80
        logger.info(separator)
        logger.info(f"Provider Webhook: {event_type}")
        logger.info(separator)

        try:
            event = ProviderWebhookEvent.model_validate(event_data)
            if event_type == ProviderEventType.ASSET_READY:
                result = await handle_asset_ready(event)
            elif event_type == ProviderEventType.ASSET_FAILED:
                result = await handle_asset_failed(event)
            elif event_type == ProviderEventType.STREAM_STARTED:
                result = await handle_stream_started(event)
            elif event_type == ProviderEventType.STREAM_IDLE:
                result = await handle_stream_idle(event)
            else:
                logger.info(f"Unhandled event type: {event_type}")
                result = {"handled": False, "reason": "unhandled_event_type"}
        except (ValidationError, ValueError) as exc:
            logger.error(f"❌ VALIDATION ERROR for {event_type}: {exc}")
            response = api_failure(
                errcode=AppErrorCode.E_WEBHOOK_VALIDATION_ERROR,
                errmesg=f"Failed to parse event: {exc!s}",
            )
            await _write_audit(event_data, None, response.errmesg)
            return response

        logger.info(f"Provider webhook {event_type} result: {result}")
        await _write_audit(event_data, result, None)
        return ProviderWebhookSuccess(results=result)

    except Exception as exc:
        logger.exception(f"Error processing provider webhook, payload={event_data or body!r}")
        response = api_failure(
            errcode=AppErrorCode.E_WEBHOOK_ERROR,
            errmesg=str(exc),
        )
        await _write_audit(event_data, None, response.errmesg)
        return response
