"""Webhook schemas for the streaming provider."""

from app.api.webhooks.schemas.provider import (
    AssetSource,
    AssetStatus,
    ProviderAsset,
    ProviderEventType,
    ProviderStreamRef,
    ProviderWebhookEvent,
    VideoSpec,
    VideoTrack,
)

__all__ = [
    "AssetSource",
    "AssetStatus",
    "ProviderAsset",
    "ProviderEventType",
    "ProviderStreamRef",
    "ProviderWebhookEvent",
    "VideoSpec",
    "VideoTrack",
]
