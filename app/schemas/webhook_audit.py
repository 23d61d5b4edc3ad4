"""Audit trail of received provider webhooks."""

from datetime import datetime
from typing import Any

from beanie import Document, Indexed
from pydantic import Field, field_validator
from pymongo import DESCENDING, IndexModel

from .schema_utils import parse_mongo_datetime, utc_now


class WebhookAudit(Document):
    """Raw provider event plus how it was handled, kept for manual reconciliation."""

    audit_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    event_type: str | None = None
    subject_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    result: dict[str, Any] | None = None
    error: str | None = None
    received_at: datetime = Field(default_factory=utc_now)

    @field_validator("received_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    class Settings:
        name = "webhook_audits"
        indexes = [IndexModel([("received_at", DESCENDING)])]


__all__ = ["WebhookAudit"]
