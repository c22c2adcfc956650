"""Domain events emitted after successful mutations.

The engine only emits; persisting audit rows and delivering notifications
belong to whoever subscribes to the hooks below.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import UUID


class EventType(StrEnum):
    ASSET_CREATED = "asset_created"
    ASSET_SUBMITTED = "asset_submitted"
    ASSET_APPROVED = "asset_approved"
    ASSET_REJECTED = "asset_rejected"
    ASSET_UPDATED = "asset_updated"
    ASSET_SHARED = "asset_shared"
    ASSET_DELETED = "asset_deleted"
    CAROUSEL_STATUS_CHANGED = "carousel_status_changed"


@dataclass(frozen=True)
class DomainEvent:
    """A fact record for the audit and notification collaborators."""

    type: EventType
    asset_id: UUID
    actor_id: UUID | None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": str(self.type),
            "asset_id": str(self.asset_id),
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "timestamp": self.timestamp.isoformat(),
            "detail": self.detail,
        }
