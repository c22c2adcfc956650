"""Engine error taxonomy.

Every error carries structured detail (offending asset id, expected and
actual status, failed ids) so an API layer can build a specific message
without the engine knowing about HTTP. ``retryable`` tells the caller
whether re-reading state and trying again can succeed.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class EngineError(Exception):
    """Base class for all engine failures."""

    code = "engine_error"
    retryable = False

    def __init__(self, message: str, *, asset_id: UUID | None = None, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.asset_id = asset_id
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for transport."""
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.asset_id is not None:
            payload["asset_id"] = str(self.asset_id)
        for key, value in self.detail.items():
            payload[key] = _jsonable(value)
        return payload


class ValidationError(EngineError):
    """Malformed or incomplete request, reported before any mutation."""

    code = "validation_error"

    def __init__(self, message: str, *, field: str | None = None, **kwargs: Any) -> None:
        if field is not None:
            kwargs["field"] = field
        super().__init__(message, **kwargs)
        self.field = field


class InvalidStateError(EngineError):
    """A status precondition does not hold, including a lost concurrent write."""

    code = "invalid_state"
    retryable = True

    def __init__(self, message: str, *, asset_id: UUID | None = None, expected: Any = None, actual: Any = None, **kwargs: Any) -> None:
        super().__init__(message, asset_id=asset_id, expected=expected, actual=actual, **kwargs)
        self.expected = expected
        self.actual = actual


class SelfApprovalError(EngineError):
    """A reviewer tried to decide on their own submission."""

    code = "self_approval"


class MissingReasonError(EngineError):
    """A rejection was requested without a reason."""

    code = "missing_reason"


class InvalidAssetInCarouselError(EngineError):
    """A named child is not part of the carousel or is not awaiting review."""

    code = "invalid_asset_in_carousel"

    def __init__(self, message: str, *, asset_id: UUID | None = None, carousel_id: UUID | None = None, **kwargs: Any) -> None:
        super().__init__(message, asset_id=asset_id, carousel_id=carousel_id, **kwargs)
        self.carousel_id = carousel_id


class ReferentialIntegrityError(EngineError):
    """Stored parent/child references are corrupt. Never repaired silently."""

    code = "referential_integrity"


class CascadeDeleteError(EngineError):
    """Storage could not remove the bytes of one or more assets in a cascade."""

    code = "cascade_delete_failed"
    retryable = True

    def __init__(self, message: str, *, asset_id: UUID | None = None, failed_ids: list[UUID] | None = None, **kwargs: Any) -> None:
        failed = list(failed_ids or [])
        super().__init__(message, asset_id=asset_id, failed_ids=failed, **kwargs)
        self.failed_ids = failed


class AssetNotFoundError(EngineError):
    """The asset does not exist, or the principal may not know that it does."""

    code = "not_found"


class PermissionDeniedError(EngineError):
    """The principal lacks the capability required for the action."""

    code = "permission_denied"

    def __init__(self, message: str, *, asset_id: UUID | None = None, capability: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, asset_id=asset_id, capability=capability, **kwargs)
        self.capability = capability


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    return value
