"""Tests for engine error responses and exception handler logging."""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from assetflow.domain.enums import AssetStatus
from assetflow.domain.errors import (
    AssetNotFoundError,
    CascadeDeleteError,
    InvalidAssetInCarouselError,
    InvalidStateError,
    MissingReasonError,
    PermissionDeniedError,
    ReferentialIntegrityError,
    SelfApprovalError,
    ValidationError,
)
from assetflow.lib import observability
from assetflow.lib.exceptions import engine_error_handler, internal_server_error_handler


@pytest.fixture
def fake_request():
    """Create a minimal mock request for the error handler."""
    request = MagicMock()
    request.method = "POST"
    request.url.path = "/assets/approve"
    request.headers.get.return_value = "application/json"
    return request


class TestErrorPayload:
    """Errors carry structured, JSON-ready detail."""

    def test_invalid_state_detail(self):
        asset_id = uuid4()
        exc = InvalidStateError(
            "lost race",
            asset_id=asset_id,
            expected=AssetStatus.PENDING_REVIEW,
            actual=AssetStatus.APPROVED,
        )
        assert exc.to_dict() == {
            "code": "invalid_state",
            "message": "lost race",
            "retryable": True,
            "asset_id": str(asset_id),
            "expected": "PENDING_REVIEW",
            "actual": "APPROVED",
        }

    def test_cascade_failure_lists_ids(self):
        failed = [uuid4(), uuid4()]
        payload = CascadeDeleteError("storage down", failed_ids=failed).to_dict()
        assert payload["failed_ids"] == [str(f) for f in failed]
        assert payload["retryable"] is True


class TestEngineErrorHandler:
    """Each engine error maps to one HTTP status."""

    @pytest.mark.parametrize(
        ("exc", "status_code"),
        [
            (ValidationError("bad", field="children"), 400),
            (MissingReasonError("why?"), 400),
            (InvalidAssetInCarouselError("not a child", carousel_id=uuid4()), 400),
            (SelfApprovalError("own work"), 403),
            (PermissionDeniedError("nope", capability="edit"), 403),
            (AssetNotFoundError("gone"), 404),
            (InvalidStateError("stale"), 409),
            (CascadeDeleteError("storage down", failed_ids=[uuid4()]), 502),
            (ReferentialIntegrityError("corrupt"), 500),
        ],
    )
    def test_status_codes(self, fake_request, exc, status_code):
        with patch.object(observability, "exception", return_value=True):
            response = engine_error_handler(fake_request, exc)

        assert response.status_code == status_code
        assert response.content["error"] == exc.code
        assert response.content["detail"]["message"] == exc.message

    def test_client_errors_are_not_logged(self, fake_request):
        with patch.object(observability, "exception") as mock_exc, \
             patch("assetflow.lib.exceptions.logger") as mock_logger:
            engine_error_handler(fake_request, AssetNotFoundError("gone"))

        mock_exc.assert_not_called()
        mock_logger.error.assert_not_called()

    def test_integrity_errors_reported_loudly(self, fake_request):
        with patch.object(observability, "exception", return_value=False), \
             patch("assetflow.lib.exceptions.logger") as mock_logger:
            engine_error_handler(fake_request, ReferentialIntegrityError("corrupt"))

        mock_logger.error.assert_called_once()


class TestObservabilityException:
    """Test the observability.exception() facade function."""

    def test_returns_true_when_available(self):
        with patch.object(observability, "_logfire", MagicMock()) as mock_lf, \
             patch.object(observability, "_configured", True):
            result = observability.exception("test error")
            assert result is True
            mock_lf.exception.assert_called_once_with("test error")

    def test_returns_false_when_unavailable(self):
        with patch.object(observability, "_logfire", None), \
             patch.object(observability, "_configured", False):
            assert observability.exception("test error") is False


class TestInternalServerErrorHandler:
    """Test that internal_server_error_handler logs exceptions."""

    def test_calls_observability_when_available(self, fake_request):
        with patch.object(observability, "exception", return_value=True) as mock_exc:
            response = internal_server_error_handler(fake_request, RuntimeError("boom"))

        mock_exc.assert_called_once_with(
            "Unhandled exception on {method} {path}",
            method="POST",
            path="/assets/approve",
        )
        assert response.status_code == 500

    def test_falls_back_to_stdlib_when_unavailable(self, fake_request):
        with patch.object(observability, "exception", return_value=False), \
             patch("assetflow.lib.exceptions.logger") as mock_logger:
            response = internal_server_error_handler(fake_request, RuntimeError("boom"))

        mock_logger.exception.assert_called_once_with(
            "Unhandled exception on %s %s", "POST", "/assets/approve",
        )
        assert response.content == {"status_code": 500, "detail": "Internal Server Error"}
