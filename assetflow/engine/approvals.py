"""Approval state machine: the only writer of asset status.

States: DRAFT -> PENDING_REVIEW -> APPROVED | REJECTED. Approved and
rejected assets are final; a new asset is uploaded instead.

Every transition is a conditional write on the row's current status, so a
reviewer who loses a race against another reviewer gets an
``InvalidStateError`` instead of silently overwriting the first decision.
After any item of a carousel changes, the carousel status is re-derived from
a fresh read of all its items.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from assetflow.db.repository import AssetRepository
from assetflow.domain.enums import ApprovalAction, AssetStatus, Role, VisibilityLevel
from assetflow.domain.errors import (
    AssetNotFoundError,
    EngineError,
    InvalidAssetInCarouselError,
    InvalidStateError,
    MissingReasonError,
    PermissionDeniedError,
    SelfApprovalError,
    ValidationError,
)
from assetflow.domain.models import (
    Asset,
    CarouselContainer,
    CarouselDecision,
    CarouselItem,
    CarouselSelection,
    ChildResult,
    Principal,
    StandaloneAsset,
)
from assetflow.engine.aggregation import aggregate
from assetflow.engine.integrity import validate_visibility

logger = logging.getLogger(__name__)

Decidable = StandaloneAsset | CarouselItem


@dataclass(frozen=True)
class StatusChange:
    """A carousel status recomputation."""

    carousel: CarouselContainer
    previous: AssetStatus | None

    @property
    def changed(self) -> bool:
        return self.previous is not self.carousel.status


@dataclass(frozen=True)
class Submission:
    """Assets moved from DRAFT to PENDING_REVIEW by one submit call."""

    asset: Asset
    submitted_ids: tuple[UUID, ...]
    status_change: StatusChange | None = None


class ApprovalStateMachine:
    """Validates and applies status transitions."""

    def __init__(self, repository: AssetRepository, clock: Callable[[], datetime] | None = None) -> None:
        self.repository = repository
        self._clock = clock or (lambda: datetime.now(UTC))

    # -- single assets --

    async def approve_asset(
        self,
        asset: Decidable,
        reviewer: Principal,
        new_visibility: VisibilityLevel | None = None,
        allowed_role: Role | None = None,
    ) -> Decidable:
        """Approve one pending asset, optionally changing its visibility.

        An approved carousel item triggers a carousel status recompute.
        """
        self._check_decidable(asset)
        self._check_reviewable(asset, reviewer)
        if new_visibility is not None:
            validate_visibility(new_visibility, allowed_role)

        await self._approve(asset, reviewer, new_visibility, allowed_role)
        if isinstance(asset, CarouselItem):
            await self.recompute_carousel(asset.carousel_id)
        return await self._reload(asset.id)

    async def reject_asset(self, asset: Decidable, reviewer: Principal, reason: str | None) -> Decidable:
        """Reject one pending asset with a non-blank reason."""
        self._check_decidable(asset)
        self._check_reviewable(asset, reviewer)
        reason = self._check_reason(asset, reason)

        await self._reject(asset, reviewer, reason)
        if isinstance(asset, CarouselItem):
            await self.recompute_carousel(asset.carousel_id)
        return await self._reload(asset.id)

    # -- carousels --

    async def approve_carousel(
        self,
        carousel: CarouselContainer,
        reviewer: Principal,
        selection: CarouselSelection | None = None,
        new_visibility: VisibilityLevel | None = None,
        allowed_role: Role | None = None,
    ) -> CarouselDecision:
        """Approve all pending items, or a named subset, then recompute the carousel.

        Items that already left review are skipped by ``all`` and rejected
        up front when named explicitly. Each item commits on its own, so a
        lost race on one item is reported in its result without undoing the
        others.
        """
        selection = selection or CarouselSelection.everything()
        self._check_reviewable(carousel, reviewer)
        if new_visibility is not None:
            validate_visibility(new_visibility, allowed_role)
        targets = self._select_children(carousel, selection)

        results = []
        for child in targets:
            try:
                await self._approve(child, reviewer, new_visibility, allowed_role)
            except EngineError as exc:
                results.append(ChildResult(asset_id=child.id, status=exc.detail.get("actual") or child.status, error=exc))
            else:
                results.append(ChildResult(asset_id=child.id, status=AssetStatus.APPROVED))

        if new_visibility is not None and any(r.ok for r in results):
            await self.repository.update_fields(
                carousel.id,
                {"visibility": str(new_visibility), "allowed_role": _role_value(allowed_role, new_visibility)},
            )
        change = await self.recompute_carousel(carousel.id)
        return CarouselDecision(carousel=change.carousel, results=tuple(results), previous_status=change.previous)

    async def reject_carousel(
        self,
        carousel: CarouselContainer,
        reviewer: Principal,
        reason: str | None,
        selection: CarouselSelection | None = None,
    ) -> CarouselDecision:
        """Reject all pending items, or a named subset, then recompute the carousel."""
        selection = selection or CarouselSelection.everything()
        self._check_reviewable(carousel, reviewer)
        reason = self._check_reason(carousel, reason)
        targets = self._select_children(carousel, selection)

        results = []
        for child in targets:
            try:
                await self._reject(child, reviewer, reason)
            except EngineError as exc:
                results.append(ChildResult(asset_id=child.id, status=exc.detail.get("actual") or child.status, error=exc))
            else:
                results.append(ChildResult(asset_id=child.id, status=AssetStatus.REJECTED))

        change = await self.recompute_carousel(carousel.id)
        return CarouselDecision(carousel=change.carousel, results=tuple(results), previous_status=change.previous)

    async def approve_carousel_asset(
        self,
        carousel: CarouselContainer,
        child_id: UUID,
        reviewer: Principal,
        new_visibility: VisibilityLevel | None = None,
        allowed_role: Role | None = None,
    ) -> StatusChange:
        """Approve a single item of a carousel and recompute the carousel."""
        child = self._member(carousel, child_id)
        self._check_reviewable(child, reviewer)
        if new_visibility is not None:
            validate_visibility(new_visibility, allowed_role)
        await self._approve(child, reviewer, new_visibility, allowed_role)
        return await self.recompute_carousel(carousel.id)

    async def reject_carousel_asset(
        self,
        carousel: CarouselContainer,
        child_id: UUID,
        reviewer: Principal,
        reason: str | None,
    ) -> StatusChange:
        """Reject a single item of a carousel and recompute the carousel."""
        child = self._member(carousel, child_id)
        self._check_reviewable(child, reviewer)
        reason = self._check_reason(child, reason)
        await self._reject(child, reviewer, reason)
        return await self.recompute_carousel(carousel.id)

    async def recompute_carousel(self, carousel_id: UUID) -> StatusChange:
        """Re-derive and store a carousel's status from a fresh read of its items."""
        statuses = await self.repository.child_statuses(carousel_id)
        previous = await self.repository.store_carousel_status(carousel_id, aggregate(statuses))
        carousel = await self._reload(carousel_id)
        if not isinstance(carousel, CarouselContainer):
            raise ValidationError(f"Asset {carousel_id} is not a carousel", asset_id=carousel_id)
        change = StatusChange(carousel=carousel, previous=previous)
        if change.changed:
            logger.info("Carousel %s status %s -> %s", carousel_id, previous, carousel.status)
        return change

    # -- submission --

    async def submit_for_review(self, asset: Asset, actor: Principal) -> Submission:
        """Move a draft (or every draft item of a carousel) into review."""
        if actor.id != asset.uploader_id and not actor.is_admin:
            raise PermissionDeniedError(
                "Only the uploader or an admin can submit an asset for review",
                asset_id=asset.id,
                capability="submit",
            )

        if isinstance(asset, CarouselContainer):
            drafts = [c for c in asset.children if c.status is AssetStatus.DRAFT]
            if not drafts:
                raise InvalidStateError(
                    f"Carousel {asset.id} has no draft items to submit",
                    asset_id=asset.id,
                    expected=AssetStatus.DRAFT,
                    actual=asset.status,
                )
            submitted = []
            for child in drafts:
                await self._write(child, AssetStatus.DRAFT, {"status": AssetStatus.PENDING_REVIEW.value})
                await self.repository.commit()
                submitted.append(child.id)
            change = await self.recompute_carousel(asset.id)
            return Submission(asset=change.carousel, submitted_ids=tuple(submitted), status_change=change)

        if asset.status is not AssetStatus.DRAFT:
            raise InvalidStateError(
                f"Asset {asset.id} must be DRAFT to submit, it is {asset.status}",
                asset_id=asset.id,
                expected=AssetStatus.DRAFT,
                actual=asset.status,
            )
        await self._write(asset, AssetStatus.DRAFT, {"status": AssetStatus.PENDING_REVIEW.value})
        await self.repository.commit()
        change = None
        if isinstance(asset, CarouselItem):
            change = await self.recompute_carousel(asset.carousel_id)
        return Submission(asset=await self._reload(asset.id), submitted_ids=(asset.id,), status_change=change)

    # -- primitives --

    async def _approve(
        self,
        asset: Decidable,
        reviewer: Principal,
        new_visibility: VisibilityLevel | None,
        allowed_role: Role | None,
    ) -> None:
        values: dict[str, Any] = {
            "status": AssetStatus.APPROVED.value,
            "approved_at": self._clock(),
            "approved_by_id": reviewer.id,
            "rejected_at": None,
            "rejected_by_id": None,
            "rejection_reason": None,
        }
        if new_visibility is not None:
            values["visibility"] = new_visibility.value
            values["allowed_role"] = _role_value(allowed_role, new_visibility)
        await self._write(asset, AssetStatus.PENDING_REVIEW, values)
        await self.repository.record_decision(asset.id, reviewer.id, ApprovalAction.APPROVE)
        await self.repository.commit()
        logger.info("Asset %s approved by %s", asset.id, reviewer.id)

    async def _reject(self, asset: Decidable, reviewer: Principal, reason: str) -> None:
        values: dict[str, Any] = {
            "status": AssetStatus.REJECTED.value,
            "rejected_at": self._clock(),
            "rejected_by_id": reviewer.id,
            "rejection_reason": reason,
            "approved_at": None,
            "approved_by_id": None,
        }
        await self._write(asset, AssetStatus.PENDING_REVIEW, values)
        await self.repository.record_decision(asset.id, reviewer.id, ApprovalAction.REJECT, reason)
        await self.repository.commit()
        logger.info("Asset %s rejected by %s", asset.id, reviewer.id)

    async def _write(self, asset: Asset, expected: AssetStatus, values: dict[str, Any]) -> None:
        """Conditional write; re-reads the row to report a lost race."""
        if await self.repository.transition(asset.id, expected=expected, values=values):
            return
        await self.repository.rollback()
        actual = await self.repository.current_status(asset.id)
        if actual is None:
            raise AssetNotFoundError(f"Asset {asset.id} no longer exists", asset_id=asset.id)
        raise InvalidStateError(
            f"Asset {asset.id} is {actual}, expected {expected}",
            asset_id=asset.id,
            expected=expected,
            actual=actual,
        )

    async def _reload(self, asset_id: UUID) -> Asset:
        asset = await self.repository.load(asset_id)
        if asset is None:
            raise AssetNotFoundError(f"Asset {asset_id} no longer exists", asset_id=asset_id)
        return asset

    # -- validation --

    @staticmethod
    def _check_decidable(asset: Asset) -> None:
        if isinstance(asset, CarouselContainer):
            raise ValidationError(
                "Carousels are decided through their items",
                asset_id=asset.id,
                field="asset_id",
            )

    @staticmethod
    def _check_reviewable(asset: Asset, reviewer: Principal) -> None:
        if asset.status is not AssetStatus.PENDING_REVIEW:
            raise InvalidStateError(
                f"Asset {asset.id} must be PENDING_REVIEW, it is {asset.status}",
                asset_id=asset.id,
                expected=AssetStatus.PENDING_REVIEW,
                actual=asset.status,
            )
        if reviewer.id == asset.uploader_id:
            raise SelfApprovalError(
                "Reviewers cannot decide on their own submissions",
                asset_id=asset.id,
                reviewer_id=reviewer.id,
            )

    @staticmethod
    def _check_reason(asset: Asset, reason: str | None) -> str:
        if reason is None or not reason.strip():
            raise MissingReasonError("A rejection reason is required", asset_id=asset.id)
        return reason.strip()

    @staticmethod
    def _member(carousel: CarouselContainer, child_id: UUID) -> CarouselItem:
        child = carousel.child(child_id)
        if child is None:
            raise InvalidAssetInCarouselError(
                f"Asset {child_id} is not part of carousel {carousel.id}",
                asset_id=child_id,
                carousel_id=carousel.id,
            )
        return child

    @staticmethod
    def _select_children(carousel: CarouselContainer, selection: CarouselSelection) -> list[CarouselItem]:
        """Resolve a selection to items, validating named items before any write."""
        if selection.all:
            # May be empty once every item is decided
            return [c for c in carousel.children if c.status is AssetStatus.PENDING_REVIEW]

        if not selection.asset_ids:
            raise ValidationError(
                "Name at least one item or select all",
                asset_id=carousel.id,
                field="asset_ids",
            )
        unknown = selection.asset_ids - set(carousel.child_ids)
        for asset_id in sorted(unknown, key=str):
            raise InvalidAssetInCarouselError(
                f"Asset {asset_id} is not part of carousel {carousel.id}",
                asset_id=asset_id,
                carousel_id=carousel.id,
            )
        targets = [c for c in carousel.children if c.id in selection.asset_ids]
        for child in targets:
            if child.status is not AssetStatus.PENDING_REVIEW:
                raise InvalidAssetInCarouselError(
                    f"Asset {child.id} is {child.status}, not PENDING_REVIEW",
                    asset_id=child.id,
                    carousel_id=carousel.id,
                    actual=child.status,
                )
        return targets


def _role_value(allowed_role: Role | None, visibility: VisibilityLevel) -> str | None:
    if visibility is VisibilityLevel.ROLE and allowed_role is not None:
        return allowed_role.value
    return None
