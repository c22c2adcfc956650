"""Entry point for callers: queries, mutations and event emission.

Every operation takes the authenticated :class:`Principal` and the id of
the asset it acts on. The facade loads fresh state, checks capabilities,
hands transitions to the state machine and publishes a
:class:`DomainEvent` through the hook registry once the change is
committed.

Assets the principal may not view are reported as missing, so their
existence does not leak.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from assetflow.config import EngineConfig, Settings, get_settings
from assetflow.db.models import AssetRecord
from assetflow.db.repository import AssetRepository
from assetflow.domain.enums import AssetStatus, Role, VisibilityLevel
from assetflow.domain.errors import (
    AssetNotFoundError,
    CascadeDeleteError,
    PermissionDeniedError,
    ValidationError,
)
from assetflow.domain.events import DomainEvent, EventType
from assetflow.domain.models import (
    Asset,
    AssetDraft,
    AssetFilters,
    Capabilities,
    CarouselContainer,
    CarouselDecision,
    CarouselDraft,
    CarouselItem,
    CarouselSelection,
    ChildResult,
    DeletionResult,
    MetadataChanges,
    ParentAction,
    Principal,
    StandaloneAsset,
)
from assetflow.engine import visibility
from assetflow.engine.aggregation import aggregate
from assetflow.engine.approvals import ApprovalStateMachine, StatusChange
from assetflow.engine.integrity import (
    validate_asset_draft,
    validate_cascade_delete,
    validate_child_delete,
    validate_create,
)
from assetflow.lib import observability
from assetflow.lib.hooks import VISIBLE_ASSETS, HookRegistry, hooks
from assetflow.lib.storage import LocalStorageBackend, StorageBackend

logger = logging.getLogger(__name__)


class EngineFacade:
    """Approval and visibility engine bound to one database session."""

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        storage: StorageBackend | None = None,
        hook_registry: HookRegistry | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.repository = AssetRepository(db_session)
        self.state_machine = ApprovalStateMachine(self.repository, clock)
        self.storage = storage
        self.hooks = hook_registry or hooks
        self.config = config or EngineConfig()

    @classmethod
    def from_settings(
        cls,
        db_session: AsyncSession,
        settings: Settings | None = None,
        *,
        hook_registry: HookRegistry | None = None,
    ) -> EngineFacade:
        """Build a facade with local storage and engine options from settings."""
        settings = settings or get_settings()
        return cls(
            db_session,
            storage=LocalStorageBackend.from_config(settings.storage),
            hook_registry=hook_registry,
            config=settings.engine,
        )

    # -- queries --

    async def get_visible(self, principal: Principal, asset_id: UUID) -> Asset:
        """Return the asset if ``principal`` may view it.

        Raises:
            AssetNotFoundError: the asset does not exist or is not viewable.
        """
        return await self._load_viewable(principal, asset_id)

    async def capabilities(self, principal: Principal, asset_id: UUID) -> Capabilities:
        """Return what ``principal`` may do with a viewable asset."""
        asset = await self._load(asset_id)
        return await self._capabilities(principal, asset)

    async def list_visible(self, principal: Principal, filters: AssetFilters | None = None) -> list[Asset]:
        """List the top-level assets ``principal`` may view, shaped for display."""
        with observability.span("engine.list_visible", principal_id=str(principal.id)):
            assets = await self.repository.list_assets(filters)
            selected = [a.id for a in assets if a.visibility is VisibilityLevel.SELECTED_USERS]
            shared_ids = await self.repository.shared_asset_ids(principal.id, selected)

            visible = []
            for asset in assets:
                shaped = visibility.shape_for_listing(principal, asset, shared_with=asset.id in shared_ids)
                if shaped is not None:
                    visible.append(shaped)
            return await self.hooks.apply_filters(VISIBLE_ASSETS, visible, principal=principal)

    async def list_pending(self, principal: Principal, filters: AssetFilters | None = None) -> list[Asset]:
        """The review queue: top-level assets awaiting a decision. Admins only."""
        if not principal.is_admin:
            raise PermissionDeniedError("Only admins can see the review queue", capability="approve")
        filters = replace(filters or AssetFilters(), status=AssetStatus.PENDING_REVIEW)
        assets = await self.repository.list_assets(filters)
        # All-draft carousels aggregate to PENDING_REVIEW but were never submitted
        return [
            a for a in assets
            if not isinstance(a, CarouselContainer)
            or any(c.status is AssetStatus.PENDING_REVIEW for c in a.children)
        ]

    async def download_url(self, principal: Principal, asset_id: UUID) -> str:
        """Resolve a download URL for an asset's bytes."""
        asset = await self._load(asset_id)
        caps = await self._capabilities(principal, asset)
        if not caps.can_download:
            raise PermissionDeniedError(
                f"Asset {asset_id} cannot be downloaded yet",
                asset_id=asset_id,
                capability="download",
            )
        if isinstance(asset, CarouselContainer):
            raise ValidationError(
                "Carousels are downloaded item by item",
                asset_id=asset_id,
                field="asset_id",
            )
        if self.storage is None:
            raise RuntimeError("No storage backend configured")
        return await self.storage.get_url(asset.storage_ref)

    # -- creation --

    async def create_asset(self, principal: Principal, draft: AssetDraft) -> StandaloneAsset:
        """Create a standalone asset in DRAFT, or PENDING_REVIEW when submitted."""
        with observability.span("engine.create_asset", principal_id=str(principal.id)):
            if draft.company_id is None and principal.company_id is not None:
                draft = replace(draft, company_id=principal.company_id)
            validate_asset_draft(draft)

            status = AssetStatus.PENDING_REVIEW if draft.submit_for_review else AssetStatus.DRAFT
            record = AssetRecord(
                id=uuid4(),
                type=draft.type.value,
                status=status.value,
                visibility=draft.visibility.value,
                allowed_role=draft.allowed_role.value if draft.allowed_role else None,
                title=draft.title,
                description=draft.description,
                storage_ref=draft.storage_ref,
                uploader_id=principal.id,
                company_id=draft.company_id,
                target_platforms=list(draft.target_platforms),
                campaign_name=draft.campaign_name,
                tags=list(draft.tags),
            )
            await self.repository.add(record)
            asset = await self._load(record.id)

        logger.info("Asset %s created by %s as %s", asset.id, principal.id, asset.status)
        await self._emit(EventType.ASSET_CREATED, asset.id, principal, type=str(asset.type), status=str(asset.status))
        return asset

    async def create_carousel(self, principal: Principal, draft: CarouselDraft) -> CarouselContainer:
        """Create a carousel and its items in one transaction.

        Items inherit company, platforms, campaign, tags and the initial
        visibility from the carousel.
        """
        with observability.span("engine.create_carousel", principal_id=str(principal.id)):
            if draft.company_id is None and principal.company_id is not None:
                draft = replace(draft, company_id=principal.company_id)
            validate_create(draft, min_children=self.config.min_carousel_children)

            status = AssetStatus.PENDING_REVIEW if draft.submit_for_review else AssetStatus.DRAFT
            shared: dict[str, Any] = {
                "visibility": draft.visibility.value,
                "allowed_role": draft.allowed_role.value if draft.allowed_role else None,
                "uploader_id": principal.id,
                "company_id": draft.company_id,
                "target_platforms": list(draft.target_platforms),
                "campaign_name": draft.campaign_name,
                "tags": list(draft.tags),
            }
            carousel_id = uuid4()
            container = AssetRecord(
                id=carousel_id,
                type="CAROUSEL",
                status=aggregate([status] * len(draft.children)).value,
                title=draft.title,
                description=draft.description,
                **shared,
            )
            children = [
                AssetRecord(
                    id=uuid4(),
                    type=child.type.value,
                    status=status.value,
                    title=child.title or f"{draft.title} ({position + 1})",
                    description=child.description,
                    storage_ref=child.storage_ref,
                    parent_carousel_id=carousel_id,
                    position=position,
                    **shared,
                )
                for position, child in enumerate(draft.children)
            ]
            await self.repository.add_carousel(container, children)
            carousel = await self._load(carousel_id)

        logger.info("Carousel %s created by %s with %d items", carousel_id, principal.id, len(children))
        await self._emit(
            EventType.ASSET_CREATED,
            carousel_id,
            principal,
            type="CAROUSEL",
            status=str(carousel.status),
            child_ids=[str(c.id) for c in children],
        )
        return carousel

    # -- review --

    async def submit_for_review(self, principal: Principal, asset_id: UUID) -> Asset:
        """Move a draft into the review queue."""
        asset = await self._load_viewable(principal, asset_id)
        with observability.span("engine.submit_for_review", asset_id=str(asset_id)):
            submission = await self.state_machine.submit_for_review(asset, principal)

        for submitted_id in submission.submitted_ids:
            await self._emit(EventType.ASSET_SUBMITTED, submitted_id, principal)
        await self._emit_status_change(submission.status_change, principal)
        return submission.asset

    async def approve_asset(
        self,
        principal: Principal,
        asset_id: UUID,
        new_visibility: VisibilityLevel | None = None,
        allowed_role: Role | None = None,
    ) -> Asset:
        """Approve a standalone asset or a single carousel item."""
        asset = await self._load_viewable(principal, asset_id)
        self._require_reviewer(principal, asset)
        if isinstance(asset, CarouselItem):
            await self.approve_carousel_asset(principal, asset.carousel_id, asset.id, new_visibility, allowed_role)
            return await self._load(asset_id)

        with observability.span("engine.approve_asset", asset_id=str(asset_id)):
            approved = await self.state_machine.approve_asset(asset, principal, new_visibility, allowed_role)
        await self._emit(EventType.ASSET_APPROVED, asset_id, principal, visibility=str(approved.visibility))
        return approved

    async def reject_asset(self, principal: Principal, asset_id: UUID, reason: str | None) -> Asset:
        """Reject a standalone asset or a single carousel item."""
        asset = await self._load_viewable(principal, asset_id)
        self._require_reviewer(principal, asset)
        if isinstance(asset, CarouselItem):
            await self.reject_carousel_asset(principal, asset.carousel_id, asset.id, reason)
            return await self._load(asset_id)

        with observability.span("engine.reject_asset", asset_id=str(asset_id)):
            rejected = await self.state_machine.reject_asset(asset, principal, reason)
        await self._emit(EventType.ASSET_REJECTED, asset_id, principal, reason=rejected.rejection_reason)
        return rejected

    async def approve_carousel(
        self,
        principal: Principal,
        carousel_id: UUID,
        selection: CarouselSelection | None = None,
        new_visibility: VisibilityLevel | None = None,
        allowed_role: Role | None = None,
    ) -> CarouselDecision:
        """Approve every pending item of a carousel, or the selected ones."""
        carousel = await self._load_carousel(principal, carousel_id)
        self._require_reviewer(principal, carousel)
        with observability.span("engine.approve_carousel", asset_id=str(carousel_id)):
            decision = await self.state_machine.approve_carousel(
                carousel, principal, selection, new_visibility, allowed_role
            )

        for child_id in decision.succeeded:
            await self._emit(EventType.ASSET_APPROVED, child_id, principal, carousel_id=str(carousel_id))
        for result in decision.failed:
            self._report_failed_child("Approval", carousel_id, result)
        await self._emit_status_change(StatusChange(decision.carousel, decision.previous_status), principal)
        return decision

    async def reject_carousel(
        self,
        principal: Principal,
        carousel_id: UUID,
        reason: str | None,
        selection: CarouselSelection | None = None,
    ) -> CarouselDecision:
        """Reject every pending item of a carousel, or the selected ones."""
        carousel = await self._load_carousel(principal, carousel_id)
        self._require_reviewer(principal, carousel)
        with observability.span("engine.reject_carousel", asset_id=str(carousel_id)):
            decision = await self.state_machine.reject_carousel(carousel, principal, reason, selection)

        for result in decision.results:
            if result.ok:
                await self._emit(
                    EventType.ASSET_REJECTED,
                    result.asset_id,
                    principal,
                    carousel_id=str(carousel_id),
                    reason=reason.strip() if reason else None,
                )
            else:
                self._report_failed_child("Rejection", carousel_id, result)
        await self._emit_status_change(StatusChange(decision.carousel, decision.previous_status), principal)
        return decision

    async def approve_carousel_asset(
        self,
        principal: Principal,
        carousel_id: UUID,
        asset_id: UUID,
        new_visibility: VisibilityLevel | None = None,
        allowed_role: Role | None = None,
    ) -> CarouselContainer:
        """Approve one item of a carousel and return the recomputed carousel."""
        carousel = await self._load_carousel(principal, carousel_id)
        self._require_reviewer(principal, carousel)
        with observability.span("engine.approve_carousel_asset", asset_id=str(asset_id)):
            change = await self.state_machine.approve_carousel_asset(
                carousel, asset_id, principal, new_visibility, allowed_role
            )
        await self._emit(EventType.ASSET_APPROVED, asset_id, principal, carousel_id=str(carousel_id))
        await self._emit_status_change(change, principal)
        return change.carousel

    async def reject_carousel_asset(
        self,
        principal: Principal,
        carousel_id: UUID,
        asset_id: UUID,
        reason: str | None,
    ) -> CarouselContainer:
        """Reject one item of a carousel and return the recomputed carousel."""
        carousel = await self._load_carousel(principal, carousel_id)
        self._require_reviewer(principal, carousel)
        with observability.span("engine.reject_carousel_asset", asset_id=str(asset_id)):
            change = await self.state_machine.reject_carousel_asset(carousel, asset_id, principal, reason)
        await self._emit(
            EventType.ASSET_REJECTED,
            asset_id,
            principal,
            carousel_id=str(carousel_id),
            reason=change.carousel.child(asset_id).rejection_reason,
        )
        await self._emit_status_change(change, principal)
        return change.carousel

    # -- edits --

    async def update_metadata(self, principal: Principal, asset_id: UUID, changes: MetadataChanges) -> Asset:
        """Edit descriptive fields. Carousel edits are not copied to its items."""
        asset = await self._load_viewable(principal, asset_id)
        caps = await self._capabilities(principal, asset)
        if not caps.can_edit:
            raise PermissionDeniedError(f"Cannot edit asset {asset_id}", asset_id=asset_id, capability="edit")

        values: dict[str, Any] = {}
        if changes.title is not None:
            if not changes.title.strip():
                raise ValidationError("Title cannot be blank", asset_id=asset_id, field="title")
            values["title"] = changes.title.strip()
        if changes.description is not None:
            values["description"] = changes.description
        if changes.target_platforms is not None:
            values["target_platforms"] = list(changes.target_platforms)
        if changes.campaign_name is not None:
            values["campaign_name"] = changes.campaign_name
        if changes.tags is not None:
            values["tags"] = list(changes.tags)
        if not values:
            return asset

        await self.repository.update_fields(asset_id, values)
        updated = await self._load(asset_id)
        await self._emit(EventType.ASSET_UPDATED, asset_id, principal, fields=sorted(values))
        return updated

    async def share_asset(self, principal: Principal, asset_id: UUID, *user_ids: UUID) -> list[UUID]:
        """Share a privately scoped asset with specific users.

        An UPLOADER_ONLY asset becomes SELECTED_USERS. Returns the ids that
        were not already shared.
        """
        asset = await self._load_viewable(principal, asset_id)
        if not visibility.can_share(principal, asset):
            raise PermissionDeniedError(
                "Only the uploader can share assets scoped to the uploader or selected users",
                asset_id=asset_id,
                capability="share",
            )
        if not user_ids:
            raise ValidationError("At least one recipient is required", asset_id=asset_id, field="user_ids")
        if principal.id in user_ids:
            raise ValidationError("Cannot share an asset with yourself", asset_id=asset_id, field="user_ids")

        if asset.visibility is VisibilityLevel.UPLOADER_ONLY:
            await self.repository.update_fields(asset_id, {"visibility": VisibilityLevel.SELECTED_USERS.value})

        added = []
        for user_id in user_ids:
            if await self.repository.add_share(asset_id, user_id, principal.id):
                added.append(user_id)
                await self._emit(EventType.ASSET_SHARED, asset_id, principal, shared_with_id=str(user_id))
        return added

    async def revoke_share(self, principal: Principal, asset_id: UUID, user_id: UUID) -> bool:
        """Remove a share made by the uploader."""
        asset = await self._load_viewable(principal, asset_id)
        if not visibility.can_share(principal, asset):
            raise PermissionDeniedError(
                "Only the uploader can revoke shares",
                asset_id=asset_id,
                capability="share",
            )
        return await self.repository.remove_share(asset_id, user_id)

    # -- deletion --

    async def delete_asset(self, principal: Principal, asset_id: UUID) -> DeletionResult:
        """Delete an asset, its bytes, and for a carousel all of its items.

        Storage is cleared before any row is removed. If storage fails for
        any asset, nothing is deleted and :class:`CascadeDeleteError` lists
        the failed ids.
        """
        asset = await self._load_viewable(principal, asset_id)
        caps = await self._capabilities(principal, asset)
        if not caps.can_delete:
            raise PermissionDeniedError(f"Cannot delete asset {asset_id}", asset_id=asset_id, capability="delete")

        with observability.span("engine.delete_asset", asset_id=str(asset_id)):
            if isinstance(asset, CarouselContainer):
                return await self._delete_carousel(principal, asset)
            if isinstance(asset, CarouselItem):
                return await self._delete_carousel_item(principal, asset)

            await self._purge_storage([asset])
            deleted = await self.repository.delete_ids([asset.id])

        logger.info("Asset %s deleted by %s", asset_id, principal.id)
        await self._emit(EventType.ASSET_DELETED, asset_id, principal)
        return DeletionResult(deleted_ids=tuple(deleted))

    async def _delete_carousel(self, principal: Principal, carousel: CarouselContainer) -> DeletionResult:
        ordered = validate_cascade_delete(carousel)
        await self._purge_storage(carousel.children)
        deleted = await self.repository.delete_ids(ordered)

        logger.info("Carousel %s and %d items deleted by %s", carousel.id, len(carousel.children), principal.id)
        for deleted_id in deleted:
            await self._emit(
                EventType.ASSET_DELETED,
                deleted_id,
                principal,
                carousel_id=str(carousel.id) if deleted_id != carousel.id else None,
            )
        return DeletionResult(deleted_ids=tuple(deleted))

    async def _delete_carousel_item(self, principal: Principal, item: CarouselItem) -> DeletionResult:
        carousel = await self._load(item.carousel_id)
        if not isinstance(carousel, CarouselContainer):
            raise ValidationError(f"Asset {item.carousel_id} is not a carousel", asset_id=item.carousel_id)
        parent = validate_child_delete(carousel, item.id)

        await self._purge_storage([item])
        deleted = list(await self.repository.delete_ids([item.id]))
        await self._emit(EventType.ASSET_DELETED, item.id, principal, carousel_id=str(carousel.id))

        if parent.is_empty and self.config.empty_carousel_policy == "delete":
            deleted += await self.repository.delete_ids([carousel.id])
            logger.info("Carousel %s deleted with its last item", carousel.id)
            await self._emit(EventType.ASSET_DELETED, carousel.id, principal)
            parent = ParentAction(
                carousel_id=carousel.id,
                remaining_child_ids=(),
                carousel_deleted=True,
            )
        else:
            change = await self.state_machine.recompute_carousel(carousel.id)
            await self._emit_status_change(change, principal)
            if parent.is_empty:
                logger.info("Carousel %s is now empty", carousel.id)

        return DeletionResult(deleted_ids=tuple(deleted), parent=parent)

    async def _purge_storage(self, assets: Iterable[StandaloneAsset | CarouselItem]) -> None:
        if self.storage is None:
            return
        failed = []
        for asset in assets:
            if not asset.storage_ref:
                continue
            try:
                await self.storage.delete(asset.storage_ref)
            except Exception:
                logger.warning("Could not delete bytes of %s at %s", asset.id, asset.storage_ref, exc_info=True)
                observability.warning(
                    "Could not delete bytes of {asset_id}", asset_id=str(asset.id), storage_ref=asset.storage_ref
                )
                failed.append(asset.id)
        if failed:
            raise CascadeDeleteError(
                f"Storage could not delete {len(failed)} asset(s); nothing was removed",
                asset_id=failed[0] if len(failed) == 1 else None,
                failed_ids=failed,
            )

    # -- helpers --

    async def _load(self, asset_id: UUID) -> Asset:
        asset = await self.repository.load(asset_id)
        if asset is None:
            raise AssetNotFoundError(f"Asset {asset_id} not found", asset_id=asset_id)
        return asset

    async def _load_viewable(self, principal: Principal, asset_id: UUID) -> Asset:
        asset = await self._load(asset_id)
        await self._capabilities(principal, asset)
        return asset

    async def _load_carousel(self, principal: Principal, carousel_id: UUID) -> CarouselContainer:
        carousel = await self._load_viewable(principal, carousel_id)
        if not isinstance(carousel, CarouselContainer):
            raise ValidationError(
                f"Asset {carousel_id} is not a carousel",
                asset_id=carousel_id,
                field="carousel_id",
            )
        return carousel

    async def _shared(self, principal: Principal, asset: Asset) -> bool:
        if asset.visibility is not VisibilityLevel.SELECTED_USERS:
            return False
        return await self.repository.is_shared_with(asset.id, principal.id)

    async def _capabilities(self, principal: Principal, asset: Asset) -> Capabilities:
        caps = visibility.resolve(principal, asset, shared_with=await self._shared(principal, asset))
        if not caps.can_view:
            raise AssetNotFoundError(f"Asset {asset.id} not found", asset_id=asset.id)
        return caps

    @staticmethod
    def _require_reviewer(principal: Principal, asset: Asset) -> None:
        if not principal.is_admin:
            raise PermissionDeniedError(
                "Only admins can approve or reject assets",
                asset_id=asset.id,
                capability="approve",
            )

    async def _emit_status_change(self, change: StatusChange | None, principal: Principal) -> None:
        if change is None or not change.changed:
            return
        await self._emit(
            EventType.CAROUSEL_STATUS_CHANGED,
            change.carousel.id,
            principal,
            previous=str(change.previous) if change.previous else None,
            current=str(change.carousel.status),
        )

    @staticmethod
    def _report_failed_child(decision: str, carousel_id: UUID, result: ChildResult) -> None:
        logger.warning("%s of %s in carousel %s failed: %s", decision, result.asset_id, carousel_id, result.error)
        observability.warning(
            "{decision} of carousel item failed",
            decision=decision,
            asset_id=str(result.asset_id),
            carousel_id=str(carousel_id),
            code=getattr(result.error, "code", None),
        )

    async def _emit(self, event_type: EventType, asset_id: UUID, principal: Principal, **detail: Any) -> None:
        event = DomainEvent(type=event_type, asset_id=asset_id, actor_id=principal.id, detail=detail)
        observability.record_event(event)
        await self.hooks.emit(event)
