"""Asset persistence: loading domain shapes and guarded writes.

Only :mod:`assetflow.engine.approvals` calls :meth:`AssetRepository.transition`
and :meth:`AssetRepository.store_carousel_status`; every other caller goes
through the engine.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from assetflow.db.models import ApprovalRecord, AssetRecord, AssetShare
from assetflow.domain.enums import (
    ApprovalAction,
    AssetStatus,
    AssetType,
    Role,
    VisibilityLevel,
)
from assetflow.domain.errors import ReferentialIntegrityError
from assetflow.domain.models import (
    Asset,
    AssetFilters,
    CarouselContainer,
    CarouselItem,
    StandaloneAsset,
)
from assetflow.lib import observability

logger = logging.getLogger(__name__)


def _core_fields(record: AssetRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "uploader_id": record.uploader_id,
        "title": record.title,
        "description": record.description,
        "status": AssetStatus(record.status),
        "visibility": VisibilityLevel(record.visibility),
        "allowed_role": Role(record.allowed_role) if record.allowed_role else None,
        "company_id": record.company_id,
        "rejection_reason": record.rejection_reason,
        "target_platforms": tuple(record.target_platforms or ()),
        "campaign_name": record.campaign_name,
        "tags": tuple(record.tags or ()),
        "approved_at": record.approved_at,
        "approved_by_id": record.approved_by_id,
        "rejected_at": record.rejected_at,
        "rejected_by_id": record.rejected_by_id,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


def to_domain(record: AssetRecord, children: Sequence[AssetRecord] = ()) -> Asset:
    """Map a row (and, for a carousel, its item rows) to a domain shape."""
    asset_type = AssetType(record.type)
    if asset_type is AssetType.CAROUSEL:
        if record.parent_carousel_id is not None:
            raise ReferentialIntegrityError(
                f"Carousel {record.id} is nested inside {record.parent_carousel_id}",
                asset_id=record.id,
                parent_carousel_id=record.parent_carousel_id,
            )
        items = tuple(to_domain(child) for child in children)
        return CarouselContainer(children=items, **_core_fields(record))
    if record.parent_carousel_id is not None:
        return CarouselItem(
            type=asset_type,
            storage_ref=record.storage_ref or "",
            carousel_id=record.parent_carousel_id,
            position=record.position,
            **_core_fields(record),
        )
    return StandaloneAsset(
        type=asset_type,
        storage_ref=record.storage_ref or "",
        **_core_fields(record),
    )


class AssetRepository:
    """Reads and writes assets through one async session."""

    def __init__(self, db_session: AsyncSession) -> None:
        self.db_session = db_session

    # -- reads --

    async def get_record(self, asset_id: UUID) -> AssetRecord | None:
        result = await self.db_session.execute(
            select(AssetRecord).where(AssetRecord.id == asset_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def load(self, asset_id: UUID) -> Asset | None:
        """Load one asset as its domain shape, with fresh children for a carousel."""
        record = await self.get_record(asset_id)
        if record is None:
            return None
        try:
            if record.type == AssetType.CAROUSEL:
                children = await self.child_records(record.id)
                return to_domain(record, children)
            if record.parent_carousel_id is not None:
                parent = await self.get_record(record.parent_carousel_id)
                if parent is None or parent.type != AssetType.CAROUSEL:
                    raise ReferentialIntegrityError(
                        f"Asset {record.id} references {record.parent_carousel_id}, which is not a carousel",
                        asset_id=record.id,
                        parent_carousel_id=record.parent_carousel_id,
                    )
            return to_domain(record)
        except ReferentialIntegrityError as exc:
            _report_corruption(exc)
            raise

    async def child_records(self, carousel_id: UUID) -> list[AssetRecord]:
        result = await self.db_session.execute(
            select(AssetRecord)
            .where(AssetRecord.parent_carousel_id == carousel_id)
            .order_by(AssetRecord.position, AssetRecord.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def child_statuses(self, carousel_id: UUID) -> list[AssetStatus]:
        """Read the current statuses of every item in a carousel."""
        result = await self.db_session.execute(
            select(AssetRecord.status).where(AssetRecord.parent_carousel_id == carousel_id)
        )
        return [AssetStatus(s) for s in result.scalars().all()]

    async def current_status(self, asset_id: UUID) -> AssetStatus | None:
        result = await self.db_session.execute(
            select(AssetRecord.status).where(AssetRecord.id == asset_id)
        )
        status = result.scalar_one_or_none()
        return AssetStatus(status) if status is not None else None

    async def list_assets(self, filters: AssetFilters | None = None) -> list[Asset]:
        """List top-level assets (standalone assets and carousels) matching ``filters``."""
        filters = filters or AssetFilters()
        query = select(AssetRecord).where(AssetRecord.parent_carousel_id.is_(None))

        clauses = []
        if filters.type is not None:
            clauses.append(AssetRecord.type == str(filters.type))
        if filters.status is not None:
            clauses.append(AssetRecord.status == str(filters.status))
        if filters.company_id is not None:
            clauses.append(AssetRecord.company_id == filters.company_id)
        if filters.campaign_name is not None:
            clauses.append(AssetRecord.campaign_name == filters.campaign_name)
        if filters.uploader_id is not None:
            clauses.append(AssetRecord.uploader_id == filters.uploader_id)
        if clauses:
            query = query.where(and_(*clauses))

        query = query.order_by(AssetRecord.created_at.desc(), AssetRecord.id).execution_options(populate_existing=True)
        # Tags live in a JSON column, so tag filtering and paging happen here
        if filters.tag is None:
            if filters.offset:
                query = query.offset(filters.offset)
            if filters.limit is not None:
                query = query.limit(filters.limit)

        result = await self.db_session.execute(query)
        records = list(result.scalars().all())
        if filters.tag is not None:
            records = [r for r in records if filters.tag in (r.tags or [])]
            end = filters.offset + filters.limit if filters.limit is not None else None
            records = records[filters.offset:end]

        carousel_ids = [r.id for r in records if r.type == AssetType.CAROUSEL]
        children_by_parent: dict[UUID, list[AssetRecord]] = defaultdict(list)
        if carousel_ids:
            child_result = await self.db_session.execute(
                select(AssetRecord)
                .where(AssetRecord.parent_carousel_id.in_(carousel_ids))
                .order_by(AssetRecord.position, AssetRecord.created_at)
                .execution_options(populate_existing=True)
            )
            for child in child_result.scalars().all():
                children_by_parent[child.parent_carousel_id].append(child)

        assets = []
        for record in records:
            try:
                assets.append(to_domain(record, children_by_parent.get(record.id, ())))
            except ReferentialIntegrityError as exc:
                _report_corruption(exc)
                raise
        if filters.status is not None:
            # The stored carousel status is a copy; trust the freshly derived one
            assets = [a for a in assets if a.status is filters.status]
        return assets

    async def all_records(self) -> list[AssetRecord]:
        result = await self.db_session.execute(
            select(AssetRecord).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def carousel_ids(self) -> list[UUID]:
        result = await self.db_session.execute(
            select(AssetRecord.id).where(AssetRecord.type == AssetType.CAROUSEL.value)
        )
        return list(result.scalars().all())

    # -- writes --

    async def add(self, record: AssetRecord) -> None:
        self.db_session.add(record)
        await self.db_session.commit()

    async def add_carousel(self, carousel: AssetRecord, children: Sequence[AssetRecord]) -> None:
        """Insert a carousel and its items in one transaction, parent first."""
        self.db_session.add(carousel)
        await self.db_session.flush()
        self.db_session.add_all(children)
        await self.db_session.commit()

    async def transition(
        self,
        asset_id: UUID,
        *,
        expected: AssetStatus,
        values: dict[str, Any],
    ) -> bool:
        """Write ``values`` only if the row still has status ``expected``.

        Returns False when another writer moved the row first. Does not
        commit, so the caller can add the decision record in the same
        transaction.
        """
        result = await self.db_session.execute(
            update(AssetRecord)
            .where(and_(AssetRecord.id == asset_id, AssetRecord.status == str(expected)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def store_carousel_status(self, carousel_id: UUID, status: AssetStatus) -> AssetStatus | None:
        """Overwrite the stored carousel status and return the previous value."""
        previous = await self.current_status(carousel_id)
        if previous is not status:
            await self.db_session.execute(
                update(AssetRecord)
                .where(AssetRecord.id == carousel_id)
                .values(status=str(status))
                .execution_options(synchronize_session=False)
            )
        await self.db_session.commit()
        return previous

    async def update_fields(self, asset_id: UUID, values: dict[str, Any]) -> None:
        """Update non-status columns on one row."""
        if "status" in values:
            raise ValueError("status changes go through the approval state machine")
        await self.db_session.execute(
            update(AssetRecord)
            .where(AssetRecord.id == asset_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db_session.commit()

    async def delete_ids(self, asset_ids: Iterable[UUID]) -> list[UUID]:
        """Delete rows one by one in the given order, in a single transaction."""
        deleted = []
        for asset_id in asset_ids:
            await self.db_session.execute(delete(AssetRecord).where(AssetRecord.id == asset_id))
            deleted.append(asset_id)
        await self.db_session.commit()
        return deleted

    async def record_decision(
        self,
        asset_id: UUID,
        reviewer_id: UUID,
        action: ApprovalAction,
        reason: str | None = None,
    ) -> None:
        self.db_session.add(
            ApprovalRecord(asset_id=asset_id, reviewer_id=reviewer_id, action=str(action), reason=reason)
        )

    async def decisions_for(self, asset_id: UUID) -> list[ApprovalRecord]:
        result = await self.db_session.execute(
            select(ApprovalRecord)
            .where(ApprovalRecord.asset_id == asset_id)
            .order_by(ApprovalRecord.created_at)
        )
        return list(result.scalars().all())

    async def commit(self) -> None:
        await self.db_session.commit()

    async def rollback(self) -> None:
        await self.db_session.rollback()

    # -- shares --

    async def is_shared_with(self, asset_id: UUID, user_id: UUID) -> bool:
        result = await self.db_session.execute(
            select(func.count())
            .select_from(AssetShare)
            .where(and_(AssetShare.asset_id == asset_id, AssetShare.shared_with_id == user_id))
        )
        return (result.scalar() or 0) > 0

    async def shared_asset_ids(self, user_id: UUID, asset_ids: Iterable[UUID]) -> set[UUID]:
        """Return the subset of ``asset_ids`` explicitly shared with ``user_id``."""
        ids = list(asset_ids)
        if not ids:
            return set()
        result = await self.db_session.execute(
            select(AssetShare.asset_id).where(
                and_(AssetShare.shared_with_id == user_id, AssetShare.asset_id.in_(ids))
            )
        )
        return set(result.scalars().all())

    async def add_share(self, asset_id: UUID, shared_with_id: UUID, shared_by_id: UUID) -> bool:
        """Share an asset with a user. Returns False if the share already existed."""
        if await self.is_shared_with(asset_id, shared_with_id):
            return False
        self.db_session.add(
            AssetShare(asset_id=asset_id, shared_with_id=shared_with_id, shared_by_id=shared_by_id)
        )
        await self.db_session.commit()
        return True

    async def remove_share(self, asset_id: UUID, shared_with_id: UUID) -> bool:
        """Revoke a share. Returns False if there was nothing to revoke."""
        result = await self.db_session.execute(
            delete(AssetShare).where(
                and_(AssetShare.asset_id == asset_id, AssetShare.shared_with_id == shared_with_id)
            )
        )
        await self.db_session.commit()
        return result.rowcount > 0


def _report_corruption(exc: ReferentialIntegrityError) -> None:
    logger.error("Referential integrity violation: %s (%s)", exc.message, exc.detail)
    observability.error("Referential integrity violation: {message}", message=exc.message)
