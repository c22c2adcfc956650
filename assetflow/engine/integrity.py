"""Referential integrity between carousels and their items.

Creation requests are validated here before anything is written, deletions
are planned here (children before parent), and stored rows can be audited
for corruption with :func:`check_consistency`.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from assetflow.domain.enums import (
    ASSIGNABLE_ROLES,
    CAROUSEL_ITEM_TYPES,
    STANDALONE_TYPES,
    AssetStatus,
    AssetType,
    Role,
    VisibilityLevel,
)
from assetflow.domain.errors import InvalidAssetInCarouselError, ValidationError
from assetflow.domain.models import AssetDraft, CarouselContainer, CarouselDraft, ParentAction
from assetflow.engine.aggregation import aggregate


def validate_visibility(visibility: VisibilityLevel, allowed_role: Role | None) -> None:
    """ROLE visibility must name a non-admin role; other levels must not name one."""
    if visibility is VisibilityLevel.ROLE:
        if allowed_role not in ASSIGNABLE_ROLES:
            raise ValidationError(
                "ROLE visibility requires allowed_role of CONTENT_CREATOR or SEO_SPECIALIST",
                field="allowed_role",
                allowed_role=allowed_role,
            )
    elif allowed_role is not None:
        raise ValidationError(
            f"allowed_role only applies to ROLE visibility, not {visibility}",
            field="allowed_role",
            allowed_role=allowed_role,
        )


def validate_asset_draft(draft: AssetDraft) -> None:
    """Check a standalone asset creation request."""
    if draft.type not in STANDALONE_TYPES:
        raise ValidationError(
            f"Standalone assets cannot have type {draft.type}",
            field="type",
            type=draft.type,
        )
    if not draft.storage_ref or not draft.storage_ref.strip():
        raise ValidationError("A storage reference is required", field="storage_ref")
    validate_visibility(draft.visibility, draft.allowed_role)


def validate_create(draft: CarouselDraft, *, min_children: int = 1) -> None:
    """Check a carousel creation request.

    Raises:
        ValidationError: no (or too few) items, an item that is not an image
            or video, an item without a storage reference, or no company.
    """
    if len(draft.children) < max(min_children, 1):
        raise ValidationError(
            f"A carousel needs at least {max(min_children, 1)} item(s), got {len(draft.children)}",
            field="children",
            count=len(draft.children),
        )
    if draft.company_id is None:
        raise ValidationError("A carousel must belong to a company", field="company_id")
    for index, child in enumerate(draft.children):
        if child.type not in CAROUSEL_ITEM_TYPES:
            raise ValidationError(
                f"Carousel items must be images or videos, item {index} is {child.type}",
                field=f"children[{index}].type",
                type=child.type,
            )
        if not child.storage_ref or not child.storage_ref.strip():
            raise ValidationError(
                f"Carousel item {index} has no storage reference",
                field=f"children[{index}].storage_ref",
            )
    validate_visibility(draft.visibility, draft.allowed_role)


def validate_child_delete(carousel: CarouselContainer, child_id: UUID) -> ParentAction:
    """Plan removal of one item; siblings and the carousel row stay untouched.

    The returned action reports whether the carousel will be left empty. It
    is up to the caller to show that empty state or delete the carousel.
    """
    if carousel.child(child_id) is None:
        raise InvalidAssetInCarouselError(
            f"Asset {child_id} is not part of carousel {carousel.id}",
            asset_id=child_id,
            carousel_id=carousel.id,
        )
    remaining = tuple(cid for cid in carousel.child_ids if cid != child_id)
    return ParentAction(carousel_id=carousel.id, remaining_child_ids=remaining)


def validate_cascade_delete(carousel: CarouselContainer) -> list[UUID]:
    """Return every id a carousel deletion removes: items first, carousel last."""
    return [*carousel.child_ids, carousel.id]


class _Row(Protocol):
    id: UUID
    type: str
    status: str
    parent_carousel_id: UUID | None


@dataclass(frozen=True)
class IntegrityViolation:
    """One broken parent/child invariant found in stored rows."""

    kind: str
    asset_id: UUID
    message: str


def check_consistency(rows: Iterable[_Row]) -> list[IntegrityViolation]:
    """Audit stored rows for carousel corruption.

    Reports nested carousels, items pointing at missing or non-carousel
    parents, items of the wrong type, and carousels whose stored status no
    longer matches their items.
    """
    rows = list(rows)
    by_id = {row.id: row for row in rows}
    children: dict[UUID, list[_Row]] = defaultdict(list)
    violations: list[IntegrityViolation] = []

    for row in rows:
        if row.parent_carousel_id is None:
            continue
        if row.type == AssetType.CAROUSEL:
            violations.append(
                IntegrityViolation("nested_carousel", row.id, f"Carousel {row.id} has parent {row.parent_carousel_id}")
            )
            continue
        parent = by_id.get(row.parent_carousel_id)
        if parent is None:
            violations.append(
                IntegrityViolation("orphan_child", row.id, f"Parent {row.parent_carousel_id} of {row.id} does not exist")
            )
            continue
        if parent.type != AssetType.CAROUSEL:
            violations.append(
                IntegrityViolation("parent_not_carousel", row.id, f"Parent {parent.id} of {row.id} is a {parent.type}")
            )
            continue
        if row.type not in CAROUSEL_ITEM_TYPES:
            violations.append(
                IntegrityViolation("invalid_child_type", row.id, f"Carousel item {row.id} has type {row.type}")
            )
        children[parent.id].append(row)

    for row in rows:
        if row.type != AssetType.CAROUSEL or row.parent_carousel_id is not None:
            continue
        expected = aggregate(AssetStatus(c.status) for c in children.get(row.id, []))
        if row.status != expected:
            violations.append(
                IntegrityViolation(
                    "stale_carousel_status",
                    row.id,
                    f"Carousel {row.id} stores {row.status}, items aggregate to {expected}",
                )
            )

    return violations
