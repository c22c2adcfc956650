"""Domain shapes for assets, carousels and principals.

Persistence keeps a single ``assets`` table with a nullable self reference;
the engine never sees it. Instead each row is loaded as one of three frozen
shapes sharing :class:`AssetCore`:

- :class:`StandaloneAsset`: an ordinary image, video, document or link
- :class:`CarouselItem`: an image or video that belongs to a carousel
- :class:`CarouselContainer`: the carousel itself, holding its items

A container has no parent field and an item has no children, so nesting a
carousel inside a carousel cannot be expressed. A container's status is
computed from the items it was loaded with and is never stored on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from assetflow.domain.enums import (
    CAROUSEL_ITEM_TYPES,
    STANDALONE_TYPES,
    AssetStatus,
    AssetType,
    Role,
    VisibilityLevel,
)
from assetflow.domain.errors import ReferentialIntegrityError
from assetflow.engine.aggregation import aggregate


@dataclass(frozen=True)
class Principal:
    """The authenticated user on whose behalf the engine runs."""

    id: UUID
    role: Role
    company_id: UUID | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True, kw_only=True)
class AssetCore:
    """Fields every asset shape carries."""

    id: UUID
    uploader_id: UUID
    title: str = ""
    description: str | None = None
    status: AssetStatus = AssetStatus.DRAFT
    visibility: VisibilityLevel = VisibilityLevel.UPLOADER_ONLY
    allowed_role: Role | None = None
    company_id: UUID | None = None
    rejection_reason: str | None = None
    target_platforms: tuple[str, ...] = ()
    campaign_name: str | None = None
    tags: tuple[str, ...] = ()
    approved_at: datetime | None = None
    approved_by_id: UUID | None = None
    rejected_at: datetime | None = None
    rejected_by_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, kw_only=True)
class StandaloneAsset(AssetCore):
    """An asset that is neither a carousel nor part of one."""

    type: AssetType
    storage_ref: str

    def __post_init__(self) -> None:
        if self.type not in STANDALONE_TYPES:
            raise ReferentialIntegrityError(
                f"Standalone asset cannot have type {self.type}",
                asset_id=self.id,
                type=str(self.type),
            )


@dataclass(frozen=True, kw_only=True)
class CarouselItem(AssetCore):
    """An image or video owned by a carousel."""

    type: AssetType
    storage_ref: str
    carousel_id: UUID
    position: int = 0

    def __post_init__(self) -> None:
        if self.type not in CAROUSEL_ITEM_TYPES:
            raise ReferentialIntegrityError(
                f"Carousel item cannot have type {self.type}",
                asset_id=self.id,
                carousel_id=self.carousel_id,
                type=str(self.type),
            )


@dataclass(frozen=True, kw_only=True)
class CarouselContainer(AssetCore):
    """A carousel and the items it holds."""

    children: tuple[CarouselItem, ...] = ()

    def __post_init__(self) -> None:
        for child in self.children:
            if child.carousel_id != self.id:
                raise ReferentialIntegrityError(
                    f"Child {child.id} references carousel {child.carousel_id}, not {self.id}",
                    asset_id=child.id,
                    carousel_id=self.id,
                )
        # Status is always derived from the children, whatever the caller passed.
        object.__setattr__(self, "status", aggregate(c.status for c in self.children))

    @property
    def type(self) -> AssetType:
        return AssetType.CAROUSEL

    @property
    def child_ids(self) -> list[UUID]:
        return [c.id for c in self.children]

    @property
    def is_empty(self) -> bool:
        return not self.children

    def child(self, child_id: UUID) -> CarouselItem | None:
        for c in self.children:
            if c.id == child_id:
                return c
        return None


Asset = StandaloneAsset | CarouselItem | CarouselContainer


@dataclass(frozen=True)
class Capabilities:
    """What a principal may do with one asset."""

    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_approve: bool = False
    can_download: bool = False

    def as_dict(self) -> dict[str, bool]:
        return {
            "can_view": self.can_view,
            "can_edit": self.can_edit,
            "can_delete": self.can_delete,
            "can_approve": self.can_approve,
            "can_download": self.can_download,
        }


NO_CAPABILITIES = Capabilities()


@dataclass
class AssetDraft:
    """Input for creating a standalone asset."""

    type: AssetType
    storage_ref: str
    title: str = ""
    description: str | None = None
    company_id: UUID | None = None
    visibility: VisibilityLevel = VisibilityLevel.UPLOADER_ONLY
    allowed_role: Role | None = None
    target_platforms: list[str] = field(default_factory=list)
    campaign_name: str | None = None
    tags: list[str] = field(default_factory=list)
    submit_for_review: bool = False


@dataclass
class CarouselItemDraft:
    """One file inside a carousel creation request."""

    type: AssetType
    storage_ref: str
    title: str = ""
    description: str | None = None


@dataclass
class CarouselDraft:
    """Input for creating a carousel together with its items.

    Metadata on the draft is copied onto every item at creation time.
    """

    title: str
    children: list[CarouselItemDraft]
    company_id: UUID | None = None
    description: str | None = None
    visibility: VisibilityLevel = VisibilityLevel.UPLOADER_ONLY
    allowed_role: Role | None = None
    target_platforms: list[str] = field(default_factory=list)
    campaign_name: str | None = None
    tags: list[str] = field(default_factory=list)
    submit_for_review: bool = False


@dataclass
class MetadataChanges:
    """Editable metadata fields; ``None`` leaves a field untouched."""

    title: str | None = None
    description: str | None = None
    target_platforms: list[str] | None = None
    campaign_name: str | None = None
    tags: list[str] | None = None


@dataclass
class AssetFilters:
    """Optional filters for listing assets."""

    type: AssetType | None = None
    status: AssetStatus | None = None
    company_id: UUID | None = None
    campaign_name: str | None = None
    tag: str | None = None
    uploader_id: UUID | None = None
    limit: int | None = None
    offset: int = 0


@dataclass(frozen=True)
class CarouselSelection:
    """Which children of a carousel a bulk decision applies to."""

    all: bool = True
    asset_ids: frozenset[UUID] = frozenset()

    @classmethod
    def everything(cls) -> CarouselSelection:
        return cls(all=True)

    @classmethod
    def only(cls, *asset_ids: UUID) -> CarouselSelection:
        return cls(all=False, asset_ids=frozenset(asset_ids))


@dataclass(frozen=True)
class ParentAction:
    """What happened to a carousel after one of its children was removed."""

    carousel_id: UUID
    remaining_child_ids: tuple[UUID, ...]
    carousel_deleted: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.remaining_child_ids


@dataclass(frozen=True)
class ChildResult:
    """Outcome of one child's transition inside a bulk carousel decision."""

    asset_id: UUID
    status: AssetStatus
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CarouselDecision:
    """Result of a bulk carousel approval or rejection."""

    carousel: CarouselContainer
    results: tuple[ChildResult, ...]
    previous_status: AssetStatus | None = None

    @property
    def succeeded(self) -> list[UUID]:
        return [r.asset_id for r in self.results if r.ok]

    @property
    def failed(self) -> list[ChildResult]:
        return [r for r in self.results if not r.ok]


@dataclass(frozen=True)
class DeletionResult:
    """Ids removed by a delete, in the order they were removed."""

    deleted_ids: tuple[UUID, ...]
    parent: ParentAction | None = None
