"""Capability resolution: who may view, edit, delete, approve or download.

Resolution order, first match wins:

1. The uploader gets owner capabilities on any status and visibility level.
2. Admins get every capability.
3. Everyone else gets view (and download) from the asset's visibility level.

Explicit shares are looked up by the caller and passed in as ``shared_with``.
"""

from __future__ import annotations

from dataclasses import replace
from typing import assert_never

from assetflow.domain.enums import AssetStatus, Role, VisibilityLevel
from assetflow.domain.models import (
    NO_CAPABILITIES,
    Asset,
    Capabilities,
    CarouselContainer,
    Principal,
)


def resolve(principal: Principal, asset: Asset, *, shared_with: bool = False) -> Capabilities:
    """Compute the capability set of ``principal`` on ``asset``."""
    if principal.id == asset.uploader_id:
        return Capabilities(
            can_view=True,
            can_edit=True,
            can_delete=True,
            can_approve=False,
            can_download=principal.is_admin or asset.status is AssetStatus.APPROVED,
        )

    if principal.is_admin:
        return Capabilities(
            can_view=True,
            can_edit=True,
            can_delete=True,
            can_approve=True,
            can_download=True,
        )

    if level_grants_view(principal, asset, shared_with=shared_with):
        return Capabilities(can_view=True, can_download=True)
    return NO_CAPABILITIES


def level_grants_view(principal: Principal, asset: Asset, *, shared_with: bool = False) -> bool:
    """Whether the asset's visibility level alone lets a non-owner, non-admin view it."""
    level = asset.visibility
    approved = asset.status is AssetStatus.APPROVED

    if level is VisibilityLevel.PUBLIC:
        return approved
    elif level is VisibilityLevel.COMPANY:
        return (
            approved
            and principal.company_id is not None
            and principal.company_id == asset.company_id
        )
    elif level is VisibilityLevel.ROLE:
        return approved and asset.allowed_role is not None and principal.role is asset.allowed_role
    elif level is VisibilityLevel.SELECTED_USERS:
        return shared_with
    elif level is VisibilityLevel.UPLOADER_ONLY or level is VisibilityLevel.ADMIN_ONLY:
        return False
    else:
        assert_never(level)


def can_share(principal: Principal, asset: Asset) -> bool:
    """Only the uploader may share, and only privately scoped assets."""
    if principal.id != asset.uploader_id:
        return False
    return asset.visibility in (VisibilityLevel.UPLOADER_ONLY, VisibilityLevel.SELECTED_USERS)


def _is_restricted_seo_viewer(principal: Principal, asset: Asset) -> bool:
    return (
        principal.role is Role.SEO_SPECIALIST
        and principal.id != asset.uploader_id
    )


def shape_for_listing(
    principal: Principal,
    asset: Asset,
    *,
    shared_with: bool = False,
) -> Asset | None:
    """Return the view of ``asset`` a listing may show ``principal``, or None.

    On top of :func:`resolve`, SEO Specialists looking at someone else's
    carousel only see its approved items: the carousel is listed only when
    at least one of its items is approved, and only those items are
    exposed. The trimmed carousel's status is derived from the items it
    exposes. Standalone assets are listed exactly when they are viewable.
    """
    if not resolve(principal, asset, shared_with=shared_with).can_view:
        return None
    if not isinstance(asset, CarouselContainer) or not _is_restricted_seo_viewer(principal, asset):
        return asset

    approved = tuple(c for c in asset.children if c.status is AssetStatus.APPROVED)
    if not approved:
        return None
    if len(approved) == len(asset.children):
        return asset
    return replace(asset, children=approved)
