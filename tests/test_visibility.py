"""Tests for capability resolution and listing shape."""

from uuid import uuid4

import pytest

from assetflow.domain.enums import AssetStatus, AssetType, Role, VisibilityLevel
from assetflow.domain.models import (
    CarouselContainer,
    CarouselItem,
    Principal,
    StandaloneAsset,
)
from assetflow.engine.visibility import (
    can_share,
    level_grants_view,
    resolve,
    shape_for_listing,
)

COMPANY = uuid4()


def _user(role: Role, company_id=COMPANY) -> Principal:
    return Principal(id=uuid4(), role=role, company_id=company_id)


def _asset(uploader: Principal, status=AssetStatus.APPROVED, visibility=VisibilityLevel.PUBLIC, allowed_role=None):
    return StandaloneAsset(
        id=uuid4(),
        uploader_id=uploader.id,
        type=AssetType.IMAGE,
        storage_ref="a.png",
        status=status,
        visibility=visibility,
        allowed_role=allowed_role,
        company_id=COMPANY,
    )


def _carousel(uploader: Principal, *statuses, visibility=VisibilityLevel.PUBLIC):
    carousel_id = uuid4()
    children = tuple(
        CarouselItem(
            id=uuid4(),
            uploader_id=uploader.id,
            type=AssetType.IMAGE,
            storage_ref=f"{i}.png",
            carousel_id=carousel_id,
            position=i,
            status=status,
            visibility=visibility,
            company_id=COMPANY,
        )
        for i, status in enumerate(statuses)
    )
    return CarouselContainer(
        id=carousel_id,
        uploader_id=uploader.id,
        visibility=visibility,
        company_id=COMPANY,
        children=children,
    )


class TestOwnershipPrecedence:
    """The uploader is resolved before any role rule."""

    @pytest.mark.parametrize("role", list(Role))
    @pytest.mark.parametrize("status", list(AssetStatus))
    @pytest.mark.parametrize("visibility", list(VisibilityLevel))
    def test_owner_always_views_edits_deletes(self, role, status, visibility):
        owner = _user(role)
        allowed_role = Role.CONTENT_CREATOR if visibility is VisibilityLevel.ROLE else None
        caps = resolve(owner, _asset(owner, status, visibility, allowed_role))

        assert caps.can_view and caps.can_edit and caps.can_delete
        assert not caps.can_approve

    def test_owner_downloads_only_when_approved(self):
        owner = _user(Role.SEO_SPECIALIST)
        assert not resolve(owner, _asset(owner, AssetStatus.PENDING_REVIEW)).can_download
        assert resolve(owner, _asset(owner, AssetStatus.APPROVED)).can_download

    def test_admin_owner_downloads_anything_but_cannot_approve(self):
        owner = _user(Role.ADMIN)
        caps = resolve(owner, _asset(owner, AssetStatus.DRAFT, VisibilityLevel.UPLOADER_ONLY))
        assert caps.can_download
        assert not caps.can_approve


class TestAdmin:
    """Admins hold every capability on assets they did not upload."""

    @pytest.mark.parametrize("visibility", [VisibilityLevel.UPLOADER_ONLY, VisibilityLevel.ADMIN_ONLY])
    def test_admin_sees_private_levels(self, visibility):
        caps = resolve(_user(Role.ADMIN), _asset(_user(Role.CONTENT_CREATOR), AssetStatus.DRAFT, visibility))
        assert caps.as_dict() == {
            "can_view": True,
            "can_edit": True,
            "can_delete": True,
            "can_approve": True,
            "can_download": True,
        }


class TestVisibilityLevels:
    """Non-owner, non-admin access by level."""

    def setup_method(self):
        self.uploader = _user(Role.CONTENT_CREATOR)

    def test_public_requires_approval(self):
        viewer = _user(Role.SEO_SPECIALIST, company_id=uuid4())
        assert resolve(viewer, _asset(self.uploader)).can_view
        assert not resolve(viewer, _asset(self.uploader, AssetStatus.PENDING_REVIEW)).can_view

    def test_company_matches_company(self):
        asset = _asset(self.uploader, visibility=VisibilityLevel.COMPANY)
        assert resolve(_user(Role.SEO_SPECIALIST), asset).can_view
        assert not resolve(_user(Role.SEO_SPECIALIST, company_id=uuid4()), asset).can_view
        assert not resolve(_user(Role.SEO_SPECIALIST, company_id=None), asset).can_view

    def test_role_matches_allowed_role(self):
        asset = _asset(self.uploader, visibility=VisibilityLevel.ROLE, allowed_role=Role.SEO_SPECIALIST)
        assert resolve(_user(Role.SEO_SPECIALIST), asset).can_view
        assert not resolve(_user(Role.CONTENT_CREATOR), asset).can_view

    def test_selected_users_uses_share_lookup(self):
        asset = _asset(self.uploader, AssetStatus.DRAFT, VisibilityLevel.SELECTED_USERS)
        viewer = _user(Role.CONTENT_CREATOR)
        assert resolve(viewer, asset, shared_with=True).can_view
        assert not resolve(viewer, asset).can_view

    @pytest.mark.parametrize("visibility", [VisibilityLevel.UPLOADER_ONLY, VisibilityLevel.ADMIN_ONLY])
    def test_private_levels_hide(self, visibility):
        asset = _asset(self.uploader, visibility=visibility)
        assert not level_grants_view(_user(Role.CONTENT_CREATOR), asset)

    def test_download_follows_view_and_nothing_else_granted(self):
        caps = resolve(_user(Role.CONTENT_CREATOR), _asset(self.uploader))
        assert caps.can_view and caps.can_download
        assert not (caps.can_edit or caps.can_delete or caps.can_approve)


class TestSharingRules:
    """Who may share an asset."""

    def test_only_uploader_shares_private_assets(self):
        uploader = _user(Role.CONTENT_CREATOR)
        private = _asset(uploader, visibility=VisibilityLevel.UPLOADER_ONLY)
        assert can_share(uploader, private)
        assert not can_share(_user(Role.ADMIN), private)
        assert not can_share(uploader, _asset(uploader, visibility=VisibilityLevel.PUBLIC))


class TestShapeForListing:
    """SEO Specialists only see approved material of others."""

    def setup_method(self):
        self.uploader = _user(Role.CONTENT_CREATOR)
        self.seo = _user(Role.SEO_SPECIALIST)

    def test_carousel_without_approved_children_hidden(self):
        carousel = _carousel(self.uploader, AssetStatus.REJECTED, AssetStatus.REJECTED)
        assert shape_for_listing(self.seo, carousel) is None

    def test_mixed_carousel_hidden_by_public_gate(self):
        """A mixed carousel is PENDING_REVIEW, so PUBLIC does not grant view."""
        carousel = _carousel(self.uploader, AssetStatus.APPROVED, AssetStatus.REJECTED)
        assert shape_for_listing(self.seo, carousel) is None

    def test_mixed_carousel_trimmed_to_approved_children(self):
        carousel = _carousel(
            self.uploader,
            AssetStatus.APPROVED,
            AssetStatus.PENDING_REVIEW,
            visibility=VisibilityLevel.SELECTED_USERS,
        )

        shaped = shape_for_listing(self.seo, carousel, shared_with=True)

        assert shaped is not None
        assert shaped.child_ids == [carousel.children[0].id]
        assert shaped.status is AssetStatus.APPROVED

    def test_fully_approved_carousel_unchanged(self):
        carousel = _carousel(self.uploader, AssetStatus.APPROVED, AssetStatus.APPROVED)
        assert shape_for_listing(self.seo, carousel) is carousel

    def test_seo_owner_sees_everything(self):
        carousel = _carousel(self.seo, AssetStatus.REJECTED)
        assert shape_for_listing(self.seo, carousel) is carousel

    def test_creators_are_not_trimmed(self):
        carousel = _carousel(
            self.uploader,
            AssetStatus.APPROVED,
            AssetStatus.PENDING_REVIEW,
            visibility=VisibilityLevel.SELECTED_USERS,
        )
        viewer = _user(Role.CONTENT_CREATOR)
        assert shape_for_listing(viewer, carousel, shared_with=True) is carousel

    def test_standalone_follows_resolve_for_seo(self):
        asset = _asset(self.uploader, AssetStatus.PENDING_REVIEW, VisibilityLevel.SELECTED_USERS)

        assert resolve(self.seo, asset, shared_with=True).can_view
        assert shape_for_listing(self.seo, asset, shared_with=True) is asset
        assert shape_for_listing(self.seo, asset) is None
