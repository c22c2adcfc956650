"""Closed vocabularies for assets, roles and visibility."""

from __future__ import annotations

from enum import StrEnum


class AssetType(StrEnum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    DOCUMENT = "DOCUMENT"
    LINK = "LINK"
    CAROUSEL = "CAROUSEL"


class AssetStatus(StrEnum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class VisibilityLevel(StrEnum):
    UPLOADER_ONLY = "UPLOADER_ONLY"
    ADMIN_ONLY = "ADMIN_ONLY"
    COMPANY = "COMPANY"
    ROLE = "ROLE"
    SELECTED_USERS = "SELECTED_USERS"
    PUBLIC = "PUBLIC"


class Role(StrEnum):
    ADMIN = "ADMIN"
    CONTENT_CREATOR = "CONTENT_CREATOR"
    SEO_SPECIALIST = "SEO_SPECIALIST"


class ApprovalAction(StrEnum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


# Types a standalone asset may carry
STANDALONE_TYPES = frozenset({AssetType.IMAGE, AssetType.VIDEO, AssetType.DOCUMENT, AssetType.LINK})

# Types allowed inside a carousel
CAROUSEL_ITEM_TYPES = frozenset({AssetType.IMAGE, AssetType.VIDEO})

# Roles that may be named by a ROLE visibility level
ASSIGNABLE_ROLES = frozenset({Role.CONTENT_CREATOR, Role.SEO_SPECIALIST})
