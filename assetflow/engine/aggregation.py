"""Carousel status aggregation."""

from __future__ import annotations

from collections.abc import Iterable

from assetflow.domain.enums import AssetStatus


def aggregate(statuses: Iterable[AssetStatus]) -> AssetStatus:
    """Derive a carousel's status from the statuses of its children.

    - no children: DRAFT
    - every child APPROVED: APPROVED
    - every child REJECTED: REJECTED
    - anything else, including an approved/rejected mix: PENDING_REVIEW

    Only the multiset of statuses matters, never their order. Callers pass
    freshly read statuses; nothing here is cached.
    """
    seen = set(statuses)
    if not seen:
        return AssetStatus.DRAFT
    if seen == {AssetStatus.APPROVED}:
        return AssetStatus.APPROVED
    if seen == {AssetStatus.REJECTED}:
        return AssetStatus.REJECTED
    return AssetStatus.PENDING_REVIEW
