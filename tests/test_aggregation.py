"""Tests for carousel status aggregation."""

import random

import pytest

from assetflow.domain.enums import AssetStatus
from assetflow.engine.aggregation import aggregate

A = AssetStatus.APPROVED
R = AssetStatus.REJECTED
P = AssetStatus.PENDING_REVIEW
D = AssetStatus.DRAFT


class TestAggregate:
    """Test the status table."""

    def test_empty_is_draft(self):
        assert aggregate([]) is D

    def test_all_approved(self):
        assert aggregate([A, A, A]) is A

    def test_all_rejected(self):
        assert aggregate([R, R]) is R

    def test_any_pending_is_pending(self):
        assert aggregate([A, P, R]) is P

    def test_approved_rejected_mix_is_pending(self):
        """A decided but mixed carousel still needs attention."""
        assert aggregate([A, R]) is P

    def test_drafts_are_pending(self):
        assert aggregate([D, D]) is P

    def test_accepts_generators(self):
        assert aggregate(s for s in [A, A]) is A

    def test_single_child(self):
        for status in (A, R):
            assert aggregate([status]) is status
        assert aggregate([P]) is P


class TestAggregateProperties:
    """Aggregation depends only on the multiset of statuses."""

    @pytest.mark.parametrize("seed", range(20))
    def test_order_independent(self, seed):
        rng = random.Random(seed)
        statuses = [rng.choice(list(AssetStatus)) for _ in range(rng.randint(0, 8))]
        expected = aggregate(statuses)
        for _ in range(5):
            shuffled = statuses[:]
            rng.shuffle(shuffled)
            assert aggregate(shuffled) is expected

    @pytest.mark.parametrize("seed", range(10))
    def test_idempotent(self, seed):
        rng = random.Random(seed)
        statuses = [rng.choice(list(AssetStatus)) for _ in range(rng.randint(1, 8))]
        assert aggregate(statuses) is aggregate(list(statuses))
