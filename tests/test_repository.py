"""Tests for the asset repository against in-memory SQLite."""

from uuid import uuid4

import pytest

from assetflow.db.models import AssetRecord
from assetflow.db.repository import AssetRepository
from assetflow.domain.enums import AssetStatus
from assetflow.domain.errors import ReferentialIntegrityError
from assetflow.domain.models import AssetFilters, CarouselContainer, CarouselItem, StandaloneAsset


@pytest.fixture
def repository(db_session):
    return AssetRepository(db_session)


def _record(type_="IMAGE", status="DRAFT", parent=None, position=0, **kwargs):
    kwargs.setdefault("uploader_id", uuid4())
    return AssetRecord(
        id=uuid4(),
        type=type_,
        status=status,
        parent_carousel_id=parent,
        position=position,
        storage_ref=None if type_ == "CAROUSEL" else "x.png",
        target_platforms=[],
        tags=[],
        **kwargs,
    )


class TestLoad:
    """Mapping rows to domain shapes."""

    async def test_shapes(self, repository):
        carousel = _record("CAROUSEL", "PENDING_REVIEW")
        await repository.add_carousel(
            carousel,
            [
                _record(status="APPROVED", parent=carousel.id, position=1),
                _record(status="PENDING_REVIEW", parent=carousel.id, position=0),
            ],
        )
        standalone = _record("DOCUMENT")
        await repository.add(standalone)

        loaded = await repository.load(carousel.id)
        assert isinstance(loaded, CarouselContainer)
        assert [c.position for c in loaded.children] == [0, 1]
        assert isinstance(await repository.load(loaded.child_ids[0]), CarouselItem)
        assert isinstance(await repository.load(standalone.id), StandaloneAsset)
        assert await repository.load(uuid4()) is None

    async def test_status_derived_not_read(self, repository):
        carousel = _record("CAROUSEL", "REJECTED")
        await repository.add_carousel(carousel, [_record(status="APPROVED", parent=carousel.id)])

        loaded = await repository.load(carousel.id)

        assert loaded.status is AssetStatus.APPROVED

    async def test_nested_carousel_raises(self, repository, caplog):
        outer = _record("CAROUSEL")
        await repository.add(outer)
        inner = _record("CAROUSEL", parent=outer.id)
        await repository.add(inner)

        with pytest.raises(ReferentialIntegrityError):
            await repository.load(inner.id)
        assert "Referential integrity violation" in caplog.text

    async def test_child_of_non_carousel_raises(self, repository):
        parent = _record("IMAGE")
        await repository.add(parent)
        child = _record("IMAGE", parent=parent.id)
        await repository.add(child)

        with pytest.raises(ReferentialIntegrityError):
            await repository.load(child.id)


class TestWrites:
    """Guarded status writes and deletes."""

    async def test_transition_is_conditional(self, repository):
        record = _record(status="PENDING_REVIEW")
        await repository.add(record)

        assert await repository.transition(record.id, expected=AssetStatus.PENDING_REVIEW, values={"status": "APPROVED"})
        await repository.commit()
        assert not await repository.transition(record.id, expected=AssetStatus.PENDING_REVIEW, values={"status": "REJECTED"})
        await repository.rollback()

        assert await repository.current_status(record.id) is AssetStatus.APPROVED

    async def test_update_fields_refuses_status(self, repository):
        record = _record()
        await repository.add(record)
        with pytest.raises(ValueError):
            await repository.update_fields(record.id, {"status": "APPROVED"})

    async def test_store_carousel_status_returns_previous(self, repository):
        carousel = _record("CAROUSEL", "PENDING_REVIEW")
        await repository.add(carousel)

        previous = await repository.store_carousel_status(carousel.id, AssetStatus.DRAFT)

        assert previous is AssetStatus.PENDING_REVIEW
        assert await repository.current_status(carousel.id) is AssetStatus.DRAFT

    async def test_delete_ids_in_order(self, repository):
        carousel = _record("CAROUSEL")
        child = _record(parent=carousel.id)
        await repository.add_carousel(carousel, [child])

        assert await repository.delete_ids([child.id, carousel.id]) == [child.id, carousel.id]
        assert await repository.all_records() == []

    async def test_approval_records_removed_with_asset(self, repository):
        record = _record(status="PENDING_REVIEW")
        await repository.add(record)
        await repository.record_decision(record.id, uuid4(), "APPROVE")
        await repository.commit()

        await repository.delete_ids([record.id])

        assert await repository.decisions_for(record.id) == []


class TestListing:
    """Filtering and paging of top-level assets."""

    async def test_lists_top_level_only(self, repository):
        carousel = _record("CAROUSEL", "PENDING_REVIEW")
        await repository.add_carousel(carousel, [_record(status="PENDING_REVIEW", parent=carousel.id)])
        await repository.add(_record())

        listed = await repository.list_assets()

        assert len(listed) == 2
        assert {type(a) for a in listed} == {CarouselContainer, StandaloneAsset}

    async def test_status_filter_uses_derived_status(self, repository):
        carousel = _record("CAROUSEL", "PENDING_REVIEW")
        await repository.add_carousel(carousel, [_record(status="APPROVED", parent=carousel.id)])

        assert await repository.list_assets(AssetFilters(status=AssetStatus.PENDING_REVIEW)) == []
        assert await repository.carousel_ids() == [carousel.id]

    async def test_tag_filter_with_paging(self, repository):
        for _ in range(3):
            await repository.add(_record())
        tagged = [_record() for _ in range(3)]
        for record in tagged:
            record.tags = ["hero"]
            await repository.add(record)

        page = await repository.list_assets(AssetFilters(tag="hero", limit=2))
        rest = await repository.list_assets(AssetFilters(tag="hero", limit=2, offset=2))

        assert len(page) == 2
        assert len(rest) == 1
        assert {a.id for a in page + rest} == {r.id for r in tagged}


class TestShares:
    """Explicit shares."""

    async def test_share_lifecycle(self, repository):
        record = _record()
        await repository.add(record)
        user = uuid4()

        assert await repository.add_share(record.id, user, record.uploader_id)
        assert not await repository.add_share(record.id, user, record.uploader_id)
        assert await repository.is_shared_with(record.id, user)
        assert await repository.shared_asset_ids(user, [record.id, uuid4()]) == {record.id}
        assert await repository.remove_share(record.id, user)
        assert not await repository.is_shared_with(record.id, user)
