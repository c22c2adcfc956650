"""Shared pytest fixtures."""

from uuid import uuid4

import pytest
import yaml

from assetflow.config import DatabaseConfig, EngineConfig, clear_settings_cache
from assetflow.db.session import create_engine, create_session_maker, create_tables
from assetflow.domain.enums import AssetType, Role
from assetflow.domain.models import (
    AssetDraft,
    CarouselDraft,
    CarouselItemDraft,
    Principal,
)
from assetflow.engine.facade import EngineFacade
from assetflow.lib.hooks import HookRegistry, hooks


@pytest.fixture
def temp_app_yaml(tmp_path):
    """Create a temporary app.yaml file for testing."""
    config_path = tmp_path / "app.yaml"

    def _create_config(config: dict):
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)
        return config_path

    return _create_config


@pytest.fixture(autouse=True)
def fresh_settings():
    """Never leak cached settings between tests."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def clean_hooks():
    """Save and restore hooks state around a test."""
    original_filters = hooks._filters.copy()
    original_actions = hooks._actions.copy()
    yield
    hooks._filters = original_filters
    hooks._actions = original_actions


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_engine(DatabaseConfig(url="sqlite+aiosqlite:///:memory:"))
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    session_maker = create_session_maker(db_engine)
    async with session_maker() as session:
        yield session


@pytest.fixture
def registry():
    """A private hook registry so tests never touch the global one."""
    return HookRegistry()


@pytest.fixture
def events(registry):
    """Every DomainEvent emitted through ``registry``, in order."""
    received = []
    registry.add_action("domain_event", received.append)
    return received


@pytest.fixture
def engine_config():
    return EngineConfig()


@pytest.fixture
def facade(db_session, registry, engine_config):
    return EngineFacade(db_session, hook_registry=registry, config=engine_config)


@pytest.fixture
def company_id():
    return uuid4()


@pytest.fixture
def admin(company_id):
    return Principal(id=uuid4(), role=Role.ADMIN, company_id=company_id)


@pytest.fixture
def second_admin(company_id):
    return Principal(id=uuid4(), role=Role.ADMIN, company_id=company_id)


@pytest.fixture
def creator(company_id):
    return Principal(id=uuid4(), role=Role.CONTENT_CREATOR, company_id=company_id)


@pytest.fixture
def other_creator(company_id):
    return Principal(id=uuid4(), role=Role.CONTENT_CREATOR, company_id=company_id)


@pytest.fixture
def seo(company_id):
    return Principal(id=uuid4(), role=Role.SEO_SPECIALIST, company_id=company_id)


@pytest.fixture
def outsider():
    return Principal(id=uuid4(), role=Role.CONTENT_CREATOR, company_id=uuid4())


def make_carousel_draft(count: int = 3, *, submit: bool = True, **kwargs) -> CarouselDraft:
    children = [
        CarouselItemDraft(type=AssetType.IMAGE, storage_ref=f"carousel/{i}.png")
        for i in range(count)
    ]
    return CarouselDraft(title="Spring launch", children=children, submit_for_review=submit, **kwargs)


def make_asset_draft(*, submit: bool = True, **kwargs) -> AssetDraft:
    kwargs.setdefault("type", AssetType.IMAGE)
    kwargs.setdefault("storage_ref", "images/hero.png")
    return AssetDraft(title="Hero image", submit_for_review=submit, **kwargs)


@pytest.fixture
async def pending_carousel(facade, creator):
    """A three-item carousel submitted for review by ``creator``."""
    return await facade.create_carousel(creator, make_carousel_draft(3))


@pytest.fixture
async def pending_asset(facade, creator):
    """A standalone image submitted for review by ``creator``."""
    return await facade.create_asset(creator, make_asset_draft())


@pytest.fixture
def carousel_draft():
    """Factory for carousel drafts of N image items."""
    return make_carousel_draft


@pytest.fixture
def asset_draft():
    """Factory for standalone asset drafts."""
    return make_asset_draft
