from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.schoolhub.db.db_init import init_db
from src.schoolhub.media.asset_replacement import AssetReplacementService
from src.schoolhub.media.slot_repository import MediaSlotRepository
from src.schoolhub.media.upload_validation import UploadValidator
from src.schoolhub.storage.object_keys import ObjectKeyResolver
from tests.helpers.media import NOW, build_limits
from tests.mocks.storage import FakeStorage


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture()
def repo(session_factory) -> MediaSlotRepository:
    return MediaSlotRepository(session_factory)


@pytest.fixture()
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def service(repo, storage) -> AssetReplacementService:
    return AssetReplacementService(
        repo=repo,
        storage=storage,
        resolver=ObjectKeyResolver.for_storage(storage),
        validator=UploadValidator(build_limits()),
        default_retention=timedelta(days=30),
        upload_timeout_seconds=5.0,
        clock=lambda: NOW,
    )
