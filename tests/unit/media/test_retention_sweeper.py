from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import update

from src.schoolhub.db.db_models import SchoolModel
from src.schoolhub.entities.entity_resources import BOOKS, RESOURCES, SCHOOLS
from src.schoolhub.media.retention_sweeper import RetentionSweeper
from src.schoolhub.media.slot_state import SlotState
from src.schoolhub.storage.object_keys import ObjectKeyResolver
from tests.helpers.media import NOW


@pytest.fixture()
def sweeper(repo, storage) -> RetentionSweeper:
    return RetentionSweeper(
        repo=repo,
        storage=storage,
        resources=RESOURCES,
        resolver=ObjectKeyResolver.for_storage(storage),
        batch_size=2,
    )


def _school_with_old(repo, storage, key: str, pending, slot: str = "icon") -> str:
    school_id = repo.create(SCHOOLS, {"school_name": f"School {key}"}, now=NOW)["school_id"]
    old = storage.seed(key)
    repo.apply(
        SCHOOLS,
        school_id,
        expected_version=1,
        slot_states={slot: SlotState(old=old, delete_pending_until=pending)},
    )
    return school_id


@pytest.mark.asyncio
async def test_sweep_reclaims_due_asset_and_clears_row(sweeper, repo, storage) -> None:
    school_id = _school_with_old(repo, storage, "old/icon.png", NOW - timedelta(seconds=1))

    report = await sweeper.sweep(NOW)

    assert report.reclaimed == 1
    assert report.failed == []
    assert not storage.exists("old/icon.png")
    row = repo.get(SCHOOLS, school_id).row
    assert row["school_icon_url_old"] is None
    assert row["school_icon_object_key_old"] is None
    assert row["school_icon_delete_pending_until"] is None


@pytest.mark.asyncio
async def test_sweep_keeps_row_when_delete_fails(sweeper, repo, storage) -> None:
    pending = NOW - timedelta(seconds=1)
    school_id = _school_with_old(repo, storage, "old/icon.png", pending)
    storage.fail_delete.add("old/icon.png")

    report = await sweeper.sweep(NOW)

    assert report.reclaimed == 0
    assert [item.entity_id for item in report.failed] == [school_id]
    row = repo.get(SCHOOLS, school_id).row
    assert row["school_icon_object_key_old"] == "old/icon.png"
    assert row["school_icon_delete_pending_until"] == pending


@pytest.mark.asyncio
async def test_sweep_never_touches_rows_still_in_retention(sweeper, repo, storage) -> None:
    school_id = _school_with_old(repo, storage, "old/icon.png", NOW + timedelta(seconds=1))

    report = await sweeper.sweep(NOW)

    assert report.reclaimed == 0
    assert storage.called("delete") == []
    assert repo.get(SCHOOLS, school_id).row["school_icon_object_key_old"] == "old/icon.png"


@pytest.mark.asyncio
async def test_sweep_drains_every_batch_and_every_resource(sweeper, repo, storage) -> None:
    due = NOW - timedelta(hours=1)
    keys = [f"old/{index}.png" for index in range(5)]
    for key in keys:
        _school_with_old(repo, storage, key, due)
    school_id = _school_with_old(repo, storage, "old/logo.png", due, slot="logo")
    book_id = repo.create(BOOKS, {"book_title": "Tafsir"}, tenant_id=school_id)["book_id"]
    repo.apply(
        BOOKS,
        book_id,
        expected_version=1,
        slot_states={"image": SlotState(old=storage.seed("old/book.png"), delete_pending_until=due)},
    )

    report = await sweeper.sweep(NOW)

    assert report.reclaimed == 7
    assert storage.objects == {}


@pytest.mark.asyncio
async def test_failed_rows_do_not_stall_the_batch_loop(sweeper, repo, storage) -> None:
    due = NOW - timedelta(hours=1)
    for index in range(4):
        _school_with_old(repo, storage, f"old/{index}.png", due)
    storage.fail_delete.update({"old/0.png", "old/1.png"})

    report = await sweeper.sweep(NOW)

    assert report.reclaimed == 2
    assert len(report.failed) == 2


@pytest.mark.asyncio
async def test_unresolvable_legacy_row_is_cleared_without_storage_call(sweeper, repo, storage, session_factory) -> None:
    school_id = repo.create(SCHOOLS, {"school_name": "Legacy"}, now=NOW)["school_id"]
    with session_factory() as session:
        session.execute(
            update(SchoolModel)
            .where(SchoolModel.school_id == school_id)
            .values(
                school_icon_url_old="https://elsewhere.test/gone.png",
                school_icon_object_key_old=None,
                school_icon_delete_pending_until=NOW - timedelta(days=1),
            )
        )
        session.commit()

    report = await sweeper.sweep(NOW)

    assert report.reclaimed == 1
    assert storage.called("delete") == []
    assert repo.get(SCHOOLS, school_id).row["school_icon_url_old"] is None


@pytest.mark.asyncio
async def test_dry_run_lists_without_deleting(sweeper, repo, storage) -> None:
    _school_with_old(repo, storage, "old/icon.png", NOW - timedelta(seconds=1))

    report = await sweeper.sweep(NOW, dry_run=True)

    assert [item.object_key for item in report.due] == ["old/icon.png"]
    assert storage.exists("old/icon.png")


@pytest.mark.asyncio
async def test_sweep_does_not_bump_version(sweeper, repo, storage) -> None:
    school_id = _school_with_old(repo, storage, "old/icon.png", NOW - timedelta(seconds=1))

    await sweeper.sweep(NOW)

    assert repo.get(SCHOOLS, school_id).row["version"] == 2
