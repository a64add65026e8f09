"""Unit tests for the evaluation record store."""

import pytest

from kpigate.engine.errors import ConflictError
from kpigate.models import EvaluationRecord
from kpigate.schemas.records import to_record_view
from kpigate.storage import records as record_store


async def _create(db, subject_id="op-1", date="2024-05-01", project_id="site-a"):
    return await record_store.create_record(
        db,
        subject_id=subject_id,
        evaluator_id="sup-1",
        project_id=project_id,
        date=date,
        attitude=8,
        performance=7,
        quality=9,
        appearance=6,
    )


@pytest.mark.asyncio
async def test_create_inserts_pending(session_maker):
    """New records start pending with a derived average."""
    async with session_maker() as db, db.begin():
        record = await _create(db)
    view = to_record_view(record)
    assert view.status == "pending"
    assert view.average == 7.5


@pytest.mark.asyncio
async def test_create_refuses_duplicate_key(session_maker):
    """Same subject and date is a conflict, whatever the existing status."""
    async with session_maker() as db, db.begin():
        record = await _create(db)
        await record_store.set_record_status(db, [record.record_id], "rejected")
    async with session_maker() as db, db.begin():
        with pytest.raises(ConflictError):
            await _create(db)


@pytest.mark.asyncio
async def test_create_allows_other_days_and_subjects(session_maker):
    async with session_maker() as db, db.begin():
        await _create(db)
        await _create(db, date="2024-05-02")
        await _create(db, subject_id="op-2")
    async with session_maker() as db:
        assert len(await record_store.list_records(db, "all")) == 3


@pytest.mark.asyncio
async def test_unique_constraint_maps_to_conflict(session_maker, monkeypatch):
    """A concurrent insert that slips past the pre-check is still a conflict."""
    async with session_maker() as db, db.begin():
        await _create(db)

    async def _miss(db, subject_id, date):
        return None

    monkeypatch.setattr(record_store, "get_record_by_key", _miss)
    async with session_maker() as db, db.begin():
        with pytest.raises(ConflictError):
            await _create(db)
    async with session_maker() as db:
        assert len(await record_store.list_records(db, "all")) == 1


@pytest.mark.asyncio
async def test_list_records_scope_and_status(session_maker):
    async with session_maker() as db, db.begin():
        first = await _create(db, subject_id="op-1")
        await _create(db, subject_id="op-2", project_id="site-b")
        await record_store.set_record_status(db, [first.record_id], "approved")
    async with session_maker() as db:
        assert len(await record_store.list_records(db, "all")) == 2
        site_a = await record_store.list_records(db, "site-a")
        assert [r.subject_id for r in site_a] == ["op-1"]
        pending = await record_store.list_records(db, "all", status="pending")
        assert [r.subject_id for r in pending] == ["op-2"]


@pytest.mark.asyncio
async def test_legacy_rows_without_status_read_as_approved(session_maker):
    async with session_maker() as db, db.begin():
        db.add(
            EvaluationRecord(
                record_id="legacy-1",
                subject_id="op-9",
                evaluator_id="sup-1",
                project_id="site-a",
                date="2023-01-01",
                attitude=5,
                performance=5,
                quality=5,
                appearance=5,
                status=None,
                created_at="2023-01-01T00:00:00Z",
            )
        )
    async with session_maker() as db:
        approved = await record_store.list_records(db, "site-a", status="approved")
        assert [r.record_id for r in approved] == ["legacy-1"]
        assert to_record_view(approved[0]).status == "approved"


@pytest.mark.asyncio
async def test_set_record_status_is_idempotent(session_maker):
    async with session_maker() as db, db.begin():
        record = await _create(db)
        assert await record_store.set_record_status(db, [record.record_id], "approved") == 1
        assert await record_store.set_record_status(db, [record.record_id], "approved") == 1
    async with session_maker() as db:
        stored = await record_store.get_record(db, record.record_id)
        assert stored.status == "approved"


@pytest.mark.asyncio
async def test_set_record_status_rejects_unknown_status(session_maker):
    async with session_maker() as db:
        with pytest.raises(ValueError):
            await record_store.set_record_status(db, ["x"], "pending")


@pytest.mark.asyncio
async def test_approve_pending_records_skips_resolved(session_maker):
    async with session_maker() as db, db.begin():
        a = await _create(db, subject_id="op-1")
        b = await _create(db, subject_id="op-2")
        await record_store.set_record_status(db, [b.record_id], "rejected")
        changed = await record_store.approve_pending_records(
            db, [a.record_id, b.record_id, "missing"]
        )
    assert changed == 1
    async with session_maker() as db:
        assert (await record_store.get_record(db, b.record_id)).status == "rejected"


@pytest.mark.asyncio
async def test_delete_by_key_and_by_id_is_idempotent(session_maker):
    async with session_maker() as db, db.begin():
        a = await _create(db, subject_id="op-1")
        await _create(db, subject_id="op-2")

    async with session_maker() as db, db.begin():
        assert await record_store.delete_record(db, "op-1", "2024-05-01", record_id=a.record_id) == 1
        assert await record_store.delete_record(db, "op-1", "2024-05-01", record_id=a.record_id) == 0
        assert await record_store.delete_record(db, "op-2", "2024-05-01") == 1
        assert await record_store.delete_record(db, "op-2", "2024-05-01") == 0

    async with session_maker() as db:
        assert await record_store.list_records(db, "all") == []
