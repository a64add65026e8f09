"""Repository functions for evaluation records (the lock table)."""

import logging
from uuid import uuid4

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from kpigate.config import settings
from kpigate.engine.errors import ConflictError
from kpigate.models import EvaluationRecord
from kpigate.utils.clock import now_iso

logger = logging.getLogger(__name__)

REVIEW_STATUSES = ("approved", "rejected")


def _scoped(stmt, project_scope: str | None):
    """Apply the project filter unless the scope is the 'all' sentinel."""
    if project_scope and project_scope != settings.all_projects_scope:
        stmt = stmt.where(EvaluationRecord.project_id == project_scope)
    return stmt


async def get_record(db: AsyncSession, record_id: str) -> EvaluationRecord | None:
    result = await db.execute(
        select(EvaluationRecord).where(EvaluationRecord.record_id == record_id)
    )
    return result.scalar_one_or_none()


async def get_record_by_key(
    db: AsyncSession, subject_id: str, date: str
) -> EvaluationRecord | None:
    """Find the record holding the (subject_id, date) slot, in any status."""
    result = await db.execute(
        select(EvaluationRecord).where(
            EvaluationRecord.subject_id == subject_id,
            EvaluationRecord.date == date,
        )
    )
    return result.scalar_one_or_none()


async def create_record(
    db: AsyncSession,
    subject_id: str,
    evaluator_id: str,
    project_id: str,
    date: str,
    attitude: int,
    performance: int,
    quality: int,
    appearance: int,
) -> EvaluationRecord:
    """
    Insert a pending record.

    Raises ConflictError when the (subject_id, date) slot is taken, whether
    the pre-check sees it or a concurrent insert trips the unique constraint.
    """
    if await get_record_by_key(db, subject_id, date):
        raise ConflictError(f"Evaluation already exists for {subject_id} on {date}")

    record = EvaluationRecord(
        record_id=str(uuid4()),
        subject_id=subject_id,
        evaluator_id=evaluator_id,
        project_id=project_id,
        date=date,
        attitude=attitude,
        performance=performance,
        quality=quality,
        appearance=appearance,
        status="pending",
        created_at=now_iso(),
    )
    try:
        async with db.begin_nested():
            db.add(record)
    except IntegrityError as exc:
        logger.info("Lost insert race for %s/%s: %s", subject_id, date, exc.orig)
        raise ConflictError(f"Evaluation already exists for {subject_id} on {date}") from exc
    return record


async def list_records(
    db: AsyncSession, project_scope: str | None, status: str | None = None
) -> list[EvaluationRecord]:
    """List records in scope, optionally by status (legacy NULL counts as approved)."""
    stmt = _scoped(select(EvaluationRecord), project_scope)
    if status == "approved":
        stmt = stmt.where(
            or_(EvaluationRecord.status == "approved", EvaluationRecord.status.is_(None))
        )
    elif status:
        stmt = stmt.where(EvaluationRecord.status == status)
    result = await db.execute(
        stmt.order_by(EvaluationRecord.date.desc(), EvaluationRecord.created_at)
    )
    return list(result.scalars().all())


async def set_record_status(db: AsyncSession, record_ids: list[str], status: str) -> int:
    """Move records to approved/rejected from any status. Returns rows matched."""
    if status not in REVIEW_STATUSES:
        raise ValueError(f"Invalid review status: {status}")
    if not record_ids:
        return 0
    result = await db.execute(
        update(EvaluationRecord)
        .where(EvaluationRecord.record_id.in_(record_ids))
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def approve_pending_records(db: AsyncSession, record_ids: list[str]) -> int:
    """Approve only the ids still pending; others are skipped. Returns rows changed."""
    if not record_ids:
        return 0
    result = await db.execute(
        update(EvaluationRecord)
        .where(
            EvaluationRecord.record_id.in_(record_ids),
            EvaluationRecord.status == "pending",
        )
        .values(status="approved")
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def delete_record(
    db: AsyncSession,
    subject_id: str,
    date: str,
    record_id: str | None = None,
) -> int:
    """
    Delete by surrogate id if given, else by (subject_id, date).

    Deleting a record that is already gone returns 0 and is not an error.
    """
    stmt = delete(EvaluationRecord)
    if record_id:
        stmt = stmt.where(EvaluationRecord.record_id == record_id)
    else:
        stmt = stmt.where(
            EvaluationRecord.subject_id == subject_id,
            EvaluationRecord.date == date,
        )
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount


async def list_records_by_ids(db: AsyncSession, record_ids: list[str]) -> list[EvaluationRecord]:
    if not record_ids:
        return []
    result = await db.execute(
        select(EvaluationRecord).where(EvaluationRecord.record_id.in_(record_ids))
    )
    return list(result.scalars().all())
