"""Repository functions for unlock requests."""

from uuid import uuid4

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from kpigate.config import settings
from kpigate.models import UnlockRequest
from kpigate.utils.clock import now_iso

RESOLVED_STATUSES = ("approved", "rejected")


def _scoped(stmt, project_scope: str | None):
    if project_scope and project_scope != settings.all_projects_scope:
        stmt = stmt.where(UnlockRequest.project_id == project_scope)
    return stmt


async def create_unlock_request(
    db: AsyncSession,
    subject_id: str,
    subject_name: str,
    requester_id: str,
    requester_name: str,
    project_id: str,
    date: str,
    reason: str,
    target_record_id: str | None = None,
) -> UnlockRequest:
    """Insert a pending request. Duplicates for the same key are allowed."""
    req = UnlockRequest(
        request_id=str(uuid4()),
        subject_id=subject_id,
        subject_name=subject_name,
        requester_id=requester_id,
        requester_name=requester_name,
        project_id=project_id,
        target_record_id=target_record_id,
        date=date,
        reason=reason,
        status="pending",
        created_at=now_iso(),
    )
    db.add(req)
    await db.flush()
    return req


async def get_unlock_request(db: AsyncSession, request_id: str) -> UnlockRequest | None:
    result = await db.execute(
        select(UnlockRequest).where(UnlockRequest.request_id == request_id)
    )
    return result.scalar_one_or_none()


async def list_unlock_requests(
    db: AsyncSession,
    project_scope: str | None,
    requester_id: str | None = None,
    status: str | None = None,
    date: str | None = None,
) -> list[UnlockRequest]:
    """List requests in scope, oldest first."""
    stmt = _scoped(select(UnlockRequest), project_scope)
    if requester_id:
        stmt = stmt.where(UnlockRequest.requester_id == requester_id)
    if status:
        stmt = stmt.where(UnlockRequest.status == status)
    if date:
        stmt = stmt.where(UnlockRequest.date == date)
    result = await db.execute(stmt.order_by(UnlockRequest.created_at, UnlockRequest.request_id))
    return list(result.scalars().all())


async def list_pending_siblings(
    db: AsyncSession, subject_id: str, date: str, exclude_id: str | None = None
) -> list[UnlockRequest]:
    """Pending requests targeting the same (subject_id, date)."""
    stmt = select(UnlockRequest).where(
        UnlockRequest.subject_id == subject_id,
        UnlockRequest.date == date,
        UnlockRequest.status == "pending",
    )
    if exclude_id:
        stmt = stmt.where(UnlockRequest.request_id != exclude_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_pending_requests(db: AsyncSession, project_scope: str | None) -> int:
    stmt = _scoped(
        select(func.count()).select_from(UnlockRequest).where(UnlockRequest.status == "pending"),
        project_scope,
    )
    result = await db.execute(stmt)
    return result.scalar_one()


async def resolve_pending_requests(db: AsyncSession, request_ids: list[str], status: str) -> int:
    """
    Resolve the listed requests that are still pending.

    Rows already resolved by another caller are skipped. Returns rows changed.
    """
    if status not in RESOLVED_STATUSES:
        raise ValueError(f"Invalid resolution status: {status}")
    if not request_ids:
        return 0
    result = await db.execute(
        update(UnlockRequest)
        .where(
            UnlockRequest.request_id.in_(request_ids),
            UnlockRequest.status == "pending",
        )
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount