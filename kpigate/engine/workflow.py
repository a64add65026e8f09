"""
Approval workflow for evaluation records and unlock requests.

Every public coroutine runs its storage work in one transaction bounded by a
timeout, publishes change events after commit and returns an
OperationResult. Concurrent callers converge on the same terminal state:
record deletion is idempotent and request transitions are conditional
updates that skip rows another caller already resolved.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kpigate.config import settings
from kpigate.engine.errors import InvalidOperation, StorageFailure, WorkflowError
from kpigate.engine.notifications import (
    RECORDS_TABLE,
    REQUESTS_TABLE,
    ChangeEvent,
    NotificationChannel,
)
from kpigate.schemas.records import EvaluationRecordView, to_record_view
from kpigate.schemas.results import OperationResult
from kpigate.schemas.unlock_requests import UnlockRequestView, to_request_view
from kpigate.storage import records as record_store
from kpigate.storage import requests as request_store
from kpigate.utils.clock import today

logger = logging.getLogger(__name__)


class ApprovalWorkflow:
    """Caller-facing API of the lock/unlock engine."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        channel: NotificationChannel | None = None,
        timeout: float | None = None,
    ) -> None:
        self._session_maker = session_maker
        self._channel = channel
        self._timeout = timeout if timeout is not None else settings.storage_timeout_seconds

    async def _run(
        self,
        op_name: str,
        work: Callable[[AsyncSession], Awaitable[tuple[OperationResult, list[ChangeEvent]]]],
        timeout: float | None = None,
    ) -> OperationResult:
        """Run ``work`` in a transaction, translating every failure into a result."""

        async def _in_tx() -> tuple[OperationResult, list[ChangeEvent]]:
            async with self._session_maker() as db:
                async with db.begin():
                    return await work(db)

        limit = timeout if timeout is not None else self._timeout
        try:
            result, events = await asyncio.wait_for(_in_tx(), timeout=limit)
        except WorkflowError as exc:
            logger.info("%s refused: %s", op_name, exc.message)
            return OperationResult.fail(exc)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs", op_name, limit)
            return OperationResult.fail(StorageFailure(f"{op_name} timed out after {limit}s"))
        except (SQLAlchemyError, OSError) as exc:
            # Driver connection errors such as ConnectionRefusedError arrive
            # unwrapped.
            logger.warning("%s storage failure: %s", op_name, exc)
            return OperationResult.fail(StorageFailure(f"{op_name} failed: {exc}"))

        self._publish(events)
        return result

    def _publish(self, events: list[ChangeEvent]) -> None:
        if self._channel is None:
            return
        for event in events:
            self._channel.publish(event)

    async def _read(self, op_name: str, fn: Callable[[AsyncSession], Awaitable[Any]]) -> OperationResult:
        async def work(db: AsyncSession):
            return OperationResult.ok(data=await fn(db)), []

        return await self._run(op_name, work)

    # ------------------------------------------------------------------
    # Evaluation records
    # ------------------------------------------------------------------

    async def submit_evaluation(
        self,
        subject_id: str,
        evaluator_id: str,
        project_id: str,
        date: str,
        attitude: int,
        performance: int,
        quality: int,
        appearance: int,
    ) -> OperationResult:
        """Create a pending record; refused with a conflict if the day is locked."""

        async def work(db: AsyncSession):
            record = await record_store.create_record(
                db,
                subject_id=subject_id,
                evaluator_id=evaluator_id,
                project_id=project_id,
                date=date,
                attitude=attitude,
                performance=performance,
                quality=quality,
                appearance=appearance,
            )
            logger.info("Evaluation %s created for %s on %s", record.record_id, subject_id, date)
            return (
                OperationResult.ok(changed=1, data=to_record_view(record)),
                [ChangeEvent(RECORDS_TABLE, "insert", project_id)],
            )

        return await self._run("submit_evaluation", work)

    async def set_record_status(self, record_ids: list[str], status: str) -> OperationResult:
        """Reviewer decision on records in any status."""

        async def work(db: AsyncSession):
            rows = await record_store.list_records_by_ids(db, record_ids)
            changed = await record_store.set_record_status(db, record_ids, status)
            logger.info("Set %d evaluation(s) to %s", changed, status)
            events = [
                ChangeEvent(RECORDS_TABLE, "update", project_id)
                for project_id in sorted({r.project_id for r in rows})
            ]
            return OperationResult.ok(changed=changed), events

        if status not in record_store.REVIEW_STATUSES:
            return OperationResult.fail(InvalidOperation(f"Invalid review status: {status}"))
        return await self._run("set_record_status", work)

    async def bulk_approve_records(self, record_ids: list[str]) -> OperationResult:
        """Approve a batch; ids no longer pending are skipped, not failed."""

        async def work(db: AsyncSession):
            rows = await record_store.list_records_by_ids(db, record_ids)
            pending_projects = {r.project_id for r in rows if r.status == "pending"}
            changed = await record_store.approve_pending_records(db, record_ids)
            logger.info(
                "Bulk approved %d of %d evaluation(s)", changed, len(record_ids)
            )
            events = [
                ChangeEvent(RECORDS_TABLE, "update", project_id)
                for project_id in sorted(pending_projects)
            ]
            return OperationResult.ok(changed=changed), events

        return await self._run("bulk_approve_records", work)

    async def list_records(
        self, project_scope: str, status: str | None = None
    ) -> OperationResult:
        async def fetch(db: AsyncSession) -> list[EvaluationRecordView]:
            rows = await record_store.list_records(db, project_scope, status)
            return [to_record_view(r) for r in rows]

        return await self._read("list_records", fetch)

    # ------------------------------------------------------------------
    # Unlock requests
    # ------------------------------------------------------------------

    async def submit_unlock_request(
        self,
        subject_id: str,
        requester_id: str,
        project_id: str,
        reason: str,
        target_record_id: str | None = None,
        subject_name: str = "",
        requester_name: str = "",
        date: str | None = None,
    ) -> OperationResult:
        """
        Record a request to reopen the (subject, date) evaluation.

        Duplicates are accepted here and collapsed when one of them is
        approved.
        """
        if not reason or not reason.strip():
            return OperationResult.fail(InvalidOperation("A reason is required"))

        async def work(db: AsyncSession):
            key_subject, key_date = subject_id, date or today()
            if target_record_id:
                # A named record fixes the (subject, date) key.
                target = await record_store.get_record(db, target_record_id)
                if target is not None:
                    key_subject, key_date = target.subject_id, target.date
            req = await request_store.create_unlock_request(
                db,
                subject_id=key_subject,
                subject_name=subject_name,
                requester_id=requester_id,
                requester_name=requester_name,
                project_id=project_id,
                date=key_date,
                reason=reason.strip(),
                target_record_id=target_record_id,
            )
            logger.info(
                "Unlock request %s submitted for %s on %s by %s",
                req.request_id,
                req.subject_id,
                req.date,
                requester_id,
            )
            return (
                OperationResult.ok(changed=1, data=to_request_view(req)),
                [ChangeEvent(REQUESTS_TABLE, "insert", project_id)],
            )

        return await self._run("submit_unlock_request", work)

    async def approve(self, request_id: str, timeout: float | None = None) -> OperationResult:
        """
        Approve an unlock request.

        Deletes the locked record, resolves the request, and cascades every
        other pending request for the same (subject, date) to approved. An
        unknown or already resolved request is reported as success.
        """

        async def work(db: AsyncSession):
            req = await request_store.get_unlock_request(db, request_id)
            if req is None:
                logger.info("Approve %s: not found, treating as resolved", request_id)
                return OperationResult.ok(already_resolved=True), []
            if req.status != "pending":
                logger.info("Approve %s: already %s", request_id, req.status)
                return OperationResult.ok(already_resolved=True), []

            # Delete by surrogate id when the request names one. Siblings are
            # collected under the request's own key and the target's key.
            subject_id, date, record_id = req.subject_id, req.date, req.target_record_id
            keys = [(subject_id, date)]
            if record_id:
                target = await record_store.get_record(db, record_id)
                if target is not None and (target.subject_id, target.date) not in keys:
                    keys.append((target.subject_id, target.date))

            deleted = await record_store.delete_record(
                db, subject_id=subject_id, date=date, record_id=record_id
            )
            changed = await request_store.resolve_pending_requests(db, [request_id], "approved")
            if changed == 0:
                # Another reviewer resolved it between our read and update.
                logger.info("Approve %s: resolved concurrently", request_id)

            cascaded = 0
            try:
                async with db.begin_nested():
                    sibling_ids: set[str] = set()
                    for key_subject, key_date in keys:
                        siblings = await request_store.list_pending_siblings(
                            db, key_subject, key_date, exclude_id=request_id
                        )
                        sibling_ids.update(s.request_id for s in siblings)
                    cascaded = await request_store.resolve_pending_requests(
                        db, sorted(sibling_ids), "approved"
                    )
            except (SQLAlchemyError, OSError) as exc:
                logger.warning(
                    "Cascade for %s/%s failed, stragglers left pending: %s",
                    subject_id,
                    date,
                    exc,
                )

            logger.info(
                "Approved unlock %s for %s on %s (deleted=%d, cascaded=%d)",
                request_id,
                subject_id,
                date,
                deleted,
                cascaded,
            )
            events = [ChangeEvent(REQUESTS_TABLE, "update", req.project_id)]
            if deleted:
                events.append(ChangeEvent(RECORDS_TABLE, "delete", req.project_id))
            return (
                OperationResult.ok(
                    changed=changed,
                    deleted=deleted,
                    cascaded=cascaded,
                    already_resolved=changed == 0,
                ),
                events,
            )

        return await self._run("approve", work, timeout)

    async def reject(self, request_id: str, timeout: float | None = None) -> OperationResult:
        """Reject one request; siblings and the locked record are untouched."""

        async def work(db: AsyncSession):
            req = await request_store.get_unlock_request(db, request_id)
            if req is None:
                logger.info("Reject %s: not found, treating as resolved", request_id)
                return OperationResult.ok(already_resolved=True), []
            changed = await request_store.resolve_pending_requests(db, [request_id], "rejected")
            if changed:
                logger.info("Rejected unlock %s", request_id)
                return (
                    OperationResult.ok(changed=changed),
                    [ChangeEvent(REQUESTS_TABLE, "update", req.project_id)],
                )
            logger.info("Reject %s: already %s", request_id, req.status)
            return OperationResult.ok(already_resolved=True), []

        return await self._run("reject", work, timeout)

    async def list_unlock_requests(
        self,
        project_scope: str,
        requester_id: str | None = None,
        status: str | None = None,
        date: str | None = None,
    ) -> OperationResult:
        async def fetch(db: AsyncSession) -> list[UnlockRequestView]:
            rows = await request_store.list_unlock_requests(
                db, project_scope, requester_id=requester_id, status=status, date=date
            )
            return [to_request_view(r) for r in rows]

        return await self._read("list_unlock_requests", fetch)

    async def list_pending_requests(self, project_scope: str) -> OperationResult:
        return await self.list_unlock_requests(project_scope, status="pending")
