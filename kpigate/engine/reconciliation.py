"""
Reviewer-session view of pending work.

A ReconciliationSession keeps an optimistic list of pending unlock requests
and evaluation records for one reviewer. It hides requests the session has
just resolved (tombstones) until a re-fetch shows them gone from the
pending set, and allows one mutating action at a time (processing_id).
Neither piece of state is shared between sessions.
"""

import logging

from kpigate.engine.errors import AlreadyInFlight, InvalidOperation
from kpigate.engine.notifications import (
    RECORDS_TABLE,
    REQUESTS_TABLE,
    ChangeEvent,
    NotificationChannel,
    Subscription,
)
from kpigate.engine.workflow import ApprovalWorkflow
from kpigate.schemas.records import EvaluationRecordView
from kpigate.schemas.results import OperationResult
from kpigate.schemas.unlock_requests import UnlockRequestView

logger = logging.getLogger(__name__)

BULK_TOKEN = "bulk"
ACTIONS = ("approve", "reject")
WATCHED_TABLES = (REQUESTS_TABLE, RECORDS_TABLE)


class ReconciliationSession:
    """Pending-work view for a single reviewing session."""

    def __init__(self, workflow: ApprovalWorkflow, project_scope: str) -> None:
        self.workflow = workflow
        self.project_scope = project_scope
        self.tombstones: set[str] = set()
        self.processing_id: str | None = None
        self.pending_requests: list[UnlockRequestView] = []
        self.pending_records: list[EvaluationRecordView] = []
        self._subscription: Subscription | None = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def refresh(self) -> OperationResult:
        """Re-fetch pending work and drop ids this session already resolved."""
        requests = await self.workflow.list_pending_requests(self.project_scope)
        if not requests.success:
            logger.warning("Refresh of %s failed: %s", self.project_scope, requests.error)
            return requests
        records = await self.workflow.list_records(self.project_scope, status="pending")
        if not records.success:
            logger.warning("Refresh of pending records failed: %s", records.error)
            return records

        # Views and tombstones change only once both fetches succeeded.
        fetched: list[UnlockRequestView] = requests.data
        seen = {r.request_id for r in fetched}
        # An id the store no longer reports as pending is confirmed resolved.
        expired = {
            rid for rid in self.tombstones if rid not in seen and rid != self.processing_id
        }
        if expired:
            logger.debug("Expiring %d tombstone(s)", len(expired))
            self.tombstones -= expired
        self.pending_requests = [r for r in fetched if r.request_id not in self.tombstones]
        self.pending_records = records.data

        return OperationResult.ok(data=self.pending_requests)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def act(self, request_id: str, action: str, timeout: float | None = None) -> OperationResult:
        """Approve or reject one request with optimistic removal and rollback."""
        if action not in ACTIONS:
            return OperationResult.fail(InvalidOperation(f"Unknown action: {action}"))
        if self.processing_id is not None:
            return OperationResult.fail(
                AlreadyInFlight(f"Operation {self.processing_id} is still in progress")
            )

        self.processing_id = request_id
        self.pending_requests = [r for r in self.pending_requests if r.request_id != request_id]
        self.tombstones.add(request_id)
        try:
            if action == "approve":
                result = await self.workflow.approve(request_id, timeout=timeout)
            else:
                result = await self.workflow.reject(request_id, timeout=timeout)
            if not result.success:
                logger.warning("%s of %s failed, restoring: %s", action, request_id, result.error)
                self.tombstones.discard(request_id)
                self.processing_id = None
                await self.refresh()
            return result
        except BaseException:
            # Outcome unknown; the next refresh decides visibility.
            self.tombstones.discard(request_id)
            raise
        finally:
            self.processing_id = None

    async def bulk_approve(self, record_ids: list[str] | None = None) -> OperationResult:
        """Approve the given records, or every visible pending record."""
        if self.processing_id is not None:
            return OperationResult.fail(
                AlreadyInFlight(f"Operation {self.processing_id} is still in progress")
            )
        ids = record_ids if record_ids is not None else [r.record_id for r in self.pending_records]
        if not ids:
            return OperationResult.ok()

        self.processing_id = BULK_TOKEN
        try:
            result = await self.workflow.bulk_approve_records(ids)
        finally:
            self.processing_id = None
        await self.refresh()
        return result

    async def review_record(self, record_id: str, status: str) -> OperationResult:
        """Approve or reject a single evaluation record."""
        if self.processing_id is not None:
            return OperationResult.fail(
                AlreadyInFlight(f"Operation {self.processing_id} is still in progress")
            )
        self.processing_id = record_id
        try:
            result = await self.workflow.set_record_status([record_id], status)
        finally:
            self.processing_id = None
        if result.success:
            await self.refresh()
        return result

    # ------------------------------------------------------------------
    # Push updates
    # ------------------------------------------------------------------

    async def on_change(self, event: ChangeEvent) -> None:
        if event.table in WATCHED_TABLES:
            await self.refresh()

    def attach(self, channel: NotificationChannel) -> None:
        self.detach()
        self._subscription = channel.subscribe(self.project_scope, self.on_change)

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
