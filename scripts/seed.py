#!/usr/bin/env python3
"""
Seed script: creates today's evaluations for a demo project, approves one,
and files two duplicate unlock requests against it.
Run after migrations: python scripts/seed.py
"""

import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kpigate.database import async_session_maker, engine
from kpigate.engine.workflow import ApprovalWorkflow
from kpigate.utils.clock import today


PROJECT_ID = "site-demo"
SUPERVISOR = ("sup-1", "Demo Supervisor")
OPERATORS = [
    ("op-1", "Operator One", (8, 7, 9, 8)),
    ("op-2", "Operator Two", (5, 5, 5, 5)),
    ("op-3", "Operator Three", (6, 9, 7, 8)),
]


async def seed():
    workflow = ApprovalWorkflow(async_session_maker)
    date = today()
    records = {}

    for op_id, _, (attitude, performance, quality, appearance) in OPERATORS:
        result = await workflow.submit_evaluation(
            subject_id=op_id,
            evaluator_id=SUPERVISOR[0],
            project_id=PROJECT_ID,
            date=date,
            attitude=attitude,
            performance=performance,
            quality=quality,
            appearance=appearance,
        )
        if result.success:
            records[op_id] = result.data.record_id
            print(f"Created evaluation {result.data.record_id} for {op_id}")
        else:
            print(f"Skipped {op_id}: {result.error}")

    if "op-1" in records:
        await workflow.set_record_status([records["op-1"]], "approved")
        print("Approved op-1 evaluation (now locked)")

    # Same request twice, as a retried submission would produce
    request_ids = []
    for _ in range(2):
        result = await workflow.submit_unlock_request(
            subject_id="op-1",
            subject_name=OPERATORS[0][1],
            requester_id=SUPERVISOR[0],
            requester_name=SUPERVISOR[1],
            project_id=PROJECT_ID,
            reason="typo",
            target_record_id=records.get("op-1"),
            date=date,
        )
        if result.success:
            request_ids.append(result.data.request_id)

    await engine.dispose()

    print("Seed complete!")
    print(f"Pending unlock requests: {', '.join(request_ids)}")
    if request_ids:
        print("Example: curl -X POST http://localhost:8000/v1/unlock-requests/" + request_ids[0] + "/approve")
    print(f"List: curl 'http://localhost:8000/v1/unlock-requests?project={PROJECT_ID}&status=pending'")


if __name__ == "__main__":
    asyncio.run(seed())
