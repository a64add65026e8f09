"""Keyword-argument builders for workflow calls."""


def evaluation(subject_id="op-1", date="2024-05-01", project_id="site-a", **scores):
    """Arguments for ApprovalWorkflow.submit_evaluation."""
    values = {"attitude": 5, "performance": 5, "quality": 5, "appearance": 5}
    values.update(scores)
    return {
        "subject_id": subject_id,
        "evaluator_id": "sup-1",
        "project_id": project_id,
        "date": date,
        **values,
    }


def unlock(subject_id="op-1", date="2024-05-01", project_id="site-a", **extra):
    """Arguments for ApprovalWorkflow.submit_unlock_request."""
    values = {
        "subject_id": subject_id,
        "subject_name": "Operator One",
        "requester_id": "sup-1",
        "requester_name": "Supervisor",
        "project_id": project_id,
        "reason": "typo",
        "date": date,
    }
    values.update(extra)
    return values
