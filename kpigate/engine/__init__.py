"""Lock, approval and reconciliation engine."""
