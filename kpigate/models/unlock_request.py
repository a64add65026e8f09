"""Unlock request model."""

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from kpigate.database import Base


class UnlockRequest(Base):
    """Request to delete a locked evaluation so it can be resubmitted."""

    __tablename__ = "unlock_requests"

    request_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    subject_id: Mapped[str] = mapped_column(Text, nullable=False)
    subject_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    requester_id: Mapped[str] = mapped_column(Text, nullable=False)
    requester_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    project_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    target_record_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending"
    )  # pending|approved|rejected
    created_at: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = (
        Index("ix_unlock_requests_subject_date_status", "subject_id", "date", "status"),
    )
