"""Daily evaluation record model."""

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from kpigate.database import Base


class EvaluationRecord(Base):
    """One scored evaluation per subject per day - (subject_id, date) is the lock key."""

    __tablename__ = "evaluation_records"

    record_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    subject_id: Mapped[str] = mapped_column(Text, nullable=False)
    evaluator_id: Mapped[str] = mapped_column(Text, nullable=False)
    project_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    attitude: Mapped[int] = mapped_column(Integer, nullable=False)
    performance: Mapped[int] = mapped_column(Integer, nullable=False)
    quality: Mapped[int] = mapped_column(Integer, nullable=False)
    appearance: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str | None] = mapped_column(
        String(20), nullable=True, default="pending"
    )  # pending|approved|rejected, NULL on legacy rows
    created_at: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint("subject_id", "date", name="uq_evaluation_records_subject_date"),
    )
