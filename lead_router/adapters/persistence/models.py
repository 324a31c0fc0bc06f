"""SQLAlchemy ORM models — maps to PostgreSQL tables."""

from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lead_router.adapters.persistence.database import Base


class WorkerModel(Base):
    __tablename__ = "workers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str | None] = mapped_column(String(100), nullable=True)
    languages: Mapped[list[str]] = mapped_column(ARRAY(String(50)), nullable=False, default=list)
    capacity_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    assigned_count_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reset_date: Mapped[date] = mapped_column(
        Date, nullable=False, server_default=func.current_date()
    )
    last_assigned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Stored normalized (case-folded); empty array = global pool only
    affinity_tags: Mapped[list[str]] = mapped_column(
        ARRAY(String(100)), nullable=False, default=list
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    work_items: Mapped[list["WorkItemModel"]] = relationship(back_populates="assigned_worker")
    assignment_records: Mapped[list["AssignmentRecordModel"]] = relationship(
        back_populates="worker"
    )

    __table_args__ = (
        CheckConstraint("capacity_per_day > 0", name="ck_workers_capacity_positive"),
        CheckConstraint("assigned_count_today >= 0", name="ck_workers_count_non_negative"),
        Index("idx_workers_affinity_tags", "affinity_tags", postgresql_using="gin"),
    )


class WorkItemModel(Base):
    __tablename__ = "work_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    city: Mapped[str | None] = mapped_column(String(200), nullable=True)
    affinity_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    lead_source: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # "metadata" is reserved on declarative classes
    extra: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, default=dict)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    assigned_worker_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("workers.id"), nullable=True
    )
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    assigned_worker: Mapped["WorkerModel | None"] = relationship(back_populates="work_items")
    assignment_record: Mapped["AssignmentRecordModel | None"] = relationship(
        back_populates="work_item", uselist=False
    )

    __table_args__ = (
        Index("idx_work_items_phone_created", "phone", "created_at"),
        Index("idx_work_items_assigned_worker", "assigned_worker_id"),
        Index("idx_work_items_created_at", "created_at"),
    )


class AssignmentRecordModel(Base):
    """Append-only audit trail; one row per successful assignment."""

    __tablename__ = "assignment_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    work_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("work_items.id"), unique=True, nullable=False
    )
    worker_id: Mapped[int] = mapped_column(Integer, ForeignKey("workers.id"), nullable=False)
    reason_code: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    work_item: Mapped["WorkItemModel"] = relationship(back_populates="assignment_record")
    worker: Mapped["WorkerModel"] = relationship(back_populates="assignment_records")

    __table_args__ = (
        CheckConstraint(
            "reason_code IN ('affinity_round_robin', 'global_round_robin', "
            "'capacity_overflow_fallback')",
            name="ck_assignment_records_reason_code",
        ),
        Index("idx_assignment_records_worker", "worker_id"),
        Index("idx_assignment_records_created_at", "created_at"),
    )
