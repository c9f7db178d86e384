from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .session import Base


class Appointment(Base):
    """Appointment model for clinic scheduling"""

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    clinician_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    # Naive local wall-clock timestamps
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="scheduled"
    )  # scheduled, arrived, completed, cancelled
    session_type: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    free_return_reason: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    doctor_cut_percent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    doctor_involved: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("start_at < end_at", name="ck_appointments_time_order"),
        CheckConstraint(
            "status IN ('scheduled', 'arrived', 'completed', 'cancelled')",
            name="ck_appointments_status",
        ),
        CheckConstraint(
            "session_type IN ('IN_CLINIC', 'ONLINE')",
            name="ck_appointments_session_type",
        ),
        CheckConstraint(
            "payment_status IN ('PAID', 'UNPAID', 'FREE_RETURN')",
            name="ck_appointments_payment_status",
        ),
        CheckConstraint(
            "doctor_cut_percent IS NULL OR doctor_cut_percent BETWEEN 10 AND 20",
            name="ck_appointments_doctor_cut_percent",
        ),
        Index("ix_appointments_clinician_start", "clinician_id", "start_at"),
    )

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, patient_id={self.patient_id}, "
            f"clinician_id={self.clinician_id}, start_at={self.start_at}, "
            f"session_type={self.session_type}, payment_status={self.payment_status})>"
        )


class FinancialEvent(Base):
    """Ledger entry (income or expense).

    ``reference_type``/``reference_id`` point at the originating record
    without a foreign key, since the target table depends on the type.
    """

    __tablename__ = "financial_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    event_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    reference_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "event_type IN ('INCOME', 'EXPENSE')", name="ck_financial_events_type"
        ),
        CheckConstraint("amount > 0", name="ck_financial_events_amount_positive"),
        CheckConstraint(
            "reference_type IS NULL OR reference_type IN "
            "('APPOINTMENT', 'PATIENT', 'EXPENSE', 'SYSTEM')",
            name="ck_financial_events_reference_type",
        ),
        Index("ix_financial_events_reference", "reference_type", "reference_id"),
        # At most one INCOME event per referenced record
        Index(
            "uq_financial_events_income_reference",
            "reference_type",
            "reference_id",
            unique=True,
            sqlite_where=text("event_type = 'INCOME'"),
            postgresql_where=text("event_type = 'INCOME'"),
        ),
    )

    def __repr__(self):
        return (
            f"<FinancialEvent(id={self.id}, event_date={self.event_date}, "
            f"event_type={self.event_type}, category={self.category}, amount={self.amount}, "
            f"reference={self.reference_type}:{self.reference_id})>"
        )
