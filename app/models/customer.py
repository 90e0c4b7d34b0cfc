from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    external_id: Mapped[str | None] = mapped_column(String(64), unique=True, index=True, nullable=True)
    name: Mapped[str] = mapped_column(String(128), index=True)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    whatsapp_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    company: Mapped[str | None] = mapped_column(String(128), nullable=True)

    recurring_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    recurring_interval: Mapped[str | None] = mapped_column(String(16), nullable=True)
    recurring_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    recurring_service: Mapped[str | None] = mapped_column(String(128), nullable=True)
    next_renewal_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    default_renewal_reminder_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    default_renewal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    renewals = relationship("Renewal", back_populates="customer", order_by="Renewal.id")
