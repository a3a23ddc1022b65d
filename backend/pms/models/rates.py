"""Rate plans, per-range room-type prices and derived-pricing adjustments."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from pms.database import Base

ADJUSTMENT_TYPES = ("amount", "percent")


class RatePlan(Base):
    __tablename__ = "rate_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_refundable: Mapped[bool] = mapped_column(Boolean, default=True)
    requires_advance_booking_days: Mapped[int] = mapped_column(Integer, default=0)
    min_length_of_stay: Mapped[int] = mapped_column(Integer, default=1)
    max_length_of_stay: Mapped[int | None] = mapped_column(Integer)
    cancellation_deadline_hours: Mapped[int | None] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class RoomTypeRate(Base):
    """Fixed price for every date of [start_date, end_date] (inclusive)."""

    __tablename__ = "room_type_rates"
    __table_args__ = (
        Index("ix_room_type_rates_lookup", "room_type_id", "rate_plan_id", "start_date", "end_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("room_types.id"), nullable=False)
    rate_plan_id: Mapped[int] = mapped_column(Integer, ForeignKey("rate_plans.id"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class RoomTypeRateAdjustment(Base):
    __tablename__ = "room_type_rate_adjustments"
    __table_args__ = (
        Index("ix_rate_adjustments_pair", "base_room_type_id", "derived_room_type_id", "rate_plan_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    base_room_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("room_types.id"), nullable=False)
    derived_room_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("room_types.id"), nullable=False)
    rate_plan_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("rate_plans.id"))
    adjustment_type: Mapped[str] = mapped_column(String(10), nullable=False, default="amount")  # amount | percent
    adjustment_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
