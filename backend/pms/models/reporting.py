"""Night audit outputs: revenue summaries and the per-date run record."""

import datetime as dt
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from pms.database import Base


class DailyRevenue(Base):
    __tablename__ = "daily_revenue"

    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    arrivals: Mapped[int] = mapped_column(Integer, default=0)
    departures: Mapped[int] = mapped_column(Integer, default=0)
    in_house: Mapped[int] = mapped_column(Integer, default=0)
    no_shows: Mapped[int] = mapped_column(Integer, default=0)
    cancellations: Mapped[int] = mapped_column(Integer, default=0)
    room_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    other_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    revenue_by_type: Mapped[dict] = mapped_column(JSON, default=dict)
    total_rooms: Mapped[int] = mapped_column(Integer, default=0)
    occupied_rooms: Mapped[int] = mapped_column(Integer, default=0)
    occupancy_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), default=Decimal("0"))
    average_daily_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    revenue_per_available_room: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class DailyRoomTypeRevenue(Base):
    __tablename__ = "daily_room_type_revenue"

    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    room_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("room_types.id"), primary_key=True)
    rooms_sold: Mapped[int] = mapped_column(Integer, default=0)
    revenue: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    average_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class DailyRateRevenue(Base):
    __tablename__ = "daily_rate_revenue"

    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    rate_plan_id: Mapped[int] = mapped_column(Integer, ForeignKey("rate_plans.id"), primary_key=True)
    rooms_sold: Mapped[int] = mapped_column(Integer, default=0)
    revenue: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    average_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class NightAuditRun(Base):
    __tablename__ = "night_audit_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_date: Mapped[dt.date] = mapped_column(Date, nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="running")  # running | completed | failed
    state: Mapped[str] = mapped_column(String(30), nullable=False, default="not_started")
    steps_completed: Mapped[list] = mapped_column(JSON, default=list)
    charges_posted: Mapped[int] = mapped_column(Integer, default=0)
    discrepancies: Mapped[list] = mapped_column(JSON, default=list)
    error: Mapped[str | None] = mapped_column(Text)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    run_by: Mapped[int | None] = mapped_column(Integer)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
