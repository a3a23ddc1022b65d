"""Per-day room-type inventory, overbooking policies and room blocks."""

import datetime as dt
from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from pms.database import Base

BLOCK_TYPES = ("maintenance", "renovation", "group_hold", "overbooking_buffer", "vip_hold")


class RoomInventory(Base):
    __tablename__ = "room_inventory"
    __table_args__ = (
        UniqueConstraint("room_type_id", "date", name="uq_room_inventory_type_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("room_types.id"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class OverbookingPolicy(Base):
    """Allowed sell percentage for a date range; room_type_id NULL = hotel-wide.

    100 means no overbooking, 110 allows selling 10% over capacity.
    """

    __tablename__ = "overbooking_policies"
    __table_args__ = (
        Index("ix_overbooking_policies_dates", "start_date", "end_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_type_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("room_types.id"), index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    overbooking_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class RoomBlock(Base):
    """Hold on a single room or a quantity of a room type, inclusive dates."""

    __tablename__ = "room_blocks"
    __table_args__ = (
        Index("ix_room_blocks_type_dates", "room_type_id", "start_date", "end_date"),
        Index("ix_room_blocks_room_dates", "room_id", "start_date", "end_date"),
        CheckConstraint("(room_id IS NULL) <> (room_type_id IS NULL)", name="ck_room_blocks_single_scope"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("rooms.id"))
    room_type_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("room_types.id"))
    block_type: Mapped[str] = mapped_column(String(30), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    released_by: Mapped[int | None] = mapped_column(Integer)
