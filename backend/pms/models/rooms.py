"""Room catalog: the collaborator tables the engine reads capacity from."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from pms.database import Base

ROOM_STATUSES = ("available", "occupied", "maintenance", "out_of_order", "blocked")
CLEANLINESS_STATES = ("clean", "dirty", "inspected")


class RoomType(Base):
    __tablename__ = "room_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    total_rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    base_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    max_occupancy: Mapped[int] = mapped_column(Integer, default=2)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    room_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("room_types.id"), nullable=False, index=True)
    floor: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(20), default="available")  # see ROOM_STATUSES
    cleanliness: Mapped[str] = mapped_column(String(20), default="clean")  # see CLEANLINESS_STATES
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
