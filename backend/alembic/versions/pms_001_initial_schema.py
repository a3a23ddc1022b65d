"""Initial schema: catalog, rates, inventory, folios, reporting, night audit

Revision ID: pms_001
Revises:
Create Date: 2026-10-16
"""
from alembic import op
import sqlalchemy as sa

revision = "pms_001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- system_config ---
    op.create_table(
        "system_config",
        sa.Column("key", sa.String(50), primary_key=True),
        sa.Column("value", sa.String(255), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- room_types / rooms ---
    op.create_table(
        "room_types",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(20), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text),
        sa.Column("total_rooms", sa.Integer, nullable=False, server_default="0"),
        sa.Column("base_price", sa.Numeric(10, 2)),
        sa.Column("max_occupancy", sa.Integer, server_default="2"),
        sa.Column("sort_order", sa.Integer, server_default="0"),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("room_number", sa.String(20), nullable=False, unique=True),
        sa.Column("room_type_id", sa.Integer, sa.ForeignKey("room_types.id"), nullable=False),
        sa.Column("floor", sa.Integer),
        sa.Column("status", sa.String(20), server_default="available"),
        sa.Column("cleanliness", sa.String(20), server_default="clean"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_rooms_room_type_id", "rooms", ["room_type_id"])

    # --- rate_plans / room_type_rates / room_type_rate_adjustments ---
    op.create_table(
        "rate_plans",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(20), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("is_refundable", sa.Boolean, server_default="true"),
        sa.Column("requires_advance_booking_days", sa.Integer, server_default="0"),
        sa.Column("min_length_of_stay", sa.Integer, server_default="1"),
        sa.Column("max_length_of_stay", sa.Integer),
        sa.Column("cancellation_deadline_hours", sa.Integer),
        sa.Column("is_active", sa.Boolean, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "room_type_rates",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("room_type_id", sa.Integer, sa.ForeignKey("room_types.id"), nullable=False),
        sa.Column("rate_plan_id", sa.Integer, sa.ForeignKey("rate_plans.id"), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index(
        "ix_room_type_rates_lookup", "room_type_rates", ["room_type_id", "rate_plan_id", "start_date", "end_date"]
    )
    op.create_table(
        "room_type_rate_adjustments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("base_room_type_id", sa.Integer, sa.ForeignKey("room_types.id"), nullable=False),
        sa.Column("derived_room_type_id", sa.Integer, sa.ForeignKey("room_types.id"), nullable=False),
        sa.Column("rate_plan_id", sa.Integer, sa.ForeignKey("rate_plans.id")),
        sa.Column("adjustment_type", sa.String(10), nullable=False, server_default="amount"),
        sa.Column("adjustment_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_rate_adjustments_pair",
        "room_type_rate_adjustments",
        ["base_room_type_id", "derived_room_type_id", "rate_plan_id"],
    )

    # --- room_inventory / overbooking_policies / room_blocks ---
    op.create_table(
        "room_inventory",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("room_type_id", sa.Integer, sa.ForeignKey("room_types.id"), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("capacity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("available", sa.Integer, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("room_type_id", "date", name="uq_room_inventory_type_date"),
    )
    op.create_index("ix_room_inventory_room_type_id", "room_inventory", ["room_type_id"])
    op.create_table(
        "overbooking_policies",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("room_type_id", sa.Integer, sa.ForeignKey("room_types.id")),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("overbooking_percent", sa.Integer, nullable=False, server_default="100"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_overbooking_policies_room_type_id", "overbooking_policies", ["room_type_id"])
    op.create_index("ix_overbooking_policies_dates", "overbooking_policies", ["start_date", "end_date"])
    op.create_table(
        "room_blocks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("room_id", sa.Integer, sa.ForeignKey("rooms.id")),
        sa.Column("room_type_id", sa.Integer, sa.ForeignKey("room_types.id")),
        sa.Column("block_type", sa.String(30), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="1"),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("reason", sa.Text),
        sa.Column("created_by", sa.Integer),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("released_at", sa.DateTime(timezone=True)),
        sa.Column("released_by", sa.Integer),
        sa.CheckConstraint(
            "(room_id IS NULL) <> (room_type_id IS NULL)", name="ck_room_blocks_single_scope"
        ),
    )
    op.create_index("ix_room_blocks_type_dates", "room_blocks", ["room_type_id", "start_date", "end_date"])
    op.create_index("ix_room_blocks_room_dates", "room_blocks", ["room_id", "start_date", "end_date"])

    # --- reservations / reservation_rooms ---
    op.create_table(
        "reservations",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("reservation_number", sa.String(50), nullable=False, unique=True),
        sa.Column("guest_name", sa.String(255), nullable=False),
        sa.Column("check_in_date", sa.Date, nullable=False),
        sa.Column("check_out_date", sa.Date, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("rate_plan_id", sa.Integer, sa.ForeignKey("rate_plans.id")),
        sa.Column("currency", sa.String(3), server_default="EUR"),
        sa.Column("notes", sa.Text),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_reservations_status_dates", "reservations", ["status", "check_in_date", "check_out_date"]
    )
    op.create_table(
        "reservation_rooms",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("reservation_id", sa.Uuid, sa.ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("room_type_id", sa.Integer, sa.ForeignKey("room_types.id"), nullable=False),
        sa.Column("room_id", sa.Integer, sa.ForeignKey("rooms.id")),
        sa.Column("rate_plan_id", sa.Integer, sa.ForeignKey("rate_plans.id")),
        sa.Column("check_in_date", sa.Date, nullable=False),
        sa.Column("check_out_date", sa.Date, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_reservation_rooms_reservation_id", "reservation_rooms", ["reservation_id"])

    # --- invoices / invoice_items ---
    op.create_table(
        "invoices",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("invoice_number", sa.String(50), nullable=False, unique=True),
        sa.Column("invoice_type", sa.String(20), nullable=False, server_default="final"),
        sa.Column("reservation_id", sa.Uuid, sa.ForeignKey("reservations.id")),
        sa.Column("issue_date", sa.Date, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("currency", sa.String(3), server_default="EUR"),
        sa.Column("subtotal", sa.Numeric(10, 2), server_default="0"),
        sa.Column("total_amount", sa.Numeric(10, 2), server_default="0"),
        sa.Column("paid_amount", sa.Numeric(10, 2), server_default="0"),
        sa.Column("balance", sa.Numeric(10, 2), server_default="0"),
        sa.Column("created_by", sa.Integer),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_invoices_reservation_id", "invoices", ["reservation_id"])
    op.create_table(
        "invoice_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("invoice_id", sa.Uuid, sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_type", sa.String(20), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("date_of_service", sa.Date),
        sa.Column("quantity", sa.Numeric(10, 3), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total", sa.Numeric(10, 2), nullable=False),
        sa.Column("room_id", sa.Integer, sa.ForeignKey("rooms.id")),
        sa.Column("reservation_room_id", sa.Integer, sa.ForeignKey("reservation_rooms.id")),
        sa.Column("room_type_id", sa.Integer, sa.ForeignKey("room_types.id")),
        sa.Column("rate_plan_id", sa.Integer, sa.ForeignKey("rate_plans.id")),
        sa.Column("created_by", sa.Integer),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_invoice_items_invoice_id", "invoice_items", ["invoice_id"])
    op.create_index("ix_invoice_items_service_date", "invoice_items", ["date_of_service", "item_type"])
    op.create_index(
        "ix_invoice_items_reservation_room", "invoice_items", ["reservation_room_id", "date_of_service"]
    )

    # --- reporting ---
    op.create_table(
        "daily_revenue",
        sa.Column("date", sa.Date, primary_key=True),
        sa.Column("arrivals", sa.Integer, server_default="0"),
        sa.Column("departures", sa.Integer, server_default="0"),
        sa.Column("in_house", sa.Integer, server_default="0"),
        sa.Column("no_shows", sa.Integer, server_default="0"),
        sa.Column("cancellations", sa.Integer, server_default="0"),
        sa.Column("room_revenue", sa.Numeric(12, 2), server_default="0"),
        sa.Column("other_revenue", sa.Numeric(12, 2), server_default="0"),
        sa.Column("total_revenue", sa.Numeric(12, 2), server_default="0"),
        sa.Column("revenue_by_type", sa.JSON),
        sa.Column("total_rooms", sa.Integer, server_default="0"),
        sa.Column("occupied_rooms", sa.Integer, server_default="0"),
        sa.Column("occupancy_rate", sa.Numeric(5, 4), server_default="0"),
        sa.Column("average_daily_rate", sa.Numeric(10, 2), server_default="0"),
        sa.Column("revenue_per_available_room", sa.Numeric(10, 2), server_default="0"),
        sa.Column("calculated_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "daily_room_type_revenue",
        sa.Column("date", sa.Date, primary_key=True),
        sa.Column("room_type_id", sa.Integer, sa.ForeignKey("room_types.id"), primary_key=True),
        sa.Column("rooms_sold", sa.Integer, server_default="0"),
        sa.Column("revenue", sa.Numeric(10, 2), server_default="0"),
        sa.Column("average_rate", sa.Numeric(10, 2), server_default="0"),
        sa.Column("calculated_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "daily_rate_revenue",
        sa.Column("date", sa.Date, primary_key=True),
        sa.Column("rate_plan_id", sa.Integer, sa.ForeignKey("rate_plans.id"), primary_key=True),
        sa.Column("rooms_sold", sa.Integer, server_default="0"),
        sa.Column("revenue", sa.Numeric(10, 2), server_default="0"),
        sa.Column("average_rate", sa.Numeric(10, 2), server_default="0"),
        sa.Column("calculated_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "night_audit_runs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("business_date", sa.Date, nullable=False, unique=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="running"),
        sa.Column("state", sa.String(30), nullable=False, server_default="not_started"),
        sa.Column("steps_completed", sa.JSON),
        sa.Column("charges_posted", sa.Integer, server_default="0"),
        sa.Column("discrepancies", sa.JSON),
        sa.Column("error", sa.Text),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="1"),
        sa.Column("run_by", sa.Integer),
        sa.Column("started_at", sa.DateTime(timezone=True)),
        sa.Column("finished_at", sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    op.drop_table("night_audit_runs")
    op.drop_table("daily_rate_revenue")
    op.drop_table("daily_room_type_revenue")
    op.drop_table("daily_revenue")
    op.drop_table("invoice_items")
    op.drop_table("invoices")
    op.drop_table("reservation_rooms")
    op.drop_table("reservations")
    op.drop_table("room_blocks")
    op.drop_table("overbooking_policies")
    op.drop_table("room_inventory")
    op.drop_table("room_type_rate_adjustments")
    op.drop_table("room_type_rates")
    op.drop_table("rate_plans")
    op.drop_table("rooms")
    op.drop_table("room_types")
    op.drop_table("system_config")
