"""Night audit: close the business day.

Steps, in order, inside one scoped transaction:
  1. post_daily_room_charges       -> charges_posted
  2. generate_daily_revenue_report -> revenue_aggregated
  3. flag_discrepancies            -> discrepancies_flagged
  4. trim_expired_policies
  5. advance the business date     -> date_advanced

A failure rolls every step back. The failed attempt is then recorded on its
own so the run history survives, and the audit can simply be run again.
"""

import enum
import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pms.database import transaction
from pms.errors import (
    AlreadyAudited,
    BusinessDateMismatch,
    NightAuditFailed,
    PMSError,
    RateNotFound,
)
from pms.models.invoices import OPEN_INVOICE_STATUSES, Invoice, InvoiceItem
from pms.models.reporting import DailyRateRevenue, DailyRevenue, DailyRoomTypeRevenue, NightAuditRun
from pms.models.reservations import Reservation, ReservationRoom
from pms.models.rooms import Room
from pms.services.business_date_service import business_date_service
from pms.services.overbooking_service import overbooking_service
from pms.services.rate_service import rate_service
from pms.utils import round_money

logger = logging.getLogger(__name__)

OUT_OF_SERVICE_STATUSES = ("maintenance", "out_of_order")


class AuditState(str, enum.Enum):
    NOT_STARTED = "not_started"
    CHARGES_POSTED = "charges_posted"
    REVENUE_AGGREGATED = "revenue_aggregated"
    DISCREPANCIES_FLAGGED = "discrepancies_flagged"
    DATE_ADVANCED = "date_advanced"


class NightAuditService:

    # ─── Step 1: room charges ───

    async def post_daily_room_charges(
        self, db: AsyncSession, business_date: date, user_id: int | None = None
    ) -> dict:
        """Post one room-night charge per in-house reservation room.

        Safe to repeat: a (reservation room, date) pair that already carries a
        room item is skipped.
        """
        charges_posted = 0
        unpriced = []

        async with transaction(db):
            for reservation in await self._in_house_reservations(db, business_date):
                invoice = await self._open_final_invoice(db, reservation, business_date, user_id)

                for rr in reservation.rooms:
                    if not (rr.check_in_date <= business_date < rr.check_out_date):
                        continue

                    existing = await db.execute(
                        select(InvoiceItem.id)
                        .where(
                            InvoiceItem.reservation_room_id == rr.id,
                            InvoiceItem.date_of_service == business_date,
                            InvoiceItem.item_type == "room",
                        )
                        .limit(1)
                    )
                    if existing.first() is not None:
                        continue

                    rate_plan_id = rr.rate_plan_id or reservation.rate_plan_id
                    try:
                        night = await rate_service.resolve_night_rate(db, rr.room_type_id, rate_plan_id, business_date)
                    except RateNotFound:
                        unpriced.append({
                            "reservation_id": str(reservation.id),
                            "reservation_room_id": rr.id,
                            "room_type_id": rr.room_type_id,
                            "rate_plan_id": rate_plan_id,
                        })
                        logger.warning(
                            f"No rate for reservation {reservation.reservation_number} "
                            f"room type {rr.room_type_id} on {business_date}, charge not posted"
                        )
                        continue

                    db.add(InvoiceItem(
                        invoice_id=invoice.id,
                        item_type="room",
                        description=f"Room night - {business_date}",
                        date_of_service=business_date,
                        quantity=Decimal("1"),
                        unit_price=night.price,
                        total=round_money(night.price),
                        room_id=rr.room_id,
                        reservation_room_id=rr.id,
                        room_type_id=rr.room_type_id,
                        rate_plan_id=rate_plan_id,
                        created_by=user_id,
                    ))
                    charges_posted += 1

                await db.flush()
                await self._recompute_invoice(db, invoice)

        logger.info(
            f"Room charges for {business_date}: {charges_posted} posted, {len(unpriced)} unpriced"
        )
        return {"business_date": business_date, "charges_posted": charges_posted, "unpriced": unpriced}

    async def _open_final_invoice(
        self, db: AsyncSession, reservation: Reservation, business_date: date, user_id: int | None
    ) -> Invoice:
        result = await db.execute(
            select(Invoice)
            .where(
                Invoice.reservation_id == reservation.id,
                Invoice.invoice_type == "final",
                Invoice.status.in_(OPEN_INVOICE_STATUSES),
            )
            .order_by(Invoice.created_at)
            .limit(1)
        )
        invoice = result.scalar_one_or_none()
        if invoice is not None:
            return invoice

        invoice = Invoice(
            invoice_number=f"INV-NA-{business_date:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}",
            invoice_type="final",
            reservation_id=reservation.id,
            issue_date=business_date,
            status="draft",
            currency=reservation.currency,
            created_by=user_id,
        )
        db.add(invoice)
        await db.flush()
        logger.info(f"Opened final invoice {invoice.invoice_number} for reservation {reservation.reservation_number}")
        return invoice

    async def _recompute_invoice(self, db: AsyncSession, invoice: Invoice) -> None:
        result = await db.execute(select(InvoiceItem.total).where(InvoiceItem.invoice_id == invoice.id))
        subtotal = round_money(sum((t for t in result.scalars().all()), Decimal("0")))
        paid = invoice.paid_amount or Decimal("0")

        invoice.subtotal = subtotal
        invoice.total_amount = subtotal
        invoice.balance = subtotal - paid
        invoice.status = "issued" if subtotal > 0 else "draft"
        invoice.updated_at = datetime.now(timezone.utc)

    # ─── Step 2: revenue report ───

    async def generate_daily_revenue_report(self, db: AsyncSession, business_date: date) -> dict:
        """Replace the revenue rows for one date with freshly computed figures."""
        async with transaction(db):
            arrivals = await self._count(
                db,
                Reservation.check_in_date == business_date,
                Reservation.status.in_(("confirmed", "checked_in")),
            )
            departures = await self._count(
                db,
                Reservation.check_out_date == business_date,
                Reservation.status == "checked_out",
            )
            in_house = await self._count(
                db,
                Reservation.status == "checked_in",
                Reservation.check_in_date <= business_date,
                Reservation.check_out_date > business_date,
            )
            no_shows = await self._count(
                db,
                Reservation.status == "no_show",
                Reservation.check_in_date == business_date,
            )
            day_start = datetime.combine(business_date, time.min, tzinfo=timezone.utc)
            cancellations = await self._count(
                db,
                Reservation.status == "cancelled",
                Reservation.cancelled_at >= day_start,
                Reservation.cancelled_at < day_start + timedelta(days=1),
            )

            items = await db.execute(
                select(InvoiceItem).where(InvoiceItem.date_of_service == business_date)
            )
            by_item_type: dict[str, Decimal] = defaultdict(Decimal)
            by_room_type: dict[int, list[Decimal]] = defaultdict(list)
            by_rate_plan: dict[int, list[Decimal]] = defaultdict(list)
            for item in items.scalars().all():
                by_item_type[item.item_type] += item.total
                if item.item_type == "room":
                    if item.room_type_id is not None:
                        by_room_type[item.room_type_id].append(item.total)
                    if item.rate_plan_id is not None:
                        by_rate_plan[item.rate_plan_id].append(item.total)

            room_revenue = round_money(by_item_type.get("room", Decimal("0")))
            total_revenue = round_money(sum(by_item_type.values(), Decimal("0")))
            other_revenue = total_revenue - room_revenue

            total_rooms = (await db.execute(select(func.count(Room.id)))).scalar_one()
            occupied_rooms = (
                await db.execute(select(func.count(Room.id)).where(Room.status == "occupied"))
            ).scalar_one()
            occupancy_rate = (
                (Decimal(occupied_rooms) / Decimal(total_rooms)).quantize(Decimal("0.0001"))
                if total_rooms else Decimal("0")
            )
            adr = round_money(room_revenue / occupied_rooms) if occupied_rooms else Decimal("0.00")
            revpar = round_money(room_revenue / total_rooms) if total_rooms else Decimal("0.00")

            now = datetime.now(timezone.utc)
            for model in (DailyRevenue, DailyRoomTypeRevenue, DailyRateRevenue):
                await db.execute(delete(model).where(model.date == business_date))

            revenue_by_type = {k: str(round_money(v)) for k, v in sorted(by_item_type.items())}
            db.add(DailyRevenue(
                date=business_date,
                arrivals=arrivals,
                departures=departures,
                in_house=in_house,
                no_shows=no_shows,
                cancellations=cancellations,
                room_revenue=room_revenue,
                other_revenue=other_revenue,
                total_revenue=total_revenue,
                revenue_by_type=revenue_by_type,
                total_rooms=total_rooms,
                occupied_rooms=occupied_rooms,
                occupancy_rate=occupancy_rate,
                average_daily_rate=adr,
                revenue_per_available_room=revpar,
                calculated_at=now,
            ))
            for room_type_id, totals in by_room_type.items():
                revenue = round_money(sum(totals, Decimal("0")))
                db.add(DailyRoomTypeRevenue(
                    date=business_date,
                    room_type_id=room_type_id,
                    rooms_sold=len(totals),
                    revenue=revenue,
                    average_rate=round_money(revenue / len(totals)),
                    calculated_at=now,
                ))
            for rate_plan_id, totals in by_rate_plan.items():
                revenue = round_money(sum(totals, Decimal("0")))
                db.add(DailyRateRevenue(
                    date=business_date,
                    rate_plan_id=rate_plan_id,
                    rooms_sold=len(totals),
                    revenue=revenue,
                    average_rate=round_money(revenue / len(totals)),
                    calculated_at=now,
                ))
            await db.flush()

        logger.info(
            f"Revenue report for {business_date}: total={total_revenue} room={room_revenue} "
            f"occupancy={occupied_rooms}/{total_rooms}"
        )
        return {
            "date": business_date,
            "arrivals": arrivals,
            "departures": departures,
            "in_house": in_house,
            "no_shows": no_shows,
            "cancellations": cancellations,
            "revenue_by_type": revenue_by_type,
            "room_revenue": room_revenue,
            "total_revenue": total_revenue,
            "occupancy": {
                "total_rooms": total_rooms,
                "occupied_rooms": occupied_rooms,
                "occupancy_rate": occupancy_rate,
                "adr": adr,
                "revpar": revpar,
            },
        }

    async def _count(self, db: AsyncSession, *conditions) -> int:
        result = await db.execute(select(func.count(Reservation.id)).where(*conditions))
        return result.scalar_one()

    # ─── Step 3: discrepancies ───

    async def flag_discrepancies(self, db: AsyncSession, business_date: date) -> list[dict]:
        """Read-only findings for the front office. Never blocks the audit."""
        issues = []
        in_house = await self._in_house_reservations(db, business_date)

        rooms = {r.id: r for r in (await db.execute(select(Room))).scalars().all()}
        final_invoices = await db.execute(
            select(Invoice.reservation_id).where(Invoice.invoice_type == "final")
        )
        invoiced = set(final_invoices.scalars().all())
        charged = await db.execute(
            select(InvoiceItem.reservation_room_id).where(
                InvoiceItem.item_type == "room",
                InvoiceItem.date_of_service == business_date,
                InvoiceItem.reservation_room_id.is_not(None),
            )
        )
        charged_rr = set(charged.scalars().all())

        occupied_by_stay = set()
        for reservation in in_house:
            number = reservation.reservation_number
            if reservation.id not in invoiced:
                issues.append({
                    "type": "no_invoice",
                    "reservation_id": str(reservation.id),
                    "detail": f"Checked-in reservation {number} has no final invoice",
                })
            for rr in reservation.rooms:
                if not (rr.check_in_date <= business_date < rr.check_out_date):
                    continue
                if rr.id not in charged_rr:
                    issues.append({
                        "type": "missing_room_charge",
                        "reservation_id": str(reservation.id),
                        "reservation_room_id": rr.id,
                        "detail": f"Reservation {number} has no room charge for {business_date}",
                    })
                if rr.room_id is None:
                    issues.append({
                        "type": "no_room_assigned",
                        "reservation_id": str(reservation.id),
                        "reservation_room_id": rr.id,
                        "detail": f"Checked-in reservation {number} has no room assigned",
                    })
                    continue

                occupied_by_stay.add(rr.room_id)
                room = rooms.get(rr.room_id)
                if room is None:
                    continue
                if room.status in OUT_OF_SERVICE_STATUSES:
                    issues.append({
                        "type": "room_out_of_service",
                        "reservation_id": str(reservation.id),
                        "room_id": room.id,
                        "detail": f"Room {room.room_number} is {room.status} but hosts reservation {number}",
                    })
                elif room.status != "occupied":
                    issues.append({
                        "type": "room_not_occupied",
                        "reservation_id": str(reservation.id),
                        "room_id": room.id,
                        "detail": f"Room {room.room_number} is {room.status} but reservation {number} is checked in",
                    })

        # any checked-in reservation holding the room clears it, in-house or not
        checked_in_rooms = await db.execute(
            select(ReservationRoom.room_id)
            .join(Reservation, Reservation.id == ReservationRoom.reservation_id)
            .where(Reservation.status == "checked_in", ReservationRoom.room_id.is_not(None))
        )
        occupied_by_stay.update(checked_in_rooms.scalars().all())
        for room in sorted(rooms.values(), key=lambda r: r.room_number):
            if room.status == "occupied" and room.id not in occupied_by_stay:
                issues.append({
                    "type": "orphan_occupied",
                    "room_id": room.id,
                    "detail": f"Room {room.room_number} is occupied but has no checked-in reservation",
                })

        unpaid = await db.execute(
            select(Reservation.id, Reservation.reservation_number, Invoice.balance)
            .join(Invoice, Invoice.reservation_id == Reservation.id)
            .where(
                Reservation.status == "checked_out",
                Invoice.invoice_type == "final",
                Invoice.balance > 0,
            )
        )
        for res_id, number, balance in unpaid.all():
            issues.append({
                "type": "unpaid_checkout",
                "reservation_id": str(res_id),
                "detail": f"Checked-out reservation {number} has outstanding balance: {balance}",
            })

        if issues:
            logger.warning(f"Night audit {business_date}: {len(issues)} discrepancy(ies) flagged")
        return issues

    # ─── Orchestration ───

    async def run_night_audit(
        self, db: AsyncSession, business_date: date, user_id: int | None = None
    ) -> dict:
        """Close business_date and advance to the next day, all or nothing."""
        steps_completed: list[str] = []
        state = AuditState.NOT_STARTED
        step = "lock_business_date"
        logger.info(f"Night audit started for {business_date}")

        try:
            async with transaction(db):
                current = await business_date_service.lock(db)
                run = await self._locked_run(db, business_date)
                if run is not None and run.status == "completed":
                    raise AlreadyAudited(business_date)
                if business_date != current:
                    raise BusinessDateMismatch(business_date, current)

                now = datetime.now(timezone.utc)
                if run is None:
                    run = NightAuditRun(business_date=business_date, attempts=1)
                    db.add(run)
                else:
                    run.attempts += 1
                run.status = "running"
                run.state = state.value
                run.error = None
                run.run_by = user_id
                run.started_at = now
                run.finished_at = None

                step = "post_daily_room_charges"
                charges = await self.post_daily_room_charges(db, business_date, user_id)
                state = AuditState.CHARGES_POSTED
                steps_completed.append(step)

                step = "generate_daily_revenue_report"
                report = await self.generate_daily_revenue_report(db, business_date)
                state = AuditState.REVENUE_AGGREGATED
                steps_completed.append(step)

                step = "flag_discrepancies"
                discrepancies = await self.flag_discrepancies(db, business_date)
                state = AuditState.DISCREPANCIES_FLAGGED
                steps_completed.append(step)

                step = "trim_expired_policies"
                trim = await overbooking_service.trim_expired_policies(db, business_date)
                steps_completed.append(step)

                step = "advance_business_date"
                next_date = await business_date_service.advance(db)
                state = AuditState.DATE_ADVANCED
                steps_completed.append(step)

                run.status = "completed"
                run.state = state.value
                run.steps_completed = list(steps_completed)
                run.charges_posted = charges["charges_posted"]
                run.discrepancies = discrepancies
                run.finished_at = datetime.now(timezone.utc)
                await db.flush()
                run_id = run.id
        except (AlreadyAudited, BusinessDateMismatch):
            raise
        except (PMSError, SQLAlchemyError) as e:
            logger.error(f"Night audit for {business_date} failed at {step}: {e}")
            await self._record_failure(db, business_date, state, steps_completed, e, user_id)
            raise NightAuditFailed(business_date, step, steps_completed, e) from e

        logger.info(
            f"Night audit completed for {business_date}: {charges['charges_posted']} charge(s), "
            f"{len(discrepancies)} discrepancy(ies), business date now {next_date}"
        )
        return {
            "run_id": run_id,
            "business_date": business_date,
            "next_business_date": next_date,
            "state": state.value,
            "steps_completed": steps_completed,
            "charges": charges,
            "report": report,
            "discrepancies": discrepancies,
            "overbooking_trim": trim,
        }

    async def get_run(self, db: AsyncSession, business_date: date) -> NightAuditRun | None:
        result = await db.execute(select(NightAuditRun).where(NightAuditRun.business_date == business_date))
        return result.scalar_one_or_none()

    async def _locked_run(self, db: AsyncSession, business_date: date) -> NightAuditRun | None:
        result = await db.execute(
            select(NightAuditRun)
            .where(NightAuditRun.business_date == business_date)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _record_failure(
        self,
        db: AsyncSession,
        business_date: date,
        state: AuditState,
        steps_completed: list[str],
        error: Exception,
        user_id: int | None,
    ) -> None:
        try:
            async with transaction(db):
                run = await self._locked_run(db, business_date)
                if run is None:
                    run = NightAuditRun(business_date=business_date, attempts=1)
                    db.add(run)
                else:
                    run.attempts += 1
                run.status = "failed"
                run.state = state.value
                run.steps_completed = list(steps_completed)
                run.error = str(error)
                run.run_by = user_id
                run.finished_at = datetime.now(timezone.utc)
        except (PMSError, SQLAlchemyError) as e:
            logger.error(f"Could not record failed night audit for {business_date}: {e}")

    async def _in_house_reservations(self, db: AsyncSession, business_date: date) -> list[Reservation]:
        result = await db.execute(
            select(Reservation)
            .options(selectinload(Reservation.rooms))
            .where(
                Reservation.status == "checked_in",
                Reservation.check_in_date <= business_date,
                Reservation.check_out_date > business_date,
            )
            .order_by(Reservation.check_in_date, Reservation.reservation_number)
        )
        return list(result.scalars().all())


night_audit_service = NightAuditService()
