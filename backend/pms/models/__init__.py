from pms.models.system import SystemConfig
from pms.models.rooms import Room, RoomType
from pms.models.rates import RatePlan, RoomTypeRate, RoomTypeRateAdjustment
from pms.models.inventory import OverbookingPolicy, RoomBlock, RoomInventory
from pms.models.reservations import Reservation, ReservationRoom
from pms.models.invoices import Invoice, InvoiceItem
from pms.models.reporting import DailyRateRevenue, DailyRevenue, DailyRoomTypeRevenue, NightAuditRun

__all__ = [
    "DailyRateRevenue",
    "DailyRevenue",
    "DailyRoomTypeRevenue",
    "Invoice",
    "InvoiceItem",
    "NightAuditRun",
    "OverbookingPolicy",
    "RatePlan",
    "Reservation",
    "ReservationRoom",
    "Room",
    "RoomBlock",
    "RoomInventory",
    "RoomType",
    "RoomTypeRate",
    "RoomTypeRateAdjustment",
    "SystemConfig",
]
