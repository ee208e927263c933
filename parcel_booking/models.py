# ============================================================
# models.py — SQLModel tables (Parcel Booking Service)
# ------------------------------------------------------------
# Defines the PostgreSQL tables of the service:
#   1. User : the owner account behind a verified caller
#   2. ParcelBooking : one passport parcel booking
#   3. ParcelBookingStatusEvent : append-only status journal
# ============================================================
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ------------------------------------------------------------
# ParcelBookingStatus
# ------------------------------------------------------------
# Lifecycle: initial → pending → booked
# return / delivered are reserved for delivery tracking and
# no transition in this service reaches them.
# ------------------------------------------------------------
class ParcelBookingStatus(str, Enum):
    INITIAL = "initial"
    PENDING = "pending"
    BOOKED = "booked"
    RETURN = "return"
    DELIVERED = "delivered"


# Statuses counted by the duplicate-booking guard
ACTIVE_STATUSES = (ParcelBookingStatus.INITIAL.value, ParcelBookingStatus.PENDING.value)

_ACTIVE_WHERE = text("current_status IN ('initial', 'pending')")


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    uuid: str = Field(index=True, unique=True, max_length=255)
    username: str = Field(unique=True, max_length=255)
    legal_name: str = Field(default="", max_length=255)
    phone: str = Field(default="", max_length=20)
    created_at: datetime = Field(default_factory=utcnow)


# ------------------------------------------------------------
# ParcelBooking
# ------------------------------------------------------------
#  - barcode stays NULL until issuance succeeds, unique after
#  - pending/booking/delivered dates are stamped once, on the
#    first entry into the matching status
#  - at most one booking per (user_id, post_code) may be
#    initial or pending; the partial unique index enforces it
#  - push_status is reserved for a future notification consumer
# ------------------------------------------------------------
class ParcelBooking(SQLModel, table=True):
    __tablename__ = "parcel_bookings"
    __table_args__ = (
        Index(
            "ux_parcel_bookings_active_owner_post_code",
            "user_id",
            "post_code",
            unique=True,
            postgresql_where=_ACTIVE_WHERE,
            sqlite_where=_ACTIVE_WHERE,
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    insurance_id: Optional[int] = None

    rpo_address: str
    phone: str = Field(max_length=20)
    post_code: str = Field(index=True, max_length=20)
    rpo_name: str = Field(max_length=120)
    barcode: Optional[str] = Field(default=None, index=True, unique=True, max_length=50)

    total_charge: float = 0.0
    service_type: str = Field(default="passport", max_length=50)
    vas_type: str = Field(default="", max_length=50)
    price: float = 0.0
    insured: bool = False

    current_status: str = Field(default=ParcelBookingStatus.INITIAL.value, max_length=50)
    push_status: int = 0
    updated_by: Optional[str] = Field(default=None, max_length=255)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    pending_date: Optional[datetime] = None
    booking_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None


class ParcelBookingStatusEvent(SQLModel, table=True):
    __tablename__ = "parcel_booking_status_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    parcel_booking_id: int = Field(foreign_key="parcel_bookings.id", index=True)
    status: str = Field(max_length=50)
    created_by: int = Field(foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)
