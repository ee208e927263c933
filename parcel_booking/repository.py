# ============================================================
# repository.py — Booking Store
# ------------------------------------------------------------
# Repository over the ParcelBooking table and its append-only
# status journal. It is the only code that talks to the DB
# session; write failures come out as PersistenceError (the
# booking itself) or AuditWriteError (a status event).
# ============================================================
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from parcel_booking.errors import AuditWriteError, ConflictError, PersistenceError
from parcel_booking.models import (
    ACTIVE_STATUSES,
    ParcelBooking,
    ParcelBookingStatusEvent,
    User,
    utcnow,
)


class BookingRepository:
    def __init__(self, session: Session):
        self.session = session

    # --- lookups ---------------------------------------------

    def get(self, booking_id: int) -> Optional[ParcelBooking]:
        return self.session.exec(select(ParcelBooking).where(ParcelBooking.id == booking_id)).first()

    def reload(self, booking_id: int) -> Optional[ParcelBooking]:
        # Bypasses the identity map: the row is read again from the DB
        stmt = (
            select(ParcelBooking)
            .where(ParcelBooking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        return self.session.exec(stmt).first()

    def get_by_barcode(self, barcode: str) -> Optional[ParcelBooking]:
        return self.session.exec(select(ParcelBooking).where(ParcelBooking.barcode == barcode)).first()

    def find_active(self, user_id: int, post_code: str) -> Optional[ParcelBooking]:
        stmt = select(ParcelBooking).where(
            ParcelBooking.user_id == user_id,
            ParcelBooking.post_code == post_code,
            col(ParcelBooking.current_status).in_(ACTIVE_STATUSES),
        )
        return self.session.exec(stmt).first()

    def get_user(self, user_id: int) -> Optional[User]:
        return self.session.exec(select(User).where(User.id == user_id)).first()

    def get_user_by_uuid(self, uuid: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.uuid == uuid)).first()

    def refresh(self, booking: ParcelBooking) -> ParcelBooking:
        # commits and rollbacks expire loaded rows; reload before serializing
        self.session.refresh(booking)
        return booking

    def events(self, booking_id: int) -> List[ParcelBookingStatusEvent]:
        stmt = (
            select(ParcelBookingStatusEvent)
            .where(ParcelBookingStatusEvent.parcel_booking_id == booking_id)
            .order_by(ParcelBookingStatusEvent.id)
        )
        return list(self.session.exec(stmt).all())

    # --- writes ----------------------------------------------

    def create(self, booking: ParcelBooking) -> ParcelBooking:
        self.session.add(booking)
        self._commit(booking, "Failed to create parcel booking")
        return booking

    def save(self, booking: ParcelBooking) -> ParcelBooking:
        booking.updated_at = utcnow()
        self.session.add(booking)
        self._commit(booking, "Failed to update parcel booking")
        return booking

    def append_event(self, booking_id: int, status: str, created_by: int) -> ParcelBookingStatusEvent:
        event = ParcelBookingStatusEvent(parcel_booking_id=booking_id, status=status, created_by=created_by)
        try:
            self.session.add(event)
            self.session.commit()
            self.session.refresh(event)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise AuditWriteError(
                f"Failed to create parcel booking status event for parcel_booking_id: {booking_id}"
            ) from exc
        return event

    def _commit(self, booking: ParcelBooking, message: str) -> None:
        try:
            self.session.commit()
            self.session.refresh(booking)
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(message) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(message) from exc
