# ============================================================
# lifecycle.py — Parcel booking lifecycle
# ------------------------------------------------------------
# State machine of a passport parcel booking:
#
#   (none) --create--> initial --mark_pending--> pending --submit--> booked
#
# - create is idempotent per (owner, post code) while a booking
#   is initial or pending: the existing booking is returned
# - the booking row is the source of truth for the status; a
#   status event that fails to persist is logged, not raised
# - submit only touches the booking once the DMS accepted it
# ============================================================
from dataclasses import dataclass
from typing import List, Optional

import structlog

from parcel_booking.auth import VerifiedCaller
from parcel_booking.barcode import BarcodeIssuer
from parcel_booking.dms import DmsClient
from parcel_booking.errors import (
    AuditWriteError,
    AuthenticationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PreconditionError,
)
from parcel_booking.models import (
    ParcelBooking,
    ParcelBookingStatus,
    ParcelBookingStatusEvent,
    utcnow,
)
from parcel_booking.repository import BookingRepository
from parcel_booking.schemas import StoreParcelBookingRequest

logger = structlog.get_logger()

INITIAL = ParcelBookingStatus.INITIAL.value
PENDING = ParcelBookingStatus.PENDING.value
BOOKED = ParcelBookingStatus.BOOKED.value


@dataclass
class Outcome:
    status: int
    message: str
    booking: ParcelBooking


class ParcelBookingLifecycle:
    def __init__(
        self,
        repo: BookingRepository,
        issuer: BarcodeIssuer,
        dms: DmsClient,
        require_barcode: bool = True,
    ):
        self.repo = repo
        self.issuer = issuer
        self.dms = dms
        self.require_barcode = require_barcode

    # ------------------------------------------------------------
    # create — new booking in status initial
    # ------------------------------------------------------------
    # 1) dedup guard: an active booking for (owner, post code) is
    #    returned; one still lacking a barcode gets another
    #    issuance attempt
    # 2) barcode issuance (strict: failure aborts, lenient: NULL)
    # 3) insert; a concurrent insert that won the unique index is
    #    returned instead
    # 4) initial status event
    # ------------------------------------------------------------
    def create(
        self,
        request: StoreParcelBookingRequest,
        caller: VerifiedCaller,
        authorization: Optional[str],
    ) -> Outcome:
        existing = self.repo.find_active(caller.user_id, request.post_code)
        if existing is not None:
            logger.info(
                "existing parcel booking found",
                parcel_booking_id=existing.id,
                user_id=caller.user_id,
                post_code=request.post_code,
            )
            if existing.barcode is None and authorization:
                existing = self._backfill_barcode(existing, caller, authorization)
            return Outcome(200, "Existing parcel booking found", existing)

        if not authorization:
            raise AuthenticationError("Authorization header required for barcode generation")

        barcode = self._issue_barcode(authorization)

        booking = ParcelBooking(
            user_id=caller.user_id,
            rpo_address=request.rpo_address,
            phone=request.phone,
            post_code=request.post_code,
            rpo_name=request.rpo_name,
            barcode=barcode,
            current_status=INITIAL,
            service_type="passport",
            insured=False,
            updated_by=str(caller.user_id),
            push_status=0,
        )
        try:
            booking = self.repo.create(booking)
        except ConflictError:
            winner = self.repo.find_active(caller.user_id, request.post_code)
            if winner is None:
                raise
            logger.warning(
                "concurrent parcel booking create absorbed",
                parcel_booking_id=winner.id,
                discarded_barcode=barcode,
            )
            return Outcome(200, "Existing parcel booking found", winner)

        self._record_event(booking, INITIAL, caller)
        logger.info("parcel booking created", parcel_booking_id=booking.id, barcode=booking.barcode)
        return Outcome(201, "Parcel booking created successfully", booking)

    def _issue_barcode(self, authorization: str) -> Optional[str]:
        try:
            return self.issuer.issue(authorization)
        except ExternalServiceError as exc:
            logger.error("failed to generate barcode", error=exc.message)
            if self.require_barcode:
                raise ExternalServiceError(
                    f"Failed to generate barcode: {exc.message}",
                    upstream_status=exc.upstream_status,
                    upstream_body=exc.upstream_body,
                ) from exc
            logger.warning("creating parcel booking without barcode")
            return None

    # A booking created without a barcode (lenient policy) can only
    # be reached through create, so a retried create issues it one.
    def _backfill_barcode(
        self, booking: ParcelBooking, caller: VerifiedCaller, authorization: str
    ) -> ParcelBooking:
        barcode = self._issue_barcode(authorization)
        if barcode is None:
            return booking
        booking.barcode = barcode
        booking.updated_by = str(caller.user_id)
        booking = self.repo.save(booking)
        logger.info("barcode assigned to existing parcel booking", parcel_booking_id=booking.id, barcode=barcode)
        return booking

    # ------------------------------------------------------------
    # mark_pending — initial → pending
    # ------------------------------------------------------------
    # Already pending: the row is left alone but a pending event
    # is still appended (the journal records attempts).
    # ------------------------------------------------------------
    def mark_pending(self, barcode: str, caller: VerifiedCaller) -> Outcome:
        booking = self._find(barcode)

        if booking.current_status == PENDING:
            message = "Already pending this item"
        elif booking.current_status == INITIAL:
            booking.current_status = PENDING
            if booking.pending_date is None:
                booking.pending_date = utcnow()
            booking.updated_by = str(caller.user_id)
            booking = self.repo.save(booking)
            message = "Parcel booking updated to pending status successfully"
            logger.info("parcel booking pending", parcel_booking_id=booking.id, barcode=barcode)
        else:
            raise PreconditionError(
                f"Parcel booking in status {booking.current_status} cannot be marked pending"
            )

        self._record_event(booking, PENDING, caller)
        return Outcome(200, message, booking)

    # ------------------------------------------------------------
    # submit — pending → booked, through the DMS
    # ------------------------------------------------------------
    # Any DMS failure leaves the booking untouched. A retried
    # submit on a booked booking fails the precondition and is
    # never replayed against the DMS.
    # ------------------------------------------------------------
    def submit(self, barcode: str, caller: VerifiedCaller, authorization: Optional[str]) -> Outcome:
        booking = self._find(barcode)
        if booking.current_status != PENDING:
            raise PreconditionError("Parcel booking must be in pending status to submit")
        if not authorization:
            raise AuthenticationError("Authorization header required")

        try:
            response = self.dms.submit_booking(authorization, booking.id, self.repo)
        except ExternalServiceError as exc:
            logger.error("DMS booking failed", barcode=barcode, error=exc.message)
            raise ExternalServiceError(
                f"Failed to call external booking API: {exc.message}",
                upstream_status=exc.upstream_status,
                upstream_body=exc.upstream_body,
            ) from exc

        if not response.ok:
            logger.error(
                "DMS booking rejected",
                barcode=barcode,
                status_code=response.status_code,
                body=response.text,
            )
            raise ExternalServiceError(
                f"DMS API returned status {response.status_code}",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )
        logger.info("DMS booking successful", barcode=barcode, status_code=response.status_code)

        booking.current_status = BOOKED
        if booking.booking_date is None:
            booking.booking_date = utcnow()
        booking.updated_by = str(caller.user_id)
        booking = self.repo.save(booking)

        self._record_event(booking, BOOKED, caller)
        return Outcome(200, "Parcel booking submitted successfully", booking)

    # --- reads -------------------------------------------------

    def get(self, barcode: str) -> ParcelBooking:
        return self._find(barcode)

    def history(self, barcode: str) -> List[ParcelBookingStatusEvent]:
        return self.repo.events(self._find(barcode).id)

    # --- helpers -----------------------------------------------

    def _find(self, barcode: str) -> ParcelBooking:
        booking = self.repo.get_by_barcode(barcode)
        if booking is None:
            raise NotFoundError()
        return booking

    def _record_event(self, booking: ParcelBooking, status: str, caller: VerifiedCaller) -> None:
        try:
            self.repo.append_event(booking.id, status, caller.user_id)
        except AuditWriteError as exc:
            logger.error(
                "status event not recorded",
                parcel_booking_id=booking.id,
                status=status,
                error=exc.message,
            )
