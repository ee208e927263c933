# ============================================================
# Parcel Booking API Router
# ------------------------------------------------------------
# REST endpoints to create a passport parcel booking, mark it
# pending, submit it to the DMS and read back a booking with
# its status history. Every response uses the ApiResponse
# envelope {status, message, data}.
# ============================================================
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from parcel_booking.auth import VerifiedCaller, resolve_caller
from parcel_booking.lifecycle import Outcome, ParcelBookingLifecycle
from parcel_booking.models import ParcelBooking
from parcel_booking.repository import BookingRepository
from parcel_booking.schemas import ApiResponse, BarcodeRequest, StoreParcelBookingRequest

router = APIRouter()


# FastAPI dependency: one DB session per request, auto-closed
def get_session(request: Request):
    with Session(request.app.state.engine) as s:
        yield s


def get_repository(s: Session = Depends(get_session)) -> BookingRepository:
    return BookingRepository(s)


def get_lifecycle(request: Request, repo: BookingRepository = Depends(get_repository)) -> ParcelBookingLifecycle:
    state = request.app.state
    return ParcelBookingLifecycle(
        repo,
        state.barcode_issuer,
        state.dms_client,
        require_barcode=state.settings.require_barcode,
    )


def get_caller(
    x_user_uuid: Optional[str] = Header(default=None),
    repo: BookingRepository = Depends(get_repository),
) -> VerifiedCaller:
    return resolve_caller(repo, x_user_uuid)


def envelope(status: int, message: str, data: Any = None, upstream: Optional[dict] = None) -> JSONResponse:
    body = ApiResponse(status=status, message=message, data=data, upstream=upstream)
    exclude = {"upstream"} if upstream is None else None
    return JSONResponse(status_code=status, content=body.model_dump(mode="json", exclude=exclude))


# Booking as JSON with its owner attached
def booking_data(booking: ParcelBooking, repo: BookingRepository) -> dict:
    data = repo.refresh(booking).model_dump(mode="json")
    owner = repo.get_user(booking.user_id)
    data["user"] = {"id": owner.id, "uuid": owner.uuid, "username": owner.username} if owner else None
    return data


def respond(outcome: Outcome, lifecycle: ParcelBookingLifecycle) -> JSONResponse:
    return envelope(outcome.status, outcome.message, booking_data(outcome.booking, lifecycle.repo))


# ------------------------------------------------------------
# POST /v1/parcel-bookings — Create (or return the active one)
# ------------------------------------------------------------
@router.post("/v1/parcel-bookings")
def store(
    body: StoreParcelBookingRequest,
    caller: VerifiedCaller = Depends(get_caller),
    lifecycle: ParcelBookingLifecycle = Depends(get_lifecycle),
    authorization: Optional[str] = Header(default=None),
):
    return respond(lifecycle.create(body, caller, authorization), lifecycle)


# ------------------------------------------------------------
# POST /v1/parcel-bookings/pending — initial → pending
# ------------------------------------------------------------
@router.post("/v1/parcel-bookings/pending")
def store_pending(
    body: BarcodeRequest,
    caller: VerifiedCaller = Depends(get_caller),
    lifecycle: ParcelBookingLifecycle = Depends(get_lifecycle),
):
    return respond(lifecycle.mark_pending(body.barcode, caller), lifecycle)


# ------------------------------------------------------------
# POST /v1/parcel-bookings/submit — pending → booked (DMS)
# ------------------------------------------------------------
@router.post("/v1/parcel-bookings/submit")
def store_submit(
    body: BarcodeRequest,
    caller: VerifiedCaller = Depends(get_caller),
    lifecycle: ParcelBookingLifecycle = Depends(get_lifecycle),
    authorization: Optional[str] = Header(default=None),
):
    return respond(lifecycle.submit(body.barcode, caller, authorization), lifecycle)


@router.get("/v1/parcel-bookings/{barcode}")
def show(
    barcode: str,
    caller: VerifiedCaller = Depends(get_caller),
    lifecycle: ParcelBookingLifecycle = Depends(get_lifecycle),
):
    booking = lifecycle.get(barcode)
    return envelope(200, "Parcel booking retrieved successfully", booking_data(booking, lifecycle.repo))


# Status history in append order
@router.get("/v1/parcel-bookings/{barcode}/events")
def events(
    barcode: str,
    caller: VerifiedCaller = Depends(get_caller),
    lifecycle: ParcelBookingLifecycle = Depends(get_lifecycle),
):
    rows = [e.model_dump(mode="json") for e in lifecycle.history(barcode)]
    return envelope(200, "Parcel booking status events retrieved successfully", rows)


@router.get("/health")
def health():
    return {"status": "ok"}
