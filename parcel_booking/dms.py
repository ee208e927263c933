# ============================================================
# dms.py — DMS Submission Client
# ------------------------------------------------------------
# Registers a pending booking with the Dispatch Management
# System through /dms/book/article/.
#  - re-reads the booking and its owner right before the call
#    (guards against a stale read since the lookup)
#  - builds the fixed-shape article payload
#  - returns the raw body and status, uninterpreted
# ============================================================
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx
import structlog

from parcel_booking.errors import ExternalServiceError, NotFoundError, PreconditionError
from parcel_booking.models import ParcelBooking, ParcelBookingStatus, User
from parcel_booking.repository import BookingRepository

logger = structlog.get_logger()

# Originating office used as sender for every article
SENDER_OFFICE = {
    "address_type": "office",
    "country": "Bangladesh",
    "district": "Dhaka",
    "division": "Dhaka",
    "phone_number": "018XXXXXXXX",
    "police_station": "Gulshan",
    "post_office": "Gulshan",
    "street_address": "456, Gulshan, Dhaka",
    "username": "passport-office",
    "zone": "Zone 2",
}


@dataclass(frozen=True)
class DmsResponse:
    body: bytes
    status_code: int

    @property
    def ok(self) -> bool:
        return self.status_code in (200, 201)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def build_article_payload(booking: ParcelBooking, owner: User) -> Dict[str, Any]:
    receiver = {
        "address_type": "home",
        "country": "Bangladesh",
        "district": booking.rpo_name,
        "division": "",
        "phone_number": booking.phone,
        "police_station": "",
        "post_office": booking.post_code,
        "street_address": booking.rpo_address,
        "user_uuid": owner.uuid,
        "username": owner.username,
        "zone": "Zone 1",
    }
    sender = dict(SENDER_OFFICE, user_uuid=owner.uuid)
    return {
        "ad_pod_id": "1",
        "article_desc": "Passport Delivery",
        "article_price": 100,
        "barcode": booking.barcode,
        "city_post_status": "No",
        "delivery_branch": "100000",
        "emts_branch_code": "100000",
        "height": 10,
        "hnddevice": "web",
        "image_pod": "0",
        "image_src": "No",
        "insurance_price": "0",
        "is_bulk_mail": "No",
        "isCharge": "Yes",
        "is_city_post": "No",
        "is_international": False,
        "isStation": "No",
        "length": 10,
        "receiver": receiver,
        "sender": sender,
        "service_name": "letter",
        "set_ad": "No",
        "vas_type": "Registry",
        "vp_amount": "0",
        "vp_service": "No",
        "weight": 100,
        "width": 10,
    }


def resolve_submission(repo: BookingRepository, booking_id: int) -> Tuple[ParcelBooking, User]:
    """Freshness guard: one forced re-read of the booking and its owner."""
    booking = repo.reload(booking_id)
    if booking is None:
        raise NotFoundError()
    if booking.current_status != ParcelBookingStatus.PENDING.value:
        raise PreconditionError("Parcel booking is not in pending status")
    owner = repo.get_user(booking.user_id)
    if owner is None or not owner.uuid:
        raise PreconditionError("User information not found for parcel booking")
    return booking, owner


class DmsClient:
    def __init__(self, base_url: str, timeout: float = 10.0, http: Optional[httpx.Client] = None):
        self.url = f"{base_url.rstrip('/')}/dms/book/article/"
        self.timeout = timeout
        self.http = http or httpx.Client()

    def submit_booking(self, authorization: str, booking_id: int, repo: BookingRepository) -> DmsResponse:
        booking, owner = resolve_submission(repo, booking_id)
        payload = build_article_payload(booking, owner)
        try:
            r = self.http.post(
                self.url,
                json=payload,
                headers={"Authorization": authorization},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise ExternalServiceError(f"booking API timed out: {exc}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ExternalServiceError(f"failed to call booking API: {exc}") from exc

        logger.debug("dms responded", barcode=booking.barcode, status_code=r.status_code)
        return DmsResponse(body=r.content, status_code=r.status_code)

    def close(self) -> None:
        self.http.close()
