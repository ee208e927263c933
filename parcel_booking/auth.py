# ============================================================
# auth.py — Verified caller
# ------------------------------------------------------------
# The authenticating gateway in front of this service puts the
# user's UUID in X-User-UUID. It is resolved here into a typed
# VerifiedCaller; the lifecycle never sees raw claims.
# ============================================================
from dataclasses import dataclass
from typing import Optional

from parcel_booking.errors import AuthenticationError
from parcel_booking.repository import BookingRepository


@dataclass(frozen=True)
class VerifiedCaller:
    user_id: int
    uuid: str
    username: str


def resolve_caller(repo: BookingRepository, user_uuid: Optional[str]) -> VerifiedCaller:
    if not user_uuid or not user_uuid.strip():
        raise AuthenticationError("User UUID not found in token")
    user = repo.get_user_by_uuid(user_uuid.strip())
    if user is None:
        raise AuthenticationError("User not found")
    return VerifiedCaller(user_id=user.id, uuid=user.uuid, username=user.username)
