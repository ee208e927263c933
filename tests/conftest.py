"""
Shared fixtures: in-memory SQLite store, a seeded owner, and a fake DMS
served through httpx.MockTransport.
"""

import httpx
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from parcel_booking.auth import VerifiedCaller
from parcel_booking.barcode import BarcodeIssuer
from parcel_booking.dms import DmsClient
from parcel_booking.lifecycle import ParcelBookingLifecycle
from parcel_booking.models import User
from parcel_booking.repository import BookingRepository
from parcel_booking.schemas import StoreParcelBookingRequest

DMS_BASE_URL = "http://dms.test"
BARCODE_PATH = "/dms/api/get-barcode/"
ARTICLE_PATH = "/dms/book/article/"
AUTH = "Bearer test-token"


class FakeDms:
    """Plays both DMS endpoints; every request is recorded."""

    def __init__(self):
        self.barcode_status = 201
        self.barcode_json = None
        self.article_status = 201
        self.article_json = {"message": "Article booked"}
        self.timeout = False
        self.requests = []
        self._seq = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.timeout:
            raise httpx.ReadTimeout("read timed out", request=request)
        if request.url.path == BARCODE_PATH:
            if self.barcode_status not in (200, 201):
                return httpx.Response(self.barcode_status, text="service unavailable")
            if self.barcode_json is not None:
                return httpx.Response(self.barcode_status, json=self.barcode_json)
            self._seq += 1
            return httpx.Response(self.barcode_status, json={"barcode": f"EP{self._seq:08d}BD"})
        if request.url.path == ARTICLE_PATH:
            return httpx.Response(self.article_status, json=self.article_json)
        return httpx.Response(404, text="no route")

    def calls(self, path):
        return [r for r in self.requests if r.url.path == path]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def repo(session):
    return BookingRepository(session)


@pytest.fixture
def owner(session):
    user = User(
        uuid="9b2f6c1e-42aa-4c1e-9d0b-000000000042",
        username="rahim.uddin",
        legal_name="Rahim Uddin",
        phone="01811111111",
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def caller(owner):
    return VerifiedCaller(user_id=owner.id, uuid=owner.uuid, username=owner.username)


@pytest.fixture
def fake_dms():
    return FakeDms()


@pytest.fixture
def issuer(fake_dms):
    return BarcodeIssuer(DMS_BASE_URL, timeout=2.0, http=fake_dms.client())


@pytest.fixture
def dms_client(fake_dms):
    return DmsClient(DMS_BASE_URL, timeout=2.0, http=fake_dms.client())


@pytest.fixture
def lifecycle(repo, issuer, dms_client):
    return ParcelBookingLifecycle(repo, issuer, dms_client, require_barcode=True)


@pytest.fixture
def lenient_lifecycle(repo, issuer, dms_client):
    return ParcelBookingLifecycle(repo, issuer, dms_client, require_barcode=False)


@pytest.fixture
def store_request():
    return StoreParcelBookingRequest(
        rpo_address="12 Main St",
        phone="01811111111",
        post_code="1000",
        rpo_name="RPO-Dhaka",
    )
