import json

import pytest
from sqlmodel import Session

from parcel_booking.dms import SENDER_OFFICE, build_article_payload
from parcel_booking.errors import ExternalServiceError, NotFoundError, PreconditionError
from parcel_booking.models import ParcelBooking
from tests.conftest import ARTICLE_PATH, AUTH, DMS_BASE_URL


@pytest.fixture
def pending_booking(repo, owner):
    return repo.create(
        ParcelBooking(
            user_id=owner.id,
            rpo_address="12 Main St",
            phone="01811111111",
            post_code="1000",
            rpo_name="RPO-Dhaka",
            barcode="EP00000042BD",
            current_status="pending",
        )
    )


def test_payload_receiver_comes_from_booking_and_owner(pending_booking, owner):
    payload = build_article_payload(pending_booking, owner)

    assert payload["barcode"] == "EP00000042BD"
    assert payload["article_desc"] == "Passport Delivery"
    assert payload["article_price"] == 100
    assert (payload["weight"], payload["height"], payload["width"], payload["length"]) == (100, 10, 10, 10)
    assert payload["service_name"] == "letter"
    assert payload["vas_type"] == "Registry"
    assert payload["receiver"] == {
        "address_type": "home",
        "country": "Bangladesh",
        "district": "RPO-Dhaka",
        "division": "",
        "phone_number": "01811111111",
        "police_station": "",
        "post_office": "1000",
        "street_address": "12 Main St",
        "user_uuid": owner.uuid,
        "username": "rahim.uddin",
        "zone": "Zone 1",
    }


def test_payload_sender_is_the_fixed_office(pending_booking, owner):
    sender = build_article_payload(pending_booking, owner)["sender"]

    assert sender["username"] == "passport-office"
    assert sender["street_address"] == SENDER_OFFICE["street_address"]
    assert sender["user_uuid"] == owner.uuid
    assert "user_uuid" not in SENDER_OFFICE


def test_submit_posts_payload_and_returns_raw_response(dms_client, repo, pending_booking, fake_dms):
    response = dms_client.submit_booking(AUTH, pending_booking.id, repo)

    assert response.status_code == 201
    assert response.ok
    assert json.loads(response.body) == {"message": "Article booked"}
    request = fake_dms.calls(ARTICLE_PATH)[0]
    assert str(request.url) == f"{DMS_BASE_URL}{ARTICLE_PATH}"
    assert request.headers["Authorization"] == AUTH
    assert json.loads(request.content)["barcode"] == "EP00000042BD"


def test_submit_does_not_interpret_error_status(dms_client, repo, pending_booking, fake_dms):
    fake_dms.article_status = 422
    fake_dms.article_json = {"detail": "bad district"}

    response = dms_client.submit_booking(AUTH, pending_booking.id, repo)

    assert response.status_code == 422
    assert not response.ok
    assert "bad district" in response.text


def test_freshness_guard_sees_status_changed_since_lookup(engine, dms_client, repo, pending_booking, fake_dms):
    # another request books it between lookup and the external call
    with Session(engine) as other:
        row = other.get(ParcelBooking, pending_booking.id)
        row.current_status = "booked"
        other.add(row)
        other.commit()

    with pytest.raises(PreconditionError):
        dms_client.submit_booking(AUTH, pending_booking.id, repo)

    assert fake_dms.calls(ARTICLE_PATH) == []


def test_freshness_guard_requires_resolvable_owner(dms_client, repo, fake_dms):
    orphan = repo.create(
        ParcelBooking(
            user_id=9999,
            rpo_address="nowhere",
            phone="0",
            post_code="9999",
            rpo_name="RPO-X",
            barcode="EP-ORPHAN",
            current_status="pending",
        )
    )

    with pytest.raises(PreconditionError) as info:
        dms_client.submit_booking(AUTH, orphan.id, repo)

    assert info.value.message == "User information not found for parcel booking"
    assert fake_dms.requests == []


def test_freshness_guard_missing_booking(dms_client, repo):
    with pytest.raises(NotFoundError):
        dms_client.submit_booking(AUTH, 12345, repo)


def test_submit_transport_failure(dms_client, repo, pending_booking, fake_dms):
    fake_dms.timeout = True

    with pytest.raises(ExternalServiceError):
        dms_client.submit_booking(AUTH, pending_booking.id, repo)
