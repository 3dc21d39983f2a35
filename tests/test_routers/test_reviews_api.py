from datetime import datetime, timedelta, timezone

from app.models.booking import BOOKING_CONFIRMED, PAYMENT_COMPLETED


def _past_stay(make_booking, hotel, user):
    now = datetime.now(timezone.utc)
    make_booking(hotel, user, now - timedelta(days=6), now - timedelta(days=4),
                 status=BOOKING_CONFIRMED, payment_status=PAYMENT_COMPLETED)


def test_review_lifecycle(client, make_user, make_hotel, make_booking, auth_headers):
    hotel = make_hotel()
    guest = make_user(name="Ana")
    _past_stay(make_booking, hotel, guest)
    base = f"/api/v1/hotels/{hotel.id}/reviews"

    assert client.get(f"{base}/eligibility", headers=auth_headers(guest)).json()["canReview"] is True

    created = client.post(base, headers=auth_headers(guest), json={"rating": 5, "text": "Great"})
    assert created.status_code == 201
    assert created.json()["hotelAverageRating"] == 5.0
    assert created.json()["authorName"] == "Ana"
    review_id = created.json()["id"]

    assert client.get(f"{base}/eligibility", headers=auth_headers(guest)).json()["canReview"] is False
    dup = client.post(base, headers=auth_headers(guest), json={"rating": 1})
    assert dup.status_code == 409

    updated = client.put(f"{base}/{review_id}", headers=auth_headers(guest), json={"rating": 3})
    assert updated.status_code == 200
    assert updated.json()["hotelAverageRating"] == 3.0
    assert updated.json()["text"] == "Great"

    assert client.delete(f"{base}/{review_id}", headers=auth_headers(guest)).status_code == 204


def test_review_without_stay_is_403(client, make_user, make_hotel, auth_headers):
    hotel = make_hotel()
    r = client.post(f"/api/v1/hotels/{hotel.id}/reviews", headers=auth_headers(make_user()), json={"rating": 4})
    assert r.status_code == 403
    assert r.json()["error"] == "ReviewNotAllowed"


def test_rating_out_of_range_is_422(client, make_user, make_hotel, make_booking, auth_headers):
    hotel = make_hotel()
    guest = make_user()
    _past_stay(make_booking, hotel, guest)
    r = client.post(f"/api/v1/hotels/{hotel.id}/reviews", headers=auth_headers(guest), json={"rating": 6})
    assert r.status_code == 422


def test_non_author_cannot_edit_but_admin_can_delete(client, make_user, make_hotel, make_booking, auth_headers):
    hotel = make_hotel()
    guest = make_user()
    _past_stay(make_booking, hotel, guest)
    base = f"/api/v1/hotels/{hotel.id}/reviews"
    review_id = client.post(base, headers=auth_headers(guest), json={"rating": 4}).json()["id"]

    assert client.put(f"{base}/{review_id}", headers=auth_headers(make_user()), json={"rating": 1}).status_code == 403
    assert client.delete(f"{base}/{review_id}", headers=auth_headers(make_user(role="admin"))).status_code == 204
