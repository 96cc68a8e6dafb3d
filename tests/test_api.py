"""
Tests for the public booking API.
"""

import pytest
from fastapi.testclient import TestClient

from visitplanner.api.app import create_app
from visitplanner.config import AppConfig
from visitplanner.domain.exceptions import StoreError


@pytest.fixture
def client(store):
    config = AppConfig(premium_accounts=["premium-caregiver"])
    return TestClient(create_app(store=store, config=config), raise_server_exceptions=False)


def post_booking(client, slot_id, name="Ana", people=1, replace=None):
    body = {"slotId": slot_id, "visitorName": name, "numberOfPeople": people}
    if replace is not None:
        body["replaceExisting"] = replace
    return client.post("/api/bookings", json=body)


def delete_booking(client, body):
    return client.request("DELETE", "/api/bookings", json=body)


class TestCreateBooking:
    """Tests for POST /api/bookings."""

    def test_accepted(self, client, make_slots):
        slot = make_slots(max_people=2)[0]

        response = post_booking(client, slot.id, people=2)

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_full_slot_is_409(self, client, make_slots):
        slot = make_slots(max_people=1)[0]
        post_booking(client, slot.id, name="Ana")

        response = post_booking(client, slot.id, name="Rui")

        assert response.status_code == 409
        assert response.json() == {
            "message": "This time does not have enough room for the number of people given."
        }

    def test_already_booked_needs_confirmation(self, client, make_slots):
        first, second = make_slots(end="16:00", max_people=2)
        post_booking(client, first.id)

        response = post_booking(client, second.id)

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "ALREADY_BOOKED"
        assert body["message"]

    def test_confirmed_replace(self, client, make_slots):
        first, second = make_slots(end="16:00", max_people=2)
        post_booking(client, first.id)

        response = post_booking(client, second.id, replace=True)

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_unknown_slot_is_404(self, client, make_slots):
        response = post_booking(client, "missing-slot")

        assert response.status_code == 404
        assert response.json() == {"message": "Selected time was not found."}

    @pytest.mark.parametrize(
        "body",
        [
            {"visitorName": "Ana", "numberOfPeople": 1},
            {"slotId": "s", "visitorName": "", "numberOfPeople": 1},
            {"slotId": "s", "visitorName": "Ana", "numberOfPeople": 0},
            {},
        ],
    )
    def test_incomplete_body_is_400(self, client, body):
        response = client.post("/api/bookings", json=body)

        assert response.status_code == 400
        assert response.json() == {"message": "Incomplete data to create the booking."}

    def test_invalid_party_size_is_400(self, client, make_slots):
        slot = make_slots()[0]

        response = post_booking(client, slot.id, people="abc")

        assert response.status_code == 400
        assert response.json() == {"message": "Number of people must be at least 1."}

    @pytest.mark.parametrize("people", ["²", "9" * 5000])
    def test_non_ascii_or_huge_party_size_is_400(self, client, make_slots, people):
        slot = make_slots()[0]

        response = post_booking(client, slot.id, people=people)

        assert response.status_code == 400
        assert response.json() == {"message": "Number of people must be at least 1."}

    def test_blank_name_is_400(self, client, make_slots):
        slot = make_slots()[0]

        response = post_booking(client, slot.id, name="   ")

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid name."}

    def test_malformed_json_is_400(self, client):
        response = client.post(
            "/api/bookings",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert "message" in response.json()

    def test_store_failure_is_500_with_generic_message(self, client, make_slots, store, monkeypatch):
        slot = make_slots()[0]

        def broken_find_one(entity, filters=None):
            raise StoreError("database is locked")

        monkeypatch.setattr(store, "find_one", broken_find_one)

        response = post_booking(client, slot.id)

        assert response.status_code == 500
        assert response.json() == {"message": "Unexpected error while processing the booking."}


class TestCancelBooking:
    """Tests for DELETE /api/bookings."""

    def test_cancel_then_cancel_again(self, client, make_slots):
        slot = make_slots()[0]
        post_booking(client, slot.id)

        first = delete_booking(client, {"slotId": slot.id, "visitorName": "ana"})
        second = delete_booking(client, {"slotId": slot.id, "visitorName": "Ana"})

        assert (first.status_code, first.json()) == (200, {"ok": True})
        assert (second.status_code, second.json()) == (404, {"message": "Booking not found."})

    def test_incomplete_body_is_400(self, client):
        response = delete_booking(client, {"slotId": "s"})

        assert response.status_code == 400
        assert response.json() == {"message": "Incomplete data to cancel the booking."}


class TestPublicSchedule:
    """Tests for GET /api/schedules/{code}."""

    def test_view_lists_open_slots_with_spots(self, client, schedule, make_slots):
        first, _ = make_slots(end="16:00", max_people=3)
        post_booking(client, first.id, people=2)

        response = client.get(f"/api/schedules/{schedule.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Meet Lara"
        assert body["custom_message"] == "Please wash your hands"
        assert [s["start_time"] for s in body["slots"]] == ["14:00:00", "15:00:00"]
        assert body["slots"][0]["total_people"] == 2
        assert body["slots"][0]["remaining_spots"] == 1
        assert body["slots"][1]["remaining_spots"] == 3

    def test_unknown_code_is_404(self, client):
        response = client.get("/api/schedules/nope")

        assert response.status_code == 404
        assert response.json() == {"message": "Schedule not found."}

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
