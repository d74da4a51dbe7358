"""Integration tests for the reservation API.

These validate the HTTP contract end to end against the Django stores.
Run with: pytest tests/test_reservations_api.py -v
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from scheduling import models as orm

START = "2030-01-07T10:00:00Z"
END = "2030-01-07T11:00:00Z"


def keys(*rows):
    result = []
    for row in rows:
        kind = "staff" if isinstance(row, orm.StaffMember) else "room"
        result.append({"kind": kind, "id": row.pk})
    return result


def body(room, trainer, service_type, **kwargs):
    data = {
        "resourceKeys": keys(room, trainer),
        "window": {"start": START, "end": END},
        "guestSpecs": [],
        "serviceTypeId": service_type.pk,
        "clientId": 9,
    }
    data.update(kwargs)
    return data


def create(client: APIClient, data) -> dict:
    response = client.post("/api/reservations", data, format="json")
    assert response.status_code == 201, response.data
    return response.data


def give_pass(client_id: int, credits: int) -> orm.Pass:
    return orm.Pass.objects.create(
        client_id=client_id,
        total_credits=credits,
        remaining_credits=credits,
        valid_from=datetime(2020, 1, 1, tzinfo=timezone.utc),
    )


@pytest.mark.django_db
class TestCreateReservation:
    """Tests for POST /api/reservations"""

    def test_create_returns_reservation_and_guests(self, admin_api, room, trainer, service_type):
        data = create(admin_api, body(room, trainer, service_type, guestSpecs=[5, 5, -11, {"kind": "technical_guest"}]))

        reservation = data["reservation"]
        assert reservation["status"] == "scheduled"
        assert reservation["window"] == {"start": START, "end": END}
        assert reservation["resourceKeys"] == [{"kind": "room", "id": room.pk}, {"kind": "staff", "id": trainer.pk}]
        assert reservation["pricing"]["entryFeeBrutto"] == "5000.00"
        assert reservation["pricing"]["source"] == "service_type_default"

        guests = {(g["guest"]["kind"], g["guest"].get("id")): g["quantity"] for g in data["guests"]}
        assert guests == {("client", 5): 2, ("technical_guest", None): 2}

        stored = orm.Reservation.objects.get(pk=reservation["id"])
        assert stored.attendance_records.count() == 5

    def test_client_price_code_applies(self, admin_api, room, trainer, service_type):
        orm.ClientPriceOverride.objects.create(
            client_id=9,
            service_type=service_type,
            entry_fee_brutto=Decimal("4000"),
            trainer_fee_brutto=Decimal("2500"),
            currency="HUF",
            price_code="VIP",
            valid_from=datetime(2020, 1, 1, tzinfo=timezone.utc),
        )
        pricing = create(admin_api, body(room, trainer, service_type))["reservation"]["pricing"]
        assert pricing["source"] == "client_price_code"
        assert pricing["entryFeeBrutto"] == "4000.00"
        assert pricing["priceCode"] == "VIP"

    def test_conflict_returns_409(self, admin_api, room, trainer, service_type, other_room):
        existing = create(admin_api, body(room, trainer, service_type))
        response = admin_api.post(
            "/api/reservations",
            body(other_room, trainer, service_type, window={"start": "2030-01-07T10:30:00Z", "end": "2030-01-07T11:30:00Z"}),
            format="json",
        )
        assert response.status_code == 409
        assert response.data["code"] == "CONFLICT"
        assert response.data["requiresConfirmation"] is True
        [conflict] = response.data["conflicts"]
        assert conflict["reservationId"] == existing["reservation"]["id"]
        assert conflict["overlapMinutes"] == 30
        assert conflict["resourceKeys"] == [f"staff:{trainer.pk}"]

    def test_touching_windows_are_accepted(self, admin_api, room, trainer, service_type):
        create(admin_api, body(room, trainer, service_type))
        create(admin_api, body(room, trainer, service_type, window={"start": END, "end": "2030-01-07T12:00:00Z"}))

    def test_end_before_start_is_422(self, admin_api, room, trainer, service_type):
        response = admin_api.post(
            "/api/reservations",
            body(room, trainer, service_type, window={"start": END, "end": START}),
            format="json",
        )
        assert response.status_code == 422
        assert response.data["code"] == "VALIDATION_FAILED"
        assert "window" in response.data["fields"]

    def test_zero_guest_id_is_422(self, admin_api, room, trainer, service_type):
        response = admin_api.post("/api/reservations", body(room, trainer, service_type, guestSpecs=[0]), format="json")
        assert response.status_code == 422

    def test_unknown_room_is_422(self, admin_api, room, trainer, service_type):
        data = body(room, trainer, service_type, resourceKeys=[{"kind": "room", "id": room.pk + 100}])
        response = admin_api.post("/api/reservations", data, format="json")
        assert response.status_code == 422
        assert response.data["code"] == "UNKNOWN_RESOURCE"
        assert response.data["resourceKeys"] == [f"room:{room.pk + 100}"]

    def test_unknown_service_type_is_422(self, admin_api, room, trainer, service_type):
        response = admin_api.post(
            "/api/reservations", body(room, trainer, service_type, serviceTypeId=service_type.pk + 100), format="json"
        )
        assert response.status_code == 422

    def test_anonymous_is_rejected(self, api_client, room, trainer, service_type):
        response = api_client.post("/api/reservations", body(room, trainer, service_type), format="json")
        assert response.status_code in (401, 403)
        assert not orm.Reservation.objects.exists()

    def test_trainer_books_own_calendar_only(self, trainer_api, room, trainer, service_type):
        create(trainer_api, body(room, trainer, service_type))
        other = orm.StaffMember.objects.create(name="Other trainer")
        response = trainer_api.post(
            "/api/reservations",
            body(room, other, service_type, window={"start": END, "end": "2030-01-07T12:00:00Z"}),
            format="json",
        )
        assert response.status_code == 403
        assert response.data["code"] == "FORBIDDEN"


@pytest.mark.django_db
class TestReservationDetail:
    """Tests for GET, PATCH and DELETE /api/reservations/{id}"""

    def test_get_reservation(self, admin_api, room, trainer, service_type):
        created = create(admin_api, body(room, trainer, service_type))
        response = admin_api.get(f"/api/reservations/{created['reservation']['id']}")
        assert response.status_code == 200
        assert response.data["reservation"]["id"] == created["reservation"]["id"]

    def test_invalid_id_format(self, admin_api):
        response = admin_api.get("/api/reservations/not-a-uuid")
        assert response.status_code == 400
        assert response.data["code"] == "INVALID_RESERVATION_ID"

    def test_not_found(self, admin_api):
        response = admin_api.get(f"/api/reservations/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.data["code"] == "RESERVATION_NOT_FOUND"

    def test_patch_conflict_then_force_override(self, admin_api, room, trainer, service_type):
        create(admin_api, body(room, trainer, service_type))
        later = create(admin_api, body(room, trainer, service_type, window={"start": "2030-01-07T14:00:00Z", "end": "2030-01-07T15:00:00Z"}))
        url = f"/api/reservations/{later['reservation']['id']}"

        response = admin_api.patch(url, {"window": {"start": START, "end": END}}, format="json")
        assert response.status_code == 409
        assert response.data["requiresConfirmation"] is True

        response = admin_api.patch(url, {"window": {"start": START, "end": END}, "forceOverride": True}, format="json")
        assert response.status_code == 200
        assert response.data["reservation"]["window"]["start"] == START

    def test_patch_guest_list(self, admin_api, room, trainer, service_type):
        created = create(admin_api, body(room, trainer, service_type, guestSpecs=[5, 6]))
        url = f"/api/reservations/{created['reservation']['id']}"
        response = admin_api.patch(url, {"guestSpecs": [6, 6, -1]}, format="json")
        assert response.status_code == 200
        quantities = {g["guest"].get("id"): g["quantity"] for g in response.data["guests"]}
        assert quantities == {6: 2, None: 1}
        assert orm.AttendanceRecord.objects.filter(
            reservation_id=created["reservation"]["id"], client_id=5, retired_at__isnull=False
        ).count() == 1

    def test_delete_cancels_softly(self, admin_api, room, trainer, service_type):
        created = create(admin_api, body(room, trainer, service_type))
        url = f"/api/reservations/{created['reservation']['id']}"
        assert admin_api.delete(url).status_code == 204

        response = admin_api.get(url)
        assert response.status_code == 200
        assert response.data["reservation"]["status"] == "cancelled"
        create(admin_api, body(room, trainer, service_type))


@pytest.mark.django_db
class TestConflictCheck:
    """Tests for POST /api/reservations/conflicts"""

    def test_lists_conflicts_without_writing(self, admin_api, room, trainer, service_type):
        created = create(admin_api, body(room, trainer, service_type))
        query = {"resourceKeys": keys(room), "window": {"start": "2030-01-07T09:30:00Z", "end": "2030-01-07T10:15:00Z"}}
        response = admin_api.post("/api/reservations/conflicts", query, format="json")
        assert response.status_code == 200
        assert [c["overlapMinutes"] for c in response.data["conflicts"]] == [15]

        query["excludeReservationId"] = created["reservation"]["id"]
        response = admin_api.post("/api/reservations/conflicts", query, format="json")
        assert response.data["conflicts"] == []


def pattern(**kwargs):
    data = {
        "dayOfWeek": 1,
        "timeOfDay": "10:00",
        "durationMinutes": 60,
        "intervalStart": "2025-01-06",
        "intervalEnd": "2025-01-27",
    }
    data.update(kwargs)
    return data


@pytest.mark.django_db
class TestRecurring:
    """Tests for POST /api/reservations/recurring[/preview]"""

    def test_preview_lists_four_mondays(self, admin_api, room):
        response = admin_api.post(
            "/api/reservations/recurring/preview",
            {"pattern": pattern(skipDates=["2025-01-13"]), "resourceKeys": keys(room)},
            format="json",
        )
        assert response.status_code == 200
        assert [(d["date"], d["status"]) for d in response.data["dates"]] == [
            ("2025-01-06", "ok"),
            ("2025-01-13", "skipped"),
            ("2025-01-20", "ok"),
            ("2025-01-27", "ok"),
        ]
        assert not orm.Reservation.objects.exists()

    def test_create_skips_conflicting_date(self, admin_api, room, trainer, service_type):
        create(
            admin_api,
            body(room, trainer, service_type, window={"start": "2025-01-20T09:00:00Z", "end": "2025-01-20T10:00:00Z"}),
        )
        response = admin_api.post(
            "/api/reservations/recurring",
            {"pattern": pattern(), "resourceKeys": keys(room), "label": "Yoga", "capacity": 10},
            format="json",
        )
        assert response.status_code == 201
        assert len(response.data["created"]) == 3
        assert response.data["skippedDates"] == [{"date": "2025-01-20", "reason": "conflict"}]
        assert len({r["seriesId"] for r in response.data["created"]}) == 1

    def test_nothing_created_is_422(self, admin_api, room):
        response = admin_api.post(
            "/api/reservations/recurring",
            {
                "pattern": pattern(skipDates=["2025-01-06", "2025-01-13", "2025-01-20", "2025-01-27"]),
                "resourceKeys": keys(room),
            },
            format="json",
        )
        assert response.status_code == 422
        assert response.data["code"] == "ALL_DATES_CONFLICTED"
        assert len(response.data["skippedDates"]) == 4


@pytest.mark.django_db
class TestCheckIn:
    """Tests for POST /api/reservations/{id}/checkin"""

    def test_attended_twice_deducts_once(self, admin_api, room, trainer, service_type):
        client_pass = give_pass(9, 10)
        created = create(admin_api, body(room, trainer, service_type))
        url = f"/api/reservations/{created['reservation']['id']}/checkin"

        first = admin_api.post(url, {"attendanceStatus": "attended"}, format="json")
        second = admin_api.post(url, {"attendanceStatus": "attended"}, format="json")

        assert first.status_code == second.status_code == 200
        assert first.data["creditDeducted"] is True
        assert second.data["creditDeducted"] is False
        client_pass.refresh_from_db()
        assert client_pass.remaining_credits == 9

    def test_empty_pass_still_records_attendance(self, admin_api, room, trainer, service_type):
        give_pass(9, 0)
        created = create(admin_api, body(room, trainer, service_type))
        response = admin_api.post(
            f"/api/reservations/{created['reservation']['id']}/checkin", {"attendanceStatus": "attended"}, format="json"
        )
        assert response.status_code == 200
        assert response.data["creditDeducted"] is False
        record = orm.AttendanceRecord.objects.get(reservation_id=created["reservation"]["id"])
        assert record.status == "attended"
        assert not record.credit_deducted

    def test_guest_selected_by_client_and_index(self, admin_api, room, trainer, service_type):
        guest_pass = give_pass(5, 2)
        created = create(admin_api, body(room, trainer, service_type, guestSpecs=[5, 5]))
        url = f"/api/reservations/{created['reservation']['id']}/checkin"
        response = admin_api.post(url, {"attendanceStatus": "attended", "clientId": 5, "guestIndex": 1}, format="json")
        assert response.data["creditDeducted"] is True
        guest_pass.refresh_from_db()
        assert guest_pass.remaining_credits == 1

    def test_unknown_participant_is_404(self, admin_api, room, trainer, service_type):
        created = create(admin_api, body(room, trainer, service_type))
        response = admin_api.post(
            f"/api/reservations/{created['reservation']['id']}/checkin",
            {"attendanceStatus": "attended", "clientId": 77},
            format="json",
        )
        assert response.status_code == 404
        assert response.data["code"] == "PARTICIPANT_NOT_FOUND"

    def test_unset_is_not_accepted(self, admin_api, room, trainer, service_type):
        created = create(admin_api, body(room, trainer, service_type))
        response = admin_api.post(
            f"/api/reservations/{created['reservation']['id']}/checkin", {"attendanceStatus": "unset"}, format="json"
        )
        assert response.status_code == 422


@pytest.mark.django_db
class TestClassRegistrationAndBatchCheckIn:
    """Tests for registrations and POST /api/reservations/{id}/checkin/batch"""

    def _occurrence(self, admin_api, room, capacity=2):
        response = admin_api.post(
            "/api/reservations/recurring",
            {
                "pattern": pattern(intervalStart="2030-01-07", intervalEnd="2030-01-07"),
                "resourceKeys": keys(room),
                "capacity": capacity,
            },
            format="json",
        )
        assert response.status_code == 201
        return response.data["created"][0]["id"]

    def test_registration_respects_capacity(self, admin_api, room):
        occurrence_id = self._occurrence(admin_api, room, capacity=1)
        url = f"/api/reservations/{occurrence_id}/registrations"

        response = admin_api.post(url, {"clientId": 11}, format="json")
        assert response.status_code == 201
        assert response.data["registration"]["participant"] == {"kind": "class_registrant", "clientId": 11}
        assert response.data["registration"]["attendanceStatus"] == "unset"

        response = admin_api.post(url, {"clientId": 12}, format="json")
        assert response.status_code == 422
        assert response.data["code"] == "CAPACITY_REACHED"

    def test_batch_reports_each_item(self, admin_api, room):
        give_pass(11, 4)
        occurrence_id = self._occurrence(admin_api, room)
        url = f"/api/reservations/{occurrence_id}/registrations"
        first = admin_api.post(url, {"clientId": 11}, format="json").data["registration"]["registrationId"]
        second = admin_api.post(url, {"clientId": 12}, format="json").data["registration"]["registrationId"]

        batch_url = f"/api/reservations/{occurrence_id}/checkin/batch"
        payload = {
            "registrations": [
                {"registrationId": first, "attendanceStatus": "attended"},
                {"registrationId": second, "attendanceStatus": "no_show"},
                {"registrationId": "garbage", "attendanceStatus": "attended"},
            ]
        }
        response = admin_api.post(batch_url, payload, format="json")
        assert response.status_code == 200
        assert [(r["outcome"], r["reason"]) for r in response.data["results"]] == [
            ("checked_in", None),
            ("checked_in", None),
            ("failed", "invalid_registration_id"),
        ]
        assert response.data["results"][0]["creditDeducted"] is True

        response = admin_api.post(batch_url, payload, format="json")
        assert [r["reason"] for r in response.data["results"][:2]] == ["already_checked_in", "already_checked_in"]
        assert orm.Pass.objects.get(client_id=11).remaining_credits == 3


@pytest.mark.django_db
class TestPricingResolve:
    """Tests for GET /api/pricing/resolve"""

    def test_resolve_default(self, admin_api, service_type):
        response = admin_api.get("/api/pricing/resolve", {"clientId": 9, "serviceTypeId": service_type.pk})
        assert response.status_code == 200
        assert response.data["quote"]["source"] == "service_type_default"
        assert response.data["quote"]["currency"] == "HUF"

    def test_unknown_service_type_is_404(self, admin_api, service_type):
        response = admin_api.get("/api/pricing/resolve", {"clientId": 9, "serviceTypeId": service_type.pk + 1})
        assert response.status_code == 404
        assert response.data["code"] == "SERVICE_TYPE_NOT_FOUND"
