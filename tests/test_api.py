from fastapi.testclient import TestClient

from main import app, get_notifier
from notifier import ChangeKind, ChangeNotifier, ReservationChange
from tests.utils import DAY, DOMAIN, at


def booking_payload(classroom_id, start_hour, duration_hours=1, is_private=False, email=f"ana@{DOMAIN}"):
    return {
        "classroom_id": classroom_id,
        "student_email": email,
        "booking_date": DAY.isoformat(),
        "start_hour": start_hour,
        "duration_hours": duration_hours,
        "is_private": is_private,
    }


async def test_list_classrooms(client, rooms):
    response = await client.get("/classrooms")

    assert response.status_code == 200
    body = {room["name"]: room for room in response.json()}
    assert body["Room A"]["room_type_label"] == "Study Room"
    assert body["Room C"]["room_type"] == "room"
    assert body["Room C"]["room_type_label"] == "Room"


async def test_create_reservation(client, rooms):
    response = await client.post("/reservations", json=booking_payload(rooms["Room A"], 9, 2))

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "reserved"
    assert body["start_time"] == "2026-03-10T09:00:00"
    assert body["end_time"] == "2026-03-10T11:00:00"


async def test_third_shared_booking_is_rejected(client, rooms):
    for email in ("a", "b"):
        response = await client.post(
            "/reservations", json=booking_payload(rooms["Room A"], 9, email=f"{email}@{DOMAIN}")
        )
        assert response.status_code == 201

    response = await client.post("/reservations", json=booking_payload(rooms["Room A"], 9))

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "unavailable"
    assert response.json()["detail"]["reason"] == "capacity_reached"


async def test_invalid_bookings(client, rooms):
    bad_email = await client.post("/reservations", json=booking_payload(rooms["Room A"], 9, email="ana@gmail.com"))
    too_long = await client.post("/reservations", json=booking_payload(rooms["Room A"], 9, duration_hours=4))
    too_late = await client.post("/reservations", json=booking_payload(rooms["Room A"], 21, duration_hours=2))
    unknown_room = await client.post("/reservations", json=booking_payload(999, 9))

    assert bad_email.status_code == 400
    assert too_long.status_code == 422
    assert too_late.status_code == 400
    assert unknown_room.status_code == 404


async def test_out_of_range_hours_are_rejected_by_the_schema(client, rooms):
    for payload in (
        booking_payload(rooms["Room A"], 10**8),
        booking_payload(rooms["Room A"], 7),
        booking_payload(rooms["Room A"], 22),
        booking_payload(rooms["Room A"], 9, duration_hours=0),
        booking_payload(rooms["Room A"], 9, duration_hours=-10**8),
    ):
        response = await client.post("/reservations", json=payload)
        assert response.status_code == 422


async def test_booking_a_slot_that_has_passed(client, rooms, clock):
    clock.now = at(15)

    passed = await client.post("/reservations", json=booking_payload(rooms["Room A"], 9))
    later = await client.post("/reservations", json=booking_payload(rooms["Room A"], 16))

    assert passed.status_code == 400
    assert later.status_code == 201


async def test_availability_dashboard(client, rooms):
    await client.post("/reservations", json=booking_payload(rooms["Room A"], 9))
    await client.post("/reservations", json=booking_payload(rooms["Room B"], 14, 2, is_private=True))

    response = await client.get("/availability", params={"target_date": DAY.isoformat()})

    assert response.status_code == 200
    body = {room["name"]: room for room in response.json()}
    assert body["Room A"]["status"] == "partial"
    assert body["Room B"]["status"] == "available"
    assert body["Room C"]["status"] == "available"
    room_b_slots = {slot["hour"]: slot["status"] for slot in body["Room B"]["slots"]}
    assert room_b_slots[14] == room_b_slots[15] == "blocked"
    assert len(body["Room B"]["available_hours"]) == 12


async def test_availability_for_one_hour(client, rooms):
    await client.post("/reservations", json=booking_payload(rooms["Room B"], 14, is_private=True))

    response = await client.get("/availability", params={"target_date": DAY.isoformat(), "hour": 14})

    assert [room["name"] for room in response.json()] == ["Room A", "Room C"]


async def test_availability_filters(client, rooms):
    await client.post("/reservations", json=booking_payload(rooms["Room A"], 9))

    partial = await client.get("/availability", params={"target_date": DAY.isoformat(), "status": "partial"})
    meeting = await client.get("/availability", params={"target_date": DAY.isoformat(), "room_type": "meeting_room"})
    bad_hour = await client.get("/availability", params={"target_date": DAY.isoformat(), "hour": 22})

    assert [room["name"] for room in partial.json()] == ["Room A"]
    assert [room["name"] for room in meeting.json()] == ["Room B"]
    assert bad_hour.status_code == 400


async def test_classroom_availability(client, rooms):
    response = await client.get(
        f"/classrooms/{rooms['Room A']}/availability", params={"target_date": DAY.isoformat()}
    )
    missing = await client.get("/classrooms/999/availability", params={"target_date": DAY.isoformat()})

    assert response.status_code == 200
    assert len(response.json()["slots"]) == 14
    assert missing.status_code == 404


async def test_check_in_flow(client, rooms, clock):
    room_id = rooms["Room A"]
    await client.post("/reservations", json=booking_payload(room_id, 9))
    url = f"/classrooms/{room_id}/check-in"

    clock.now = at(8, 50)
    early = await client.post(url, json={"student_email": f"ana@{DOMAIN}"})
    assert early.status_code == 409
    assert early.json()["detail"]["code"] == "too_early"
    assert early.json()["detail"]["opens_at"] == "2026-03-10T08:55:00"

    clock.now = at(8, 56)
    ok = await client.post(url, json={"student_email": f"ana@{DOMAIN}"})
    assert ok.status_code == 200
    assert ok.json()["status"] == "checked_in"

    again = await client.post(url, json={"student_email": f"ana@{DOMAIN}"})
    assert again.status_code == 404


async def test_check_in_after_window(client, rooms, clock):
    room_id = rooms["Room A"]
    await client.post("/reservations", json=booking_payload(room_id, 9))

    clock.now = at(9, 16)
    response = await client.post(f"/classrooms/{room_id}/check-in", json={"student_email": f"ana@{DOMAIN}"})

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "window_expired"


async def test_emails_are_matched_regardless_of_case(client, rooms, clock):
    room_id = rooms["Room A"]
    created = await client.post("/reservations", json=booking_payload(room_id, 9, email=f"Ana@{DOMAIN}"))
    assert created.json()["student_email"] == f"ana@{DOMAIN}"

    listed = await client.get("/reservations", params={"student_email": f"ANA@{DOMAIN}"})
    assert [r["id"] for r in listed.json()] == [created.json()["id"]]

    clock.now = at(9)
    response = await client.post(f"/classrooms/{room_id}/check-in", json={"student_email": f"ana@{DOMAIN}"})
    assert response.status_code == 200


async def test_expire_endpoint_frees_the_slot(client, rooms, clock):
    room_id = rooms["Room B"]
    await client.post("/reservations", json=booking_payload(room_id, 9))

    clock.now = at(9, 20)
    response = await client.post("/reservations/expire")
    assert response.json() == {"expired": 1}

    grid = await client.get(f"/classrooms/{room_id}/availability", params={"target_date": DAY.isoformat()})
    assert grid.json()["slots"][1]["status"] == "available"

    listed = await client.get("/reservations", params={"classroom_id": room_id})
    assert listed.json() == []


def test_reservation_feed_pushes_changes():
    notifier = ChangeNotifier()
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        with TestClient(app).websocket_connect("/ws/reservations") as websocket:
            notifier.publish(ReservationChange(ChangeKind.INSERTED, reservation_id=5))
            assert websocket.receive_json() == {"event": "inserted", "reservation_id": 5, "count": 1}
    finally:
        app.dependency_overrides.clear()
