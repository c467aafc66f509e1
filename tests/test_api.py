import httpx
import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.db import get_session
from agenda.core.security import create_access_token
from agenda.main import app


@pytest.fixture
async def client(session_maker, seed):
    async def _session():
        async with session_maker() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = _session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        c.headers["Authorization"] = f"Bearer {create_access_token(seed.tenant_id)}"
        yield c
    app.dependency_overrides.clear()


def booking(**overrides) -> dict:
    body = {"patient_name": "Lucia Gomez", "phone": "+54 9 11 5555-0000", "start_at": "2030-01-03T10:00:00-03:00"}
    body.update(overrides)
    return body


async def test_health(client) -> None:
    resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


async def test_requests_without_valid_token_are_rejected(client, seed) -> None:
    params = {"date": "2030-01-03", "location_id": seed.location_id}

    missing = await client.get("/api/v1/slots/available", params=params, headers={"Authorization": ""})
    invalid = await client.get("/api/v1/slots/available", params=params, headers={"Authorization": "Bearer nope"})

    assert missing.status_code == 401
    assert invalid.status_code == 401


async def test_available_slots(client, seed) -> None:
    resp = await client.get("/api/v1/slots/available", params={"date": "2030-01-03", "location_id": seed.location_id})

    assert resp.status_code == 200
    body = resp.json()
    assert body["date"] == "2030-01-03"
    assert body["duration_minutes"] == 30
    assert body["slots"][0] == "09:00" and body["slots"][-1] == "17:30"


async def test_available_slots_errors(client, seed) -> None:
    unknown = await client.get("/api/v1/slots/available", params={"date": "2030-01-03", "location_id": 9999})
    bad_date = await client.get("/api/v1/slots/available", params={"date": "someday", "location_id": seed.location_id})

    assert unknown.status_code == 404
    assert unknown.json()["code"] == "location_not_found"
    assert bad_date.status_code == 422


async def test_suggest_dates(client, seed) -> None:
    resp = await client.get(
        "/api/v1/slots/suggest",
        params={"from_date": "2030-01-03", "location_id": seed.location_id, "limit": 2},
    )

    assert resp.status_code == 200
    days = resp.json()["days"]
    assert [d["date"] for d in days] == ["2030-01-03", "2030-01-04"]
    assert days[0]["slots"] == ["09:00", "09:15", "09:30", "09:45"]


async def test_book_then_conflict(client, seed) -> None:
    created = await client.post("/api/v1/appointments", json=booking())
    again = await client.post("/api/v1/appointments", json=booking(phone="+5491122222222"))

    assert created.status_code == 201
    assert created.json()["status"] == "pending"
    assert created.json()["location_id"] == seed.location_id
    assert again.status_code == 409
    assert again.json()["code"] == "slot_taken"

    slots = await client.get("/api/v1/slots/available", params={"date": "2030-01-03", "location_id": seed.location_id})
    assert "10:00" not in slots.json()["slots"]


async def test_book_outside_hours_returns_diagnostics(client) -> None:
    resp = await client.post("/api/v1/appointments", json=booking(start_at="2030-01-05T10:00:00-03:00"))

    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "outside_business_hours"
    assert body["local_weekday"] == "sat"
    assert body["timezone"] == "America/Argentina/Buenos_Aires"


async def test_book_validation_errors(client, seed) -> None:
    paused = await client.post("/api/v1/appointments", json=booking(service_id=seed.paused_service_id))
    bad_email = await client.post("/api/v1/appointments", json=booking(email="not-an-email"))

    assert paused.status_code == 400
    assert paused.json()["code"] == "paused_service"
    assert bad_email.status_code == 422


async def test_appointment_read_list_and_actions(client) -> None:
    created = (await client.post("/api/v1/appointments", json=booking())).json()

    fetched = await client.get(f"/api/v1/appointments/{created['id']}")
    confirmed = await client.post(f"/api/v1/appointments/{created['id']}/confirm")
    invalid = await client.post(f"/api/v1/appointments/{created['id']}/confirm")
    listed = await client.get("/api/v1/appointments", params={"status": "confirmed"})
    missing = await client.get("/api/v1/appointments/9999")

    assert fetched.status_code == 200 and fetched.json()["id"] == created["id"]
    assert confirmed.json()["status"] == "confirmed"
    assert invalid.status_code == 409
    assert invalid.json()["code"] == "invalid_transition"
    assert [a["id"] for a in listed.json()] == [created["id"]]
    assert missing.status_code == 404


async def test_cancel_frees_the_slot(client) -> None:
    created = (await client.post("/api/v1/appointments", json=booking())).json()
    await client.post(f"/api/v1/appointments/{created['id']}/cancel")

    rebooked = await client.post("/api/v1/appointments", json=booking(phone="+5491122222222"))

    assert rebooked.status_code == 201


async def test_blocks_endpoints(client, seed) -> None:
    created = await client.post(
        "/api/v1/blocks",
        json={
            "location_id": seed.location_id,
            "start_at": "2030-01-03T09:00:00-03:00",
            "end_at": "2030-01-03T12:00:00-03:00",
            "reason": "maintenance",
        },
    )
    assert created.status_code == 201
    block_id = created.json()["id"]

    listed = await client.get(
        "/api/v1/blocks", params={"start": "2030-01-03T00:00:00Z", "end": "2030-01-04T00:00:00Z"}
    )
    slots = await client.get("/api/v1/slots/available", params={"date": "2030-01-03", "location_id": seed.location_id})
    blocked_booking = await client.post("/api/v1/appointments", json=booking())

    assert [b["id"] for b in listed.json()] == [block_id]
    assert slots.json()["slots"][0] == "12:00"
    assert blocked_booking.status_code == 409
    assert blocked_booking.json()["code"] == "slot_blocked"

    deleted = await client.delete(f"/api/v1/blocks/{block_id}")
    deleted_again = await client.delete(f"/api/v1/blocks/{block_id}")
    assert deleted.status_code == 204
    assert deleted_again.status_code == 404


async def test_invalid_block_window(client) -> None:
    resp = await client.post(
        "/api/v1/blocks",
        json={"start_at": "2030-01-03T12:00:00Z", "end_at": "2030-01-03T09:00:00Z"},
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_window"


async def test_tenants_cannot_see_each_other(client, seed) -> None:
    created = (await client.post("/api/v1/appointments", json=booking())).json()
    other = {"Authorization": f"Bearer {create_access_token(seed.other_tenant_id)}"}

    resp = await client.get(f"/api/v1/appointments/{created['id']}", headers=other)

    assert resp.status_code == 404


@pytest.mark.parametrize(
    ("path", "params"),
    [
        ("/api/v1/slots/available", {"date": "9999-12-31"}),
        ("/api/v1/slots/available", {"date": "0001-01-01"}),
        ("/api/v1/slots/suggest", {"from_date": "9999-12-31"}),
        ("/api/v1/slots/suggest", {"from_date": "0001-01-01"}),
    ],
)
async def test_dates_at_the_edge_of_the_calendar(client, seed, path: str, params: dict) -> None:
    resp = await client.get(path, params={**params, "location_id": seed.location_id})

    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_date"


async def test_unreachable_database_answers_503(client, seed, monkeypatch) -> None:
    async def unreachable(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))

    monkeypatch.setattr(AsyncSession, "execute", unreachable)

    resp = await client.get("/api/v1/slots/available", params={"date": "2030-01-03", "location_id": seed.location_id})

    assert resp.status_code == 503
    assert resp.json()["code"] == "storage_unavailable"
