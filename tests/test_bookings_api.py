from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from app.utils.timezone import utc_now


def booking_json(day, **overrides):
    body = {
        "nanny_id": 1,
        "date": day.isoformat(),
        "start_time": "10h00",
        "end_time": "12h00",
        "client_name": "Jane Doe",
        "client_email": "jane@example.com",
        "hotel": "Riad Atlas",
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_requires_token(client: AsyncClient):
    response = await client.get("/bookings")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, as_user, admin_payload, auth_headers, next_week):
    as_user(admin_payload)
    response = await client.post("/bookings", json=booking_json(next_week), headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["total_price"] == 20
    assert data["status"] == "pending"
    assert data["created_by"] == "admin"
    assert data["urgency"] == "normal"
    assert data["scheduled_hours"] == 2
    assert data["nanny_pay"] == {"source": "estimated", "base_pay": 63, "taxi_fee": 0, "total": 63, "hours": 2.0}


@pytest.mark.asyncio
async def test_parent_booking_is_always_pending(client: AsyncClient, as_user, parent_payload, auth_headers, next_week):
    as_user(parent_payload)
    response = await client.post(
        "/bookings", json=booking_json(next_week, status="confirmed"), headers=auth_headers
    )
    assert response.status_code == 201
    assert response.json()["status"] == "pending"
    assert response.json()["created_by"] == "parent"


@pytest.mark.asyncio
async def test_create_rejects_wrong_price(client: AsyncClient, as_user, admin_payload, auth_headers, next_week):
    as_user(admin_payload)
    response = await client.post(
        "/bookings", json=booking_json(next_week, total_price=25), headers=auth_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_conflict_lists_free_nannies(
    client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo, next_week
):
    booking_repo.add(nanny_id=1, date=next_week, start_time="11h00", end_time="13h00", status="confirmed")
    as_user(admin_payload)

    response = await client.post("/bookings", json=booking_json(next_week), headers=auth_headers)

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["conflict_count"] == 1
    assert [n["name"] for n in detail["available_caregivers"]] == ["Amina"]
    assert detail["conflicts"][0]["date"] == next_week.isoformat()


@pytest.mark.asyncio
async def test_parent_cannot_confirm(client: AsyncClient, as_user, parent_payload, auth_headers, booking_repo, next_week):
    booking = booking_repo.add(nanny_id=1, date=next_week, start_time="10h00", end_time="12h00", status="pending")
    as_user(parent_payload)

    response = await client.put(f"/bookings/{booking.id}/confirm", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_confirm_publishes_notifications(
    client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo, publisher, next_week
):
    booking = booking_repo.add(
        nanny_id=1, date=next_week, start_time="10h00", end_time="12h00",
        status="pending", client_email="jane@example.com",
    )
    as_user(admin_payload)

    response = await client.put(f"/bookings/{booking.id}/confirm", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    assert publisher.publish.call_count == 2


@pytest.mark.asyncio
async def test_confirm_twice_is_rejected(client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo, next_week):
    booking = booking_repo.add(nanny_id=1, date=next_week, start_time="10h00", end_time="12h00", status="confirmed")
    as_user(admin_payload)

    response = await client.put(f"/bookings/{booking.id}/confirm", headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_unassigned_booking_urgency(client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo, next_week):
    booking = booking_repo.add(
        date=next_week, start_time="10h00", end_time="12h00",
        status="pending", created_at=utc_now() - timedelta(hours=4),
    )
    as_user(admin_payload)

    response = await client.get(f"/bookings/{booking.id}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["urgency"] == "critical"


@pytest.mark.asyncio
async def test_get_deleted_booking_is_not_found(
    client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo, next_week
):
    booking = booking_repo.add(
        nanny_id=1, date=next_week, start_time="10h00", end_time="12h00",
        status="pending", deleted_at=utc_now(),
    )
    as_user(admin_payload)

    response = await client.get(f"/bookings/{booking.id}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_nanny_only_lists_own_bookings(
    client: AsyncClient, as_user, nanny_payload, auth_headers, booking_repo, next_week
):
    own = booking_repo.add(nanny_id=1, date=next_week, start_time="10h00", end_time="12h00", status="confirmed")
    booking_repo.add(nanny_id=2, date=next_week, start_time="10h00", end_time="12h00", status="confirmed")
    as_user(nanny_payload)

    response = await client.get("/bookings", params={"nanny_id": 2}, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["bookings"][0]["id"] == own.id


@pytest.mark.asyncio
async def test_nanny_cannot_read_other_booking(
    client: AsyncClient, as_user, nanny_payload, auth_headers, booking_repo, next_week
):
    other = booking_repo.add(nanny_id=2, date=next_week, start_time="10h00", end_time="12h00", status="confirmed")
    as_user(nanny_payload)

    response = await client.get(f"/bookings/{other.id}", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_multi_date(client: AsyncClient, as_user, admin_payload, auth_headers, next_week):
    as_user(admin_payload)
    body = booking_json(next_week)
    del body["date"]
    body["dates"] = [next_week.isoformat(), (next_week + timedelta(days=3)).isoformat()]

    response = await client.post("/bookings/multi-date", json=body, headers=auth_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["requested"] == 2
    assert data["created"] == 2
    assert data["partial"] is False
    assert [b["total_price"] for b in data["bookings"]] == [20, 20]


@pytest.mark.asyncio
async def test_recurring_stops_at_conflict(
    client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo, next_week
):
    booking_repo.add(
        nanny_id=1, date=next_week + timedelta(days=7), start_time="09h00", end_time="11h00", status="confirmed"
    )
    as_user(admin_payload)
    body = booking_json(next_week, cadence="weekly", repeat_count=3)

    response = await client.post("/bookings/recurring", json=body, headers=auth_headers)

    assert response.status_code == 207
    data = response.json()
    assert data["requested"] == 3
    assert data["created"] == 1
    assert data["partial"] is True
    assert data["error"]


@pytest.mark.asyncio
async def test_conflict_check(client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo, next_week):
    booking_repo.add(nanny_id=1, date=next_week, start_time="10h00", end_time="12h00", status="confirmed")
    as_user(admin_payload)

    response = await client.post(
        "/bookings/conflict-check",
        json={"nanny_id": 1, "date": next_week.isoformat(), "start_time": "12h00", "end_time": "14h00"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["has_conflict"] is False


@pytest.mark.asyncio
async def test_available_nannies(client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo, next_week):
    booking_repo.add(nanny_id=2, date=next_week, start_time="09h00", end_time="17h00", status="confirmed")
    as_user(admin_payload)

    response = await client.get(
        "/bookings/available-nannies",
        params={"date": next_week.isoformat(), "start_time": "10h00", "end_time": "12h00"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert [n["name"] for n in response.json()] == ["Sara"]


@pytest.mark.asyncio
async def test_cancel_by_parent(client: AsyncClient, as_user, parent_payload, auth_headers, booking_repo, next_week):
    booking = booking_repo.add(nanny_id=1, date=next_week, start_time="10h00", end_time="12h00", status="confirmed")
    as_user(parent_payload)

    response = await client.put(
        f"/bookings/{booking.id}/cancel",
        json={"reason": "Plans changed", "cancelled_by": "admin"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["cancelled_by"] == "parent"
    assert data["nanny_pay"]["total"] == 0


@pytest.mark.asyncio
async def test_delete_and_restore(client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo, next_week):
    booking = booking_repo.add(nanny_id=1, date=next_week, start_time="10h00", end_time="12h00", status="pending")
    as_user(admin_payload)

    deleted = await client.delete(f"/bookings/{booking.id}", headers=auth_headers)
    assert deleted.status_code == 200
    assert deleted.json()["deleted_at"] is not None

    restored = await client.put(f"/bookings/{booking.id}/restore", headers=auth_headers)
    assert restored.status_code == 200
    assert restored.json()["deleted_at"] is None


@pytest.mark.asyncio
async def test_extension_options(client: AsyncClient, as_user, parent_payload, auth_headers, booking_repo, next_week):
    booking = booking_repo.add(
        nanny_id=1, date=next_week, start_time="10h00", end_time="12h00", status="confirmed", total_price=20
    )
    as_user(parent_payload)

    response = await client.get(f"/bookings/{booking.id}/extension-options", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["current_end_time"] == "12h00"
    first = data["options"][0]
    assert first["end_time"] == "12h30"
    assert first["total_price"] == 25
    assert first["additional_cost"] == 5


@pytest.mark.asyncio
async def test_payroll_summary(client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo):
    booking_repo.add(nanny_id=1, date=date(2025, 6, 2), start_time="10h00", end_time="14h00", status="completed", total_price=40)
    booking_repo.add(nanny_id=2, date=date(2025, 6, 3), start_time="21h00", end_time="23h00", status="confirmed", total_price=34)
    as_user(admin_payload)

    response = await client.get(
        "/payroll/summary",
        params={"from_date": "2025-06-01", "to_date": "2025-06-30", "include_details": "true"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert [c["name"] for c in data["caregivers"]] == ["Amina", "Sara"]
    assert data["total"]["total_owed"] == 125 + 63 + 100
    assert len(data["details"]) == 2


@pytest.mark.asyncio
async def test_payroll_reversed_range(client: AsyncClient, as_user, admin_payload, auth_headers):
    as_user(admin_payload)
    response = await client.get(
        "/payroll/summary",
        params={"from_date": "2025-06-30", "to_date": "2025-06-01"},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_payroll_csv_download(client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo):
    booking_repo.add(nanny_id=1, date=date(2025, 6, 2), start_time="10h00", end_time="14h00", status="completed")
    as_user(admin_payload)

    response = await client.get(
        "/payroll/download",
        params={"from_date": "2025-06-01", "to_date": "2025-06-30", "format": "csv"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "nanny-payroll-summary-2025-06-01-to-2025-06-30.csv" in response.headers["content-disposition"]
    assert response.text.splitlines()[0].startswith("Nanny Name,")


@pytest.mark.asyncio
async def test_nanny_cannot_export_payroll(client: AsyncClient, as_user, nanny_payload, auth_headers):
    as_user(nanny_payload)
    response = await client.get("/payroll/download", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_nanny_stats_own_only(client: AsyncClient, as_user, nanny_payload, auth_headers, booking_repo):
    booking_repo.add(nanny_id=1, date=date(2025, 6, 2), start_time="10h00", end_time="14h00", status="completed")
    as_user(nanny_payload)

    own = await client.get("/payroll/nannies/1/stats", headers=auth_headers)
    assert own.status_code == 200
    assert own.json()["completed_bookings"] == 1
    assert own.json()["total_earnings"] == 125

    other = await client.get("/payroll/nannies/2/stats", headers=auth_headers)
    assert other.status_code == 403


@pytest.mark.asyncio
async def test_conflict_check_reports_window(client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo, next_week):
    existing = booking_repo.add(nanny_id=1, date=next_week, start_time="10h00", end_time="12h00", status="confirmed")
    as_user(admin_payload)

    response = await client.post(
        "/bookings/conflict-check",
        json={"nanny_id": 1, "date": next_week.isoformat(), "start_time": "11h00", "end_time": "13h00"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["has_conflict"] is True
    assert data["conflicts"] == [
        {"booking_id": existing.id, "date": next_week.isoformat(), "start_time": "10h00", "end_time": "12h00"}
    ]


@pytest.mark.asyncio
async def test_reassign_conflict_is_structured(
    client: AsyncClient, as_user, admin_payload, auth_headers, booking_repo, next_week
):
    booking_repo.add(nanny_id=2, date=next_week, start_time="10h00", end_time="12h00", status="confirmed")
    booking = booking_repo.add(nanny_id=1, date=next_week, start_time="11h00", end_time="13h00", status="confirmed")
    as_user(admin_payload)

    response = await client.put(f"/bookings/{booking.id}/reassign", json={"nanny_id": 2}, headers=auth_headers)

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["conflicts"][0]["date"] == next_week.isoformat()


@pytest.mark.asyncio
async def test_nanny_cannot_list_extensions_of_other_booking(
    client: AsyncClient, as_user, nanny_payload, auth_headers, booking_repo, next_week
):
    other = booking_repo.add(nanny_id=2, date=next_week, start_time="10h00", end_time="12h00", status="confirmed")
    as_user(nanny_payload)

    response = await client.get(f"/bookings/{other.id}/extension-options", headers=auth_headers)
    assert response.status_code == 403
