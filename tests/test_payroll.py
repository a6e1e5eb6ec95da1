from datetime import date, datetime
from io import StringIO
from types import SimpleNamespace

import pandas as pd
import pytest

from app.payroll.aggregation import (
    DETAIL_COLUMNS,
    SUMMARY_COLUMNS,
    PayrollFilter,
    aggregate_payroll,
    caregiver_stats,
    detail_rows,
    summary_rows,
)
from app.payroll import export

NANNIES = {
    1: SimpleNamespace(id=1, name="Sara"),
    2: SimpleNamespace(id=2, name="Amina"),
}
JUNE = PayrollFilter(from_date=date(2025, 6, 1), to_date=date(2025, 6, 30))


def make_booking(id, day, start, end, nanny_id=1, status="confirmed", **overrides):
    fields = {
        "id": id,
        "nanny_id": nanny_id,
        "nanny_name": NANNIES[nanny_id].name if nanny_id else "",
        "date": day,
        "end_date": None,
        "start_time": start,
        "end_time": end,
        "status": status,
        "clock_in": None,
        "clock_out": None,
        "total_price": 0,
        "client_name": "Jane",
        "hotel": "",
        "children_count": 1,
        "collected_at": None,
        "payment_method": "",
        "notes": "",
        "deleted_at": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def bookings():
    return [
        make_booking(
            1, date(2025, 6, 2), "10h00", "14h00", total_price=40,
            clock_in=datetime(2025, 6, 2, 10, 0), clock_out=datetime(2025, 6, 2, 12, 0),
        ),
        make_booking(2, date(2025, 6, 5), "21h00", "06h00", status="pending", total_price=100),
        make_booking(3, date(2025, 6, 3), "09h00", "12h00", nanny_id=2, status="completed", total_price=36),
        make_booking(4, date(2025, 6, 6), "09h00", "12h00", status="cancelled", total_price=30),
        make_booking(5, date(2025, 6, 7), "09h00", "12h00", total_price=30, deleted_at=datetime(2025, 6, 8)),
        make_booking(6, date(2025, 6, 4), "10h00", "12h00", nanny_id=None, status="pending", total_price=20),
        make_booking(7, date(2025, 7, 1), "10h00", "12h00", total_price=20),
    ]


def test_aggregate_per_caregiver(bookings):
    report = aggregate_payroll(bookings, NANNIES, JUNE)
    assert [row.name for row in report.caregivers] == ["Amina", "Sara", "Unassigned"]

    sara = report.caregivers[1]
    assert sara.total_bookings == 2
    assert sara.completed_bookings == 0
    assert sara.actual_pay_bookings == 1
    assert sara.actual_hours == 2
    assert sara.estimated_hours == 13
    assert sara.best_hours == 11
    assert sara.base_pay == 344
    assert sara.taxi_fees == 100
    assert sara.total_owed == 444
    assert sara.client_revenue == 140
    assert sara.first_booking == date(2025, 6, 2)
    assert sara.last_booking == date(2025, 6, 5)


def test_actual_hours_override_schedule(bookings):
    report = aggregate_payroll(bookings, NANNIES, JUNE)
    first = next(d for d in report.details if d.booking.id == 1)
    assert first.pay_source == "actual"
    assert first.hours_worked == 2
    assert first.estimated_hours == 4
    assert first.total_pay == 63


def test_cancelled_deleted_and_out_of_range_excluded(bookings):
    report = aggregate_payroll(bookings, NANNIES, JUNE)
    assert sorted(d.booking.id for d in report.details) == [1, 2, 3, 6]


def test_grand_total_is_sum_of_rows(bookings):
    report = aggregate_payroll(bookings, NANNIES, JUNE)
    total = report.total
    assert total.total_bookings == sum(r.total_bookings for r in report.caregivers) == 4
    assert total.base_pay == 501
    assert total.taxi_fees == 100
    assert total.total_owed == 601
    assert total.client_revenue == 196


def test_status_and_nanny_filters(bookings):
    completed = aggregate_payroll(bookings, NANNIES, PayrollFilter(date(2025, 6, 1), date(2025, 6, 30), statuses=["completed"]))
    assert [d.booking.id for d in completed.details] == [3]

    sara_only = aggregate_payroll(bookings, NANNIES, PayrollFilter(date(2025, 6, 1), date(2025, 6, 30), nanny_ids=[1]))
    assert [row.name for row in sara_only.caregivers] == ["Sara"]

    # Cancelled stays out even when asked for explicitly
    cancelled = aggregate_payroll(bookings, NANNIES, PayrollFilter(date(2025, 6, 1), date(2025, 6, 30), statuses=["cancelled"]))
    assert cancelled.details == []


def test_open_ended_range_defaults_to_today(bookings):
    report = aggregate_payroll(bookings, NANNIES, PayrollFilter(), today=date(2025, 6, 4))
    assert report.to_date == date(2025, 6, 4)
    assert sorted(d.booking.id for d in report.details) == [1, 3, 6]


def test_summary_rows_columns_and_total(bookings):
    rows = summary_rows(aggregate_payroll(bookings, NANNIES, JUNE))
    assert list(rows[0].keys()) == SUMMARY_COLUMNS
    assert rows[0]["Rate (DH/hr)"] == 31.25
    assert rows[-1]["Nanny Name"] == "TOTAL"
    assert rows[-1]["TOTAL OWED (DH)"] == 601
    assert rows[-1]["First Booking"] == ""


def test_summary_rows_empty_report():
    assert summary_rows(aggregate_payroll([], NANNIES, JUNE)) == []


def test_detail_rows(bookings):
    rows = detail_rows(aggregate_payroll(bookings, NANNIES, JUNE))
    assert list(rows[0].keys()) == DETAIL_COLUMNS
    assert [r["Booking #"] for r in rows] == [3, 1, 2, 6]

    amina = rows[0]
    assert amina["Actual Hours"] == "—"
    assert amina["Clock In"] == "—"
    assert amina["Hotel"] == "—"
    assert amina["Pay Source"] == "estimated"
    assert amina["Status"] == "Completed"
    assert amina["Payment Collected"] == "No"

    sara = rows[1]
    assert sara["Actual Hours"] == 2
    assert sara["Pay Source"] == "actual"
    assert sara["Clock In"].startswith("02/06/2025")
    assert rows[-1]["Nanny"] == "Unassigned"


def test_caregiver_stats():
    history = [
        make_booking(
            1, date(2025, 6, 2), "10h00", "14h00", status="completed",
            clock_in=datetime(2025, 6, 2, 10, 0), clock_out=datetime(2025, 6, 2, 12, 0),
        ),
        make_booking(2, date(2025, 5, 20), "09h00", "12h00", status="completed"),
        make_booking(3, date(2025, 6, 6), "09h00", "12h00", status="confirmed"),
        make_booking(4, date(2025, 6, 20), "09h00", "12h00", status="confirmed"),
        make_booking(5, date(2025, 6, 10), "09h00", "12h00", status="pending"),
        make_booking(6, date(2025, 6, 3), "09h00", "12h00", status="cancelled"),
    ]
    stats = caregiver_stats(history, today=date(2025, 6, 4))
    assert stats == {
        "total_hours_worked": 5.0,
        "completed_bookings": 2,
        "upcoming_bookings": 2,
        "pending_bookings": 1,
        "total_earnings": 157,
        "this_week_bookings": 2,
    }


def test_summary_csv_keeps_column_order(bookings):
    buffer = export.summary_csv(aggregate_payroll(bookings, NANNIES, JUNE))
    df = pd.read_csv(StringIO(buffer.getvalue().decode("utf-8")))
    assert list(df.columns) == SUMMARY_COLUMNS
    assert len(df) == 4


def test_details_csv_without_rows_has_header():
    buffer = export.details_csv(aggregate_payroll([], NANNIES, JUNE))
    assert buffer.getvalue().decode("utf-8").strip() == ",".join(DETAIL_COLUMNS)


def test_generate_pdf(bookings):
    buffer = export.generate_pdf(aggregate_payroll(bookings, NANNIES, JUNE))
    assert buffer.getvalue().startswith(b"%PDF")


@pytest.mark.asyncio
async def test_payroll_service_report(payroll_service, booking_repo):
    booking_repo.add(nanny_id=1, date=date(2025, 6, 2), start_time="10h00", end_time="14h00", status="completed", total_price=40)
    booking_repo.add(nanny_id=1, date=date(2025, 6, 3), start_time="10h00", end_time="14h00", status="cancelled")
    report = await payroll_service.get_report(JUNE)
    assert [row.name for row in report.caregivers] == ["Sara"]
    assert report.total.total_owed == 125


@pytest.mark.asyncio
async def test_payroll_service_rejects_reversed_range(payroll_service):
    from app.bookings.exceptions import InvalidDateRangeException

    with pytest.raises(InvalidDateRangeException):
        await payroll_service.get_report(PayrollFilter(date(2025, 6, 30), date(2025, 6, 1)))
