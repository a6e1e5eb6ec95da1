from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.postgres import get_db
from app.payroll import export
from app.payroll.aggregation import CaregiverPayroll, PayrollFilter, PayrollReport
from app.payroll.schemas import (
    CaregiverPayrollItem,
    NannyStatsResponse,
    PayrollDetailItem,
    PayrollSummaryResponse,
)
from app.payroll.service import PayrollService
from app.auth.middleware import JWTPayload, verify_token, check_permission


def get_payroll_service(db: AsyncSession = Depends(get_db)) -> PayrollService:
    """Dependency to get PayrollService"""
    return PayrollService(db)


router = APIRouter(
    prefix="/payroll",
    tags=["payroll"],
)


def _filter(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    nanny_ids: Optional[List[int]] = Query(None),
    statuses: Optional[List[str]] = Query(None),
) -> PayrollFilter:
    return PayrollFilter(from_date=from_date, to_date=to_date, nanny_ids=nanny_ids, statuses=statuses)


def _caregiver_item(row: CaregiverPayroll) -> CaregiverPayrollItem:
    item = CaregiverPayrollItem.model_validate(row)
    return item.model_copy(update={
        "actual_hours": round(row.actual_hours, 2),
        "estimated_hours": round(row.estimated_hours, 2),
        "best_hours": round(row.best_hours, 2),
        "client_revenue": round(row.client_revenue, 2),
    })


def to_summary_response(report: PayrollReport, include_details: bool = False) -> PayrollSummaryResponse:
    details = []
    if include_details:
        details = [
            PayrollDetailItem(
                booking_id=d.booking.id,
                date=d.booking.date,
                nanny_name=d.nanny_name,
                status=d.booking.status,
                pay_source=d.pay_source,
                actual_hours=round(d.actual_hours, 2) if d.actual_hours is not None else None,
                estimated_hours=round(d.estimated_hours, 2),
                hours_worked=round(d.hours_worked, 2),
                base_pay=d.base_pay,
                taxi_fee=d.taxi_fee,
                total_pay=d.total_pay,
                client_price=d.booking.total_price or 0,
            )
            for d in report.details
        ]
    return PayrollSummaryResponse(
        from_date=report.from_date,
        to_date=report.to_date,
        caregivers=[_caregiver_item(row) for row in report.caregivers],
        total=_caregiver_item(report.total),
        details=details,
    )


@router.get("/summary", response_model=PayrollSummaryResponse)
async def get_payroll_summary(
    include_details: bool = Query(False),
    payroll_filter: PayrollFilter = Depends(_filter),
    service: PayrollService = Depends(get_payroll_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Per-nanny payroll totals for a date range (until today by default).

    Required permission: payroll:read
    """
    check_permission(jwt_payload, "payroll:read")
    report = await service.get_report(payroll_filter)
    return to_summary_response(report, include_details)


@router.get("/download")
async def download_payroll(
    format: str = Query("csv", enum=["csv", "pdf"]),
    sheet: str = Query("summary", enum=["summary", "details"]),
    payroll_filter: PayrollFilter = Depends(_filter),
    service: PayrollService = Depends(get_payroll_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Download the payroll as CSV (one sheet per file) or PDF (both sections).

    Required permission: payroll:export
    """
    check_permission(jwt_payload, "payroll:export")
    report = await service.get_report(payroll_filter)
    label = f"{report.from_date}-to-{report.to_date}" if report.from_date else f"all-until-{report.to_date}"

    if format == "csv":
        buffer = export.summary_csv(report) if sheet == "summary" else export.details_csv(report)
        return StreamingResponse(buffer, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename=nanny-payroll-{sheet}-{label}.csv"})
    elif format == "pdf":
        buffer = export.generate_pdf(report)
        return StreamingResponse(buffer, media_type="application/pdf", headers={"Content-Disposition": f"attachment; filename=nanny-payroll-{label}.pdf"})
    else:
        raise HTTPException(status_code=400, detail="Invalid format")


@router.get("/nannies/{nanny_id}/stats", response_model=NannyStatsResponse)
async def get_nanny_stats(
    nanny_id: int,
    service: PayrollService = Depends(get_payroll_service),
    jwt_payload: JWTPayload = Depends(verify_token),
):
    """
    Dashboard figures for a nanny. Nannies only see their own.

    Required permission: payroll:self or payroll:read
    """
    if "payroll:read" not in jwt_payload.permissions:
        check_permission(jwt_payload, "payroll:self")
        if jwt_payload.nanny_id != nanny_id:
            raise HTTPException(status_code=403, detail="You can only view your own stats")
    stats = await service.get_nanny_stats(nanny_id)
    return NannyStatsResponse(nanny_id=nanny_id, **stats)
