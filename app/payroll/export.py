"""Payroll export to CSV (pandas) and PDF (reportlab)"""
from io import BytesIO
from typing import Dict, List

import pandas as pd
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

from app.payroll.aggregation import DETAIL_COLUMNS, SUMMARY_COLUMNS, PayrollReport, detail_rows, summary_rows


def generate_csv(rows: List[Dict], columns: List[str]) -> BytesIO:
    """CSV with a fixed column order, even when there are no rows"""
    df = pd.DataFrame(rows, columns=columns)
    buffer = BytesIO()
    df.to_csv(buffer, index=False, encoding="utf-8")
    buffer.seek(0)
    return buffer


def summary_csv(report: PayrollReport) -> BytesIO:
    return generate_csv(summary_rows(report), SUMMARY_COLUMNS)


def details_csv(report: PayrollReport) -> BytesIO:
    return generate_csv(detail_rows(report), DETAIL_COLUMNS)


def _range_label(report: PayrollReport) -> str:
    if report.from_date:
        return f"{report.from_date} to {report.to_date}"
    return f"all until {report.to_date}"


def generate_pdf(report: PayrollReport, title: str = "Nanny Payroll") -> BytesIO:
    """Summary per caregiver followed by one block per booking"""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=landscape(A4))
    width, height = landscape(A4)
    line_x1 = 40
    line_x2 = width - 40

    c.setFont("Helvetica-Bold", 16)
    c.drawString(line_x1, height - 50, f"{title} - {_range_label(report)}")

    y = height - 80
    c.setFont("Helvetica-Bold", 12)
    c.drawString(line_x1, y, "Payroll Summary")
    y -= 20
    c.setFont("Helvetica", 9)

    for row in summary_rows(report):
        if y < 80:
            c.showPage()
            y = height - 50
            c.setFont("Helvetica", 9)
        c.drawString(line_x1, y, (
            f"{row['Nanny Name']}: {row['Total Bookings']} bookings "
            f"({row['Completed Bookings']} completed), "
            f"{row['Actual Hours Worked']}h actual / {row['Estimated Total Hours']}h estimated"
        ))
        c.drawString(line_x1, y - 13, (
            f"Base {row['Base Pay (DH)']} DH + taxi {row['Taxi Fees (DH)']} DH = "
            f"{row['TOTAL OWED (DH)']} DH owed. Client revenue {row['Client Revenue (€)']} EUR"
        ))
        c.setLineWidth(0.5)
        c.line(line_x1, y - 20, line_x2, y - 20)
        y -= 34

    c.showPage()
    y = height - 50
    c.setFont("Helvetica-Bold", 12)
    c.drawString(line_x1, y, "Booking Details")
    y -= 20
    c.setFont("Helvetica", 9)

    for row in detail_rows(report):
        if y < 80:
            c.showPage()
            y = height - 50
            c.setFont("Helvetica", 9)
        c.drawString(line_x1, y, (
            f"#{row['Booking #']} {row['Date']} {row['Nanny']} / {row['Parent Name']} "
            f"({row['Hotel']}), {row['Start Time']}-{row['End Time']}, {row['Status']}"
        ))
        c.drawString(line_x1, y - 13, (
            f"Clock {row['Clock In']} -> {row['Clock Out']}, {row['Hours Worked']}h ({row['Pay Source']}): "
            f"{row['Base Pay (DH)']} + {row['Taxi Fee (DH)']} = {row['Total Nanny Pay (DH)']} DH"
        ))
        c.setLineWidth(0.5)
        c.line(line_x1, y - 20, line_x2, y - 20)
        y -= 34

    c.save()
    buffer.seek(0)
    return buffer
