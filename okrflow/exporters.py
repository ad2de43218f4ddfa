"""
OKR report rows and their CSV, PDF and XLSX renderings.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from openpyxl import Workbook
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from okrflow.db import ObjectiveRow, UserRow
from okrflow.org_settings import merge_org_settings
from okrflow.serializers import objective_progress_value, kr_progress_value
from okrflow.types import ExportFormat, Role

EXPORT_LIMIT = 300

CSV_HEADER = ["Objective", "Owner", "Team", "Cycle", "Status", "Progress", "KR Count"]

CONTENT_TYPES = {
    ExportFormat.CSV: "text/csv",
    ExportFormat.PDF: "application/pdf",
    ExportFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


@dataclass
class ExportMeta:
    org_name: str = "Organization"
    settings: dict = field(default_factory=lambda: merge_org_settings(None))
    timezone: str = "UTC"
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def header_line(self) -> str:
        return (
            f"Fiscal start: {self.settings['fiscal_year_start_month']} | "
            f"Locale: {self.settings['number_locale']} | TZ: {self.timezone}"
        )

    def generated_line(self) -> str:
        return f"Generated: {self.generated_at.strftime('%d %b %Y, %H:%M')}"


def parse_export_format(value: Optional[str]) -> Optional[ExportFormat]:
    value = (value or "csv").lower()
    if value == "excel":
        return ExportFormat.XLSX
    try:
        return ExportFormat(value)
    except ValueError:
        return None


def get_objectives_for_export(
    session: Session, *, user_id: str, role: Role, scope: str, org_id: str
) -> List[dict]:
    """Newest objectives of the org, narrowed to the caller's own for personal scope or employees."""
    stmt = (
        select(ObjectiveRow)
        .join(UserRow, ObjectiveRow.owner_id == UserRow.id)
        .where(UserRow.org_id == org_id)
        .options(
            selectinload(ObjectiveRow.owner),
            selectinload(ObjectiveRow.team),
            selectinload(ObjectiveRow.key_results),
        )
        .order_by(ObjectiveRow.created_at.desc())
        .limit(EXPORT_LIMIT)
    )
    if scope == "personal" or role == Role.EMPLOYEE:
        stmt = stmt.where(ObjectiveRow.owner_id == user_id)

    rows = []
    for objective in session.execute(stmt).scalars():
        rows.append(
            {
                "id": objective.id,
                "title": objective.title,
                "owner": objective.owner.name or objective.owner.email,
                "team": objective.team.name if objective.team else None,
                "cycle": objective.cycle,
                "status": objective.status,
                "progress": objective_progress_value(objective),
                "key_results": [
                    {"title": kr.title, "weight": kr.weight, "progress": kr_progress_value(kr)}
                    for kr in objective.key_results
                ],
            }
        )
    return rows


def _percent(value: float) -> str:
    return f"{round(value or 0)}%"


def build_csv(rows: List[dict]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow(
            [
                row["title"],
                row["owner"],
                row["team"] or "",
                row["cycle"],
                row["status"],
                row["progress"] if row["progress"] is not None else "",
                len(row["key_results"]),
            ]
        )
    return buffer.getvalue().encode("utf-8")


def build_pdf(rows: List[dict], meta: Optional[ExportMeta] = None) -> bytes:
    meta = meta or ExportMeta()
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    top = height - 50
    bottom = 60

    c.setTitle(f"{meta.org_name} OKR Report")
    c.setFont("Helvetica-Bold", 14)
    c.drawString(40, top, f"{meta.org_name} — OKR Report")
    c.setFont("Helvetica", 10)
    c.drawString(40, top - 18, meta.header_line())
    c.drawString(40, top - 32, meta.generated_line())
    y = top - 56

    for index, row in enumerate(rows, start=1):
        lines = [
            (40, f"{index}. {row['title']}"),
            (40, f"Owner: {row['owner']} | Team: {row['team'] or 'N/A'} | Cycle: {row['cycle']}"),
            (40, f"Status: {row['status']} | Progress: {_percent(row['progress'])}"),
            (40, "Key Results:"),
        ]
        lines.extend(
            (52, f"- {kr['title']} ({kr['weight']}%): {_percent(kr['progress'])}")
            for kr in row["key_results"]
        )
        for x, text in lines:
            if y < bottom:
                c.showPage()
                c.setFont("Helvetica", 10)
                y = top
            c.drawString(x, y, text)
            y -= 14
        y -= 8

    c.showPage()
    c.save()
    return buffer.getvalue()


def build_excel(rows: List[dict], meta: Optional[ExportMeta] = None) -> bytes:
    meta = meta or ExportMeta()
    wb = Workbook()
    ws = wb.active
    ws.title = "OKRs"
    ws.append([f"Org: {meta.org_name}"])
    ws.append(
        [
            f"Fiscal start: {meta.settings['fiscal_year_start_month']}",
            f"Locale: {meta.settings['number_locale']}",
            f"TZ: {meta.timezone}",
            meta.generated_line(),
        ]
    )
    ws.append([])
    ws.append(["Objective", "Owner", "Team", "Cycle", "Status", "Progress", "KeyResults"])
    for row in rows:
        ws.append(
            [
                row["title"],
                row["owner"],
                row["team"] or "",
                row["cycle"],
                row["status"],
                _percent(row["progress"]),
                "; ".join(
                    f"{kr['title']} ({kr['weight']}% | {_percent(kr['progress'])})"
                    for kr in row["key_results"]
                ),
            ]
        )
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def render_export(
    fmt: ExportFormat, rows: List[dict], meta: Optional[ExportMeta] = None
) -> Tuple[bytes, str, str]:
    """Rendered bytes, content type and ``okr-report.<ext>`` filename."""
    if fmt == ExportFormat.PDF:
        body = build_pdf(rows, meta)
    elif fmt == ExportFormat.XLSX:
        body = build_excel(rows, meta)
    else:
        body = build_csv(rows)
    return body, CONTENT_TYPES[fmt], f"okr-report.{fmt.value}"
