from io import BytesIO
from typing import Dict, List

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..models.db_models import AttendanceDetail, ScheduleDetail


def _build_styles() -> Dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("att_title", parent=base["Heading1"], fontSize=18, leading=24),
        "h2": ParagraphStyle("att_h2", parent=base["Heading2"], fontSize=13, leading=18),
        "normal": ParagraphStyle("att_normal", parent=base["BodyText"], fontSize=10.5, leading=14),
    }


def render_attendance_pdf(
    schedule: ScheduleDetail, records: List[AttendanceDetail], summary: Dict[str, int]
) -> bytes:
    """Renders the attendance sheet of one schedule as an A4 PDF and returns its bytes."""
    styles = _build_styles()
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"Attendance - {schedule.title}")

    story = [
        Paragraph(f"Attendance Report: {schedule.title}", styles["title"]),
        Paragraph(f"Course: {schedule.course_title}", styles["normal"]),
        Paragraph(f"Instructor: {schedule.instructor_name}", styles["normal"]),
        Paragraph(
            f"Session: {schedule.start_time:%Y-%m-%d %H:%M} to {schedule.end_time:%Y-%m-%d %H:%M} ({schedule.mode.value})",
            styles["normal"],
        ),
        Spacer(1, 10),
        Paragraph("Summary", styles["h2"]),
        Paragraph(
            f"Present: {summary['present']} | Absent: {summary['absent']} | Total: {summary['total']}",
            styles["normal"],
        ),
        Spacer(1, 10),
    ]

    rows = [["Student", "Code", "Status", "Date", "Notes"]]
    for record in records:
        rows.append([
            record.student.user.name,
            record.student.student_code,
            record.status.value.capitalize(),
            record.date.isoformat(),
            Paragraph(record.notes or "", styles["normal"]),
        ])

    table = Table(rows, repeatRows=1, colWidths=[120, 90, 60, 70, 150])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2563EB")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#F3F4F6")]),
    ]))
    story.append(table)

    doc.build(story)
    return buffer.getvalue()
