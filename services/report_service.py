import re
from datetime import datetime
from io import BytesIO

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from services.errors import ValidationError

EXPORT_FORMATS = ("csv", "xlsx")

MARKS_SHEET_COLUMNS = [
    "Student Name", "Registration Number", "Intake",
    "CATs", "Course Work", "Final Exam", "Total", "Grade",
]

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def safe_filename(text):
    return re.sub(r"[^a-zA-Z0-9]+", "_", text or "").strip("_") or "export"


def marks_sheet_frame(rows):
    return pd.DataFrame(
        [
            [
                r["full_name"], r["registration_number"], r["intake"],
                r["cats"], r["coursework"], r["final_exam"], r["total"], r["grade"],
            ]
            for r in rows
        ],
        columns=MARKS_SHEET_COLUMNS,
    )


def export_marks_sheet(rows, fmt="csv"):
    """Return (buffer, mimetype, extension) for the marks sheet."""
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"Unsupported export format '{fmt}'")

    df = marks_sheet_frame(rows)
    output = BytesIO()
    if fmt == "xlsx":
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Marks")
        mimetype = XLSX_MIMETYPE
    else:
        output.write(df.to_csv(index=False).encode("utf-8"))
        mimetype = "text/csv"

    output.seek(0)
    return output, mimetype, fmt


def csv_buffer(text):
    output = BytesIO(text.encode("utf-8"))
    output.seek(0)
    return output


def transcript_pdf(student, rows):
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=24, rightMargin=24, topMargin=24, bottomMargin=24)
    styles = getSampleStyleSheet()
    now_text = datetime.now().strftime("%Y-%m-%d %H:%M")

    elements = [
        Paragraph("Academic Transcript", styles["Title"]),
        Paragraph(f"{student.full_name} ({student.registration_number})", styles["Heading2"]),
        Paragraph(
            f"Course: {student.course or '--'} | Session: {student.session or '--'} | Generated: {now_text}",
            styles["Normal"],
        ),
        Spacer(1, 12),
    ]

    table_data = [["Code", "Course Unit", "Year", "Sem", "CATs", "Course Work", "Final Exam", "Total", "Grade"]]
    for r in rows:
        table_data.append([
            r["course_code"],
            r["course_name"],
            r["academic_year"],
            r["semester"],
            "--" if r["cats"] is None else str(r["cats"]),
            "--" if r["coursework"] is None else str(r["coursework"]),
            "--" if r["final_exam"] is None else str(r["final_exam"]),
            str(r["total"]),
            r["grade"],
        ])

    if len(table_data) == 1:
        table_data.append(["--", "No courses", "--", "--", "--", "--", "--", "--", "--"])

    table = Table(table_data, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.black),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (4, 1), (-1, -1), "CENTER"),
    ]))

    elements.append(table)
    doc.build(elements)
    buffer.seek(0)
    return buffer
