"""
PDF Export Module

This module provides functionality for exporting desk allocations to PDF format.
It utilises the ReportLab library to generate documents with tables and styling,
supporting the full seating list, filtered seat slips for individual students,
and desk grids laid out the way each venue is set up.
"""

import os
from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, PageBreak
from reportlab.lib import colors
from reportlab.lib.styles import getSampleStyleSheet

HEADER_STYLE = [
    ("BACKGROUND", (0,0), (-1,0), colors.HexColor("#4F81BD")),
    ("TEXTCOLOR", (0,0), (-1,0), colors.whitesmoke),
    ("ALIGN", (0,0), (-1,-1), "CENTER"),
    ("FONTNAME", (0,0), (-1,0), "Helvetica-Bold"),
    ("GRID", (0,0), (-1,-1), 0.5, colors.grey),
    ("BACKGROUND", (0,1), (-1,-1), colors.whitesmoke),
    ("ROWBACKGROUNDS", (0,1), (-1,-1), [colors.whitesmoke, colors.lightgrey])
]


def seating_rows(block, filter_student=None):
    """
    Flattens every seated desk into table rows, optionally only those of one student.
    """
    rows = []
    for session in block.sessions:
        for desk in session.desks:
            if desk.student is None:
                continue
            # Skip desks not belonging to the filtered student
            if filter_student and desk.student.lui != str(filter_student):
                continue
            rows.append([
                desk.exam.short_title if desk.exam else "",
                session.venue.venue_id,
                str(session.day),
                session.start.strftime("%H:%M"),
                str(desk.number),
                f"{desk.student.family_name}, {desk.student.given_and_init}",
                desk.student.lui,
            ])
    return rows


def export_to_pdf(block, filename="seating.pdf", filter_student=None):
    """
    Exports the seated desks of the exam block to a PDF file with a formatted table.
    Optionally filters the list to show only the desks of a specific student.
    """
    try:
        # Create a landscape A4 document
        doc = SimpleDocTemplate(filename, pagesize=landscape(A4))
        elements = []
        styles = getSampleStyleSheet()

        # Set the title, appending student name if filtering
        title = f"Desk Allocations - {block.title}"
        if filter_student:
            student = next((s for s in block.students if s.lui == str(filter_student)), None)
            title += f" - {student.full_name if student else filter_student}"
        elements.append(Paragraph(title, styles['Title']))
        elements.append(Spacer(1, 12))

        data = [["Exam", "Venue", "Date", "Start", "Desk", "Student", "LUI"]]
        data.extend(seating_rows(block, filter_student))

        # Generate table only if there is data beyond headers
        if len(data) > 1:
            table = Table(data, repeatRows=1)
            table.setStyle(TableStyle(HEADER_STYLE))
            elements.append(table)
        else:
            elements.append(Paragraph("No desks allocated to this student.", styles['Normal']))

        doc.build(elements)
    except Exception as e:
        raise Exception(f"Failed to create PDF '{filename}': {str(e)}") from e


def export_desk_grids(block, filename="desk_grids.pdf"):
    """
    Exports one page per session showing the desks in venue rows and columns.
    """
    try:
        doc = SimpleDocTemplate(filename, pagesize=landscape(A4))
        elements = []
        styles = getSampleStyleSheet()

        for i, session in enumerate(block.sessions):
            if i:
                elements.append(PageBreak())
            elements.append(Paragraph(f"{session.venue.venue_id} - Session {session.session_number}",
                                      styles['Title']))
            elements.append(Paragraph(f"{session.day} {session.start:%H:%M}", styles['Normal']))
            elements.append(Spacer(1, 12))

            venue = session.venue
            desks = {d.number: d for d in session.desks}
            grid = []
            for r in range(venue.rows):
                row = []
                for c in range(venue.columns):
                    number = r * venue.columns + c + 1
                    desk = desks.get(number)
                    if desk and desk.student:
                        row.append(f"{number}\n{desk.student.family_name}\n{desk.student.given_and_init}")
                    else:
                        row.append(str(number))
                grid.append(row)

            table = Table(grid)
            table.setStyle(TableStyle([
                ("ALIGN", (0,0), (-1,-1), "CENTER"),
                ("VALIGN", (0,0), (-1,-1), "MIDDLE"),
                ("GRID", (0,0), (-1,-1), 0.5, colors.grey),
                ("FONTSIZE", (0,0), (-1,-1), 8),
            ]))
            elements.append(table)

        if not elements:
            elements.append(Paragraph("No sessions allocated.", styles['Normal']))
        doc.build(elements)
    except Exception as e:
        raise Exception(f"Failed to create PDF '{filename}': {str(e)}") from e


def export_student_slips(block, folder):
    """
    Writes one seat slip PDF per seated student into the folder.
    Returns (created_count, errors) so the caller can report partial failures.
    """
    seated = []
    for session in block.sessions:
        for desk in session.desks:
            if desk.student is not None and desk.student not in seated:
                seated.append(desk.student)

    created_count = 0
    errors = []
    for student in seated:
        filename = os.path.join(folder, f"{student.lui}_{student.full_name.replace(' ', '_')}.pdf")
        try:
            export_to_pdf(block, filename, filter_student=student.lui)
            created_count += 1
        except Exception as e:
            errors.append(f"  {student.lui}: {str(e)}")
    return created_count, errors
