"""
Report Module

Builds the plain text views of an exam block: the desk allocation grids for
every session and the finalisation report that is saved alongside the data
file when the exam block is finalised.
"""

import os
from datetime import datetime

CELL_WIDTH = 15
RULE = "=" * 60


def _cell(text):
    return f"{text:<{CELL_WIDTH}}"


def desk_grid(session):
    """
    Lays out the session's desks as the venue sees them. Each row of desks
    takes three lines: the desk numbers, the family names and the given
    name with middle initial.
    """
    venue = session.venue
    desks = {d.number: d for d in session.desks}
    lines = []
    for r in range(venue.rows):
        numbers, families, givens = [], [], []
        for c in range(venue.columns):
            number = r * venue.columns + c + 1
            desk = desks.get(number)
            student = desk.student if desk else None
            numbers.append(_cell(f"Desk {number}"))
            families.append(_cell(student.family_name if student else ""))
            givens.append(_cell(student.given_and_init if student else ""))
        lines.append("".join(numbers).rstrip())
        lines.append("".join(families).rstrip())
        lines.append("".join(givens).rstrip())
        lines.append("")
    return "\n".join(lines) + "\n"


def desk_allocations(block):
    lines = ["Venue Allocations:", RULE]
    if not block.sessions:
        lines.append("No sessions allocated.")
        return "\n".join(lines) + "\n"

    for session in block.sessions:
        lines.append(f"Venue: {session.venue.venue_id}, Session Number: {session.session_number}, "
                     f"Day: {session.day}, Start: {session.start:%H:%M}")
        lines.append("")
        lines.append(desk_grid(session))
        lines.append("-" * 60)
    return "\n".join(lines) + "\n"


def finalisation_report(block, generated=None):
    """
    Builds the complete finalisation report: block details, subjects, exams,
    venues and sessions, followed by every session's desk allocations.
    """
    generated = generated or datetime.now()
    lines = [RULE, f"{block.title} (v{round(block.version, 2)})",
             f"Generated: {generated:%Y-%m-%d %H:%M:%S}", RULE, ""]

    lines.append(f"Subjects: {len(block.subjects)}")
    for n, subject in enumerate(block.subjects, 1):
        lines.append(f"{n}. {subject.title.upper()}")
    lines.append("")

    lines.append(f"Exams: {len(block.exams)}")
    for n, exam in enumerate(block.exams, 1):
        lines.append(f"{n}. {exam.short_title} - {exam.date} {exam.time:%H:%M}")
    lines.append("")

    lines.append(f"Venues: {len(block.venues)}")
    for n, venue in enumerate(block.venues, 1):
        kind = "AARA" if venue.aara else "Regular"
        lines.append(f"{n}. {venue.venue_id} ({venue.rows} rows x {venue.columns} columns, "
                     f"{venue.desk_count} desks, {kind})")
    lines.append("")

    lines.append(f"Sessions: {len(block.sessions)}")
    for session in block.sessions:
        seated = sum(1 for d in session.desks if d.student is not None)
        lines.append(f"{session} - {seated} students seated")
        for exam in session.exams:
            count = sum(1 for d in session.desks if d.exam == exam and d.student is not None)
            lines.append(f"  - {exam.short_title} ({count} students)")
    lines.append("")

    lines.append(desk_allocations(block))
    return "\n".join(lines)


def report_filename(now=None):
    now = now or datetime.now()
    return f"ExamBlockReport-{now:%Y-%m-%d_%H-%M-%S}.efr"


def save_finalisation_report(block, directory=None, now=None):
    """
    Writes the finalisation report next to the block's data file, or into
    the given directory, and returns the path written.
    """
    now = now or datetime.now()
    if directory is None:
        directory = os.path.dirname(block.filename) if block.filename else "."
    path = os.path.join(directory or ".", report_filename(now))
    with open(path, "w", encoding="utf-8") as f:
        f.write(finalisation_report(block, now))
    return path
