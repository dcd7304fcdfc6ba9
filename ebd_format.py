"""
Exam Block Data File Module

This module reads and writes a complete exam block (subjects, units, students,
exams, rooms, venues and sessions, including any finalised desk allocations)
to the line-oriented .ebd text format. Each section starts with a
"[Name: count]" header followed by numbered items, and the whole block sits
between "[Begin]" and "[End]" markers.
"""

import re
from datetime import date, datetime
from models import (ExamBlock, Subject, Unit, Student, Exam, ExamType,
                    Room, Venue, Session, Desk)

SECTION_RE = re.compile(r"^\[(\w+): (\d+)\]$")
DESK_RE = re.compile(r"^Desk: (\d+) (.*?) - LUI: (\S+)(?: - Exam: (.*))?$")


class BlockFileError(Exception):
    """Raised when an .ebd file does not follow the expected layout."""

    def __init__(self, message, line_number=None):
        self.line_number = line_number
        if line_number is not None:
            message = f"Line {line_number}: {message}"
        super().__init__(message)


class _LineReader:
    """Hands out the non-blank lines of a stream, remembering where it is."""

    def __init__(self, stream):
        self._lines = [line.strip() for line in stream]
        self._pos = 0
        self.line_number = 0

    def _skip_blank(self):
        while self._pos < len(self._lines) and not self._lines[self._pos]:
            self._pos += 1

    def peek(self):
        self._skip_blank()
        if self._pos < len(self._lines):
            return self._lines[self._pos]
        return None

    def next(self, what):
        self._skip_blank()
        if self._pos >= len(self._lines):
            raise BlockFileError(f"Unexpected end of file reading {what}", self.line_number)
        line = self._lines[self._pos]
        self._pos += 1
        self.line_number = self._pos
        return line

    def error(self, message):
        return BlockFileError(message, self.line_number)


def _numbered(reader, n, what):
    """Reads an "n. text" item header and returns the text."""
    line = reader.next(f"{what} #{n}")
    parts = line.split(". ", 1)
    if len(parts) != 2 or not parts[0].isdigit():
        raise reader.error(f"Invalid {what} header: {line}")
    if int(parts[0]) != n:
        raise reader.error(f"{what} index out of sync! Expected {n} but got {parts[0]}")
    return parts[1].strip()


def _fields(reader, line):
    """Splits a "Key: value, Key: value" line into a dict."""
    result = {}
    for item in line.split(", "):
        key, sep, value = item.partition(":")
        if not sep:
            raise reader.error(f"Expected 'Key: value' but found '{item}'")
        result[key.strip()] = value.strip()
    return result


def _require(reader, fields, key):
    if key not in fields:
        raise reader.error(f"Missing '{key}'")
    return fields[key]


def _to_int(reader, value, what):
    try:
        return int(value)
    except ValueError:
        raise reader.error(f"Invalid {what}: {value}") from None


def _to_bool(reader, value):
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise reader.error(f"Invalid boolean: {value}")


def _to_date(reader, value):
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise reader.error(f"Invalid date: {value}") from None


def _to_time(reader, value):
    try:
        return datetime.strptime(value, "%H:%M").time()
    except ValueError:
        raise reader.error(f"Invalid time: {value}") from None


def _unquote(text):
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def _lookup(reader, finder, key):
    try:
        return finder(key)
    except ValueError as e:
        raise reader.error(str(e)) from None


def _read_subjects(reader, block, count):
    for n in range(1, count + 1):
        _numbered(reader, n, "Subject")
        title = reader.next("Subject title")
        description = _unquote(reader.next("Subject description"))
        block.subjects.append(Subject(title, description))


def _read_units(reader, block, count):
    for n in range(1, count + 1):
        _numbered(reader, n, "Unit")
        line = reader.next("Unit details")
        match = re.match(r"^(.*), Unit (\S): (.*)$", line)
        if not match:
            raise reader.error(f"Invalid unit format: {line}")
        subject = _lookup(reader, block.subject, match.group(1))
        description = _unquote(reader.next("Unit description"))
        block.units.append(Unit(subject, match.group(2), match.group(3), description))


def _read_students(reader, block, count):
    for n in range(1, count + 1):
        header = _numbered(reader, n, "Student")
        lui = header.split(" ", 1)[0]
        fields = _fields(reader, reader.next("Student details"))
        dob = _require(reader, fields, "DOB")
        student = Student(
            lui=lui,
            given_names=fields.get("Given", ""),
            family_name=_require(reader, fields, "Family"),
            aara=_to_bool(reader, _require(reader, fields, "AARA")),
            house=fields.get("House", ""),
            dob=_to_date(reader, dob) if dob else None,
        )
        line = reader.next("Student subjects")
        if not line.startswith("Subjects:"):
            raise reader.error(f"Expected 'Subjects:' but found '{line}'")
        for title in line[len("Subjects:"):].split(";"):
            if title.strip():
                student.subjects.append(_lookup(reader, block.subject, title.strip()))
        block.students.append(student)


def _read_exams(reader, block, count):
    for n in range(1, count + 1):
        _numbered(reader, n, "Exam")
        fields = _fields(reader, reader.next("Exam details"))
        exam_type = _require(reader, fields, "Exam Type")
        if exam_type not in ExamType.__members__:
            raise reader.error(f"Invalid exam type: {exam_type}")
        block.exams.append(Exam(
            subject=_lookup(reader, block.subject, _require(reader, fields, "Subject")),
            exam_type=ExamType[exam_type],
            date=_to_date(reader, _require(reader, fields, "Exam Date")),
            time=_to_time(reader, _require(reader, fields, "Exam Time")),
            paper=fields.get("Paper", ""),
            subtitle=fields.get("Subtitle", ""),
            unit=fields.get("Unit", ""),
        ))


def _read_rooms(reader, block, count):
    for n in range(1, count + 1):
        block.rooms.append(Room(_numbered(reader, n, "Room")))


def _read_venues(reader, block, count):
    for n in range(1, count + 1):
        header = _numbered(reader, n, "Venue")
        venue_id = header.split(" (", 1)[0].strip()
        fields = _fields(reader, reader.next("Venue details"))
        room_ids = tuple(_require(reader, fields, "Rooms").split())
        for room_id in room_ids:
            if block.room(room_id) is None:
                raise reader.error(f"Room not found for venue {venue_id}: {room_id}")
        try:
            venue = Venue(
                venue_id=venue_id,
                rows=_to_int(reader, _require(reader, fields, "Rows"), "rows"),
                columns=_to_int(reader, _require(reader, fields, "Columns"), "columns"),
                aara=_to_bool(reader, _require(reader, fields, "AARA")),
                rooms=room_ids,
            )
        except ValueError as e:
            raise reader.error(str(e)) from None
        block.venues.append(venue)


def _read_desks(reader, block, session):
    line = reader.next("Desks header")
    count = _to_int(reader, line[len("[Desks:"):].rstrip("]").strip(), "desk count")
    venue = session.venue
    desks = [Desk(r * venue.columns + c + 1, r, c)
             for r in range(venue.rows) for c in range(venue.columns)]
    for _ in range(count):
        line = reader.next("Desk")
        match = DESK_RE.match(line)
        if not match:
            raise reader.error(f"Invalid desk format: {line}")
        number = int(match.group(1))
        if not 1 <= number <= len(desks):
            raise reader.error(f"Desk {number} is outside venue {venue.venue_id}")
        desk = desks[number - 1]
        if desk.student is not None:
            raise reader.error(f"Desk {number} is allocated twice")
        desk.student = _lookup(reader, block.student, match.group(3))
        if match.group(4):
            desk.exam = _lookup(reader, block.exam, match.group(4).strip())
    session.desks = desks


def _read_sessions(reader, block, count):
    for n in range(1, count + 1):
        fields = _fields(reader, _numbered(reader, n, "Session"))
        session = Session(
            venue=_lookup(reader, block.venue, _require(reader, fields, "Venue")),
            session_number=_to_int(reader, _require(reader, fields, "Session Number"), "session number"),
            day=_to_date(reader, _require(reader, fields, "Day")),
            start=_to_time(reader, _require(reader, fields, "Start")),
        )
        for _ in range(_to_int(reader, _require(reader, fields, "Exams"), "exam count")):
            line = reader.next("Session exam")
            # "Year 12 Internal Assessment English (12 students)"
            title = re.sub(r"\s*\(\d+ students\)$", "", line)
            session.schedule_exam(_lookup(reader, block.exam, title))
        next_line = reader.peek()
        if next_line is not None and next_line.startswith("[Desks:"):
            _read_desks(reader, block, session)
        block.sessions.append(session)


SECTION_READERS = {
    "Subjects": _read_subjects,
    "Units": _read_units,
    "Students": _read_students,
    "Exams": _read_exams,
    "Rooms": _read_rooms,
    "Venues": _read_venues,
    "Sessions": _read_sessions,
}


def read_exam_block(stream):
    """
    Reads an exam block from an open text stream.
    Raises BlockFileError naming the offending line if the layout is wrong
    or if anything refers to an item that has not been read yet.
    """
    reader = _LineReader(stream)
    block = ExamBlock()

    line = reader.next("Title")
    if not line.startswith("Title:"):
        raise reader.error(f"Expected 'Title:' but found '{line}'")
    block.title = line[len("Title:"):].strip()

    line = reader.next("Version")
    if not line.startswith("Version:"):
        raise reader.error(f"Expected 'Version:' but found '{line}'")
    try:
        block.version = float(line[len("Version:"):].strip())
    except ValueError:
        raise reader.error(f"Invalid version: {line}") from None

    if reader.next("[Begin]") != "[Begin]":
        raise reader.error("Expected [Begin] marker")

    while True:
        line = reader.next("[End]")
        if line == "[End]":
            break
        match = SECTION_RE.match(line)
        if not match or match.group(1) not in SECTION_READERS:
            raise reader.error(f"Unknown section: {line}")
        SECTION_READERS[match.group(1)](reader, block, int(match.group(2)))

    return block


def write_exam_block(block, stream):
    """Writes the exam block to an open text stream in .ebd layout."""
    def out(line=""):
        stream.write(line + "\n")

    out(f"Title: {block.title}")
    out(f"Version: {round(block.version, 2)}")
    out()
    out("[Begin]")
    out()

    out(f"[Subjects: {len(block.subjects)}]")
    for n, subject in enumerate(block.subjects, 1):
        out(f"{n}. {subject.title.upper()}")
        out(subject.title)
        out(f'"{subject.description}"')
    out()

    out(f"[Units: {len(block.units)}]")
    for n, unit in enumerate(block.units, 1):
        out(f"{n}. {unit.subject.title.upper()}")
        out(f"{unit.subject.title}, Unit {unit.unit_id}: {unit.title}")
        out(f'"{unit.description}"')
    out()

    out(f"[Students: {len(block.students)}]")
    for n, s in enumerate(block.students, 1):
        out(f"{n}. {s.lui} {s.short_name}")
        out(f"Given: {s.given_names}, Family: {s.family_name}, DOB: {s.dob or ''}, "
            f"House: {s.house}, AARA: {str(s.aara).lower()}")
        out("Subjects: " + "; ".join(sub.title for sub in s.subjects))
    out()

    out(f"[Exams: {len(block.exams)}]")
    for n, exam in enumerate(block.exams, 1):
        out(f"{n}. {exam.short_title}" + (f" {exam.subtitle}" if exam.subtitle else ""))
        details = [f"Subject: {exam.subject.title}", f"Exam Type: {exam.exam_type.value}"]
        if exam.paper:
            details.append(f"Paper: {exam.paper}")
        if exam.subtitle:
            details.append(f"Subtitle: {exam.subtitle}")
        if exam.unit:
            details.append(f"Unit: {exam.unit}")
        details.append(f"Exam Date: {exam.date}")
        details.append(f"Exam Time: {exam.time:%H:%M}")
        out(", ".join(details))
    out()

    out(f"[Rooms: {len(block.rooms)}]")
    for n, room in enumerate(block.rooms, 1):
        out(f"{n}. {room.room_id}")
    out()

    out(f"[Venues: {len(block.venues)}]")
    for n, v in enumerate(block.venues, 1):
        kind = "AARA" if v.aara else "Non-AARA"
        out(f"{n}. {v.venue_id} ({v.desk_count} {kind} desks)")
        out(f"Room Count: {len(v.rooms)}, Rooms: {' '.join(v.rooms)}, Rows: {v.rows}, "
            f"Columns: {v.columns}, Desks: {v.desk_count}, AARA: {str(v.aara).lower()}")
    out()

    out(f"[Sessions: {len(block.sessions)}]")
    for n, session in enumerate(block.sessions, 1):
        out(f"{n}. Venue: {session.venue.venue_id}, Session Number: {session.session_number}, "
            f"Day: {session.day}, Start: {session.start:%H:%M}, Exams: {len(session.exams)}")
        for exam in session.exams:
            sitting = sum(1 for s in block.students
                          if s.aara == session.venue.aara and s.takes(exam.subject))
            out(f"    {exam.short_title} ({sitting} students)")
        seated = [d for d in session.desks if d.student is not None]
        if seated:
            out(f"    [Desks: {len(seated)}]")
            for desk in seated:
                line = (f"    Desk: {desk.number} {desk.student.family_name}, "
                        f"{desk.student.given_and_init} - LUI: {desk.student.lui}")
                if desk.exam is not None:
                    line += f" - Exam: {desk.exam.short_title}"
                out(line)
    out()
    out("[End]")


def load_exam_block(filename):
    try:
        with open(filename, encoding="utf-8") as f:
            block = read_exam_block(f)
    except UnicodeDecodeError as e:
        raise BlockFileError(f"{filename} is not a UTF-8 text file: {e}") from e
    block.filename = str(filename)
    return block


def save_exam_block(block, filename, title=None, version=None):
    """
    Saves the exam block to a file, optionally under a new title and version.
    The block remembers the file it was saved to.
    """
    if title is not None:
        block.title = title
    if version is not None:
        block.version = version
    with open(filename, "w", encoding="utf-8") as f:
        write_exam_block(block, f)
    block.filename = str(filename)
