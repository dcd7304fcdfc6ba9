import re
from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum


def clean_text(raw):
    """Trims a name or title and collapses runs of whitespace."""
    if raw is None:
        return ""
    return re.sub(r"\s+", " ", str(raw).strip())


class ExamType(Enum):
    INTERNAL = "INTERNAL"
    EXTERNAL = "EXTERNAL"


@dataclass
class Subject:
    title: str
    description: str = ""

    def __post_init__(self):
        # Trailing full stops creep in from pasted subject lists
        self.title = clean_text(self.title).rstrip(".")
        self.description = clean_text(self.description)


@dataclass
class Unit:
    subject: Subject
    unit_id: str  # single character, e.g. '3'
    title: str
    description: str = ""

    def __post_init__(self):
        self.title = clean_text(self.title)

    @property
    def key(self):
        return f"{self.subject.title}:{self.unit_id}"


@dataclass
class Exam:
    subject: Subject
    exam_type: ExamType
    date: date
    time: time
    paper: str = ""
    subtitle: str = ""
    unit: str = ""

    @property
    def short_title(self):
        kind = "External" if self.exam_type == ExamType.EXTERNAL else "Internal"
        title = f"Year 12 {kind} Assessment {self.subject.title}"
        if self.paper:
            title += f" Paper {self.paper}"
        return title

    @property
    def exam_id(self):
        return f"{self.subject.title}_{self.exam_type.value}_{self.date}_{self.time:%H:%M}"


@dataclass(eq=False)
class Student:
    lui: str  # Learner Unique Identifier
    given_names: str
    family_name: str
    aara: bool = False
    house: str = ""
    dob: date = None
    subjects: list = field(default_factory=list)

    def __post_init__(self):
        self.lui = str(self.lui)
        self.given_names = clean_text(self.given_names)
        self.family_name = clean_text(self.family_name)

    def __eq__(self, other):
        return isinstance(other, Student) and self.lui == other.lui

    def __hash__(self):
        return hash(self.lui)

    @property
    def first_name(self):
        return self.given_names.split(" ")[0] if self.given_names else ""

    @property
    def short_name(self):
        return f"{self.first_name} {self.family_name}".strip()

    @property
    def full_name(self):
        return f"{self.given_names} {self.family_name}".strip()

    @property
    def given_and_init(self):
        """First given name plus the initial of the second, e.g. 'John A.'"""
        names = self.given_names.split(" ") if self.given_names else []
        if len(names) > 1:
            return f"{names[0]} {names[1][0]}."
        return names[0] if names else ""

    def takes(self, subject):
        return any(s.title == subject.title for s in self.subjects)


@dataclass(frozen=True)
class Room:
    room_id: str


@dataclass(frozen=True)
class Venue:
    venue_id: str
    rows: int
    columns: int
    aara: bool = False
    rooms: tuple = ()

    def __post_init__(self):
        if int(self.rows) < 1 or int(self.columns) < 1:
            raise ValueError(
                f"Venue {self.venue_id} needs positive rows and columns "
                f"(got {self.rows}x{self.columns})"
            )

    @property
    def desk_count(self):
        return self.rows * self.columns

    def will_fit(self, number_students):
        return number_students <= self.desk_count


@dataclass
class Desk:
    number: int  # 1-based, row-major
    row: int
    column: int
    student: Student = None
    exam: Exam = None

    @property
    def student_id(self):
        return self.student.lui if self.student else None


@dataclass
class Session:
    venue: Venue
    session_number: int
    day: date
    start: time
    exams: list = field(default_factory=list)
    desks: list = field(default_factory=list)

    @property
    def session_id(self):
        return f"{self.venue.venue_id}_{self.session_number}"

    @property
    def is_finalised(self):
        return any(d.student for d in self.desks)

    def schedule_exam(self, exam):
        if exam not in self.exams:
            self.exams.append(exam)

    def remove_exam(self, exam):
        if exam in self.exams:
            self.exams.remove(exam)

    def __str__(self):
        return f"{self.venue.venue_id}: {self.session_number}: {self.day} {self.start:%H:%M}"


@dataclass
class SeatRecord:
    venue_id: str
    session_number: int
    day: str
    start: str
    desk_number: int
    lui: str
    family_name: str
    given_and_init: str
    exam: str


@dataclass
class ExamBlock:
    title: str = "Exam Block"
    version: float = 1.0
    filename: str = ""
    subjects: list = field(default_factory=list)
    units: list = field(default_factory=list)
    students: list = field(default_factory=list)
    exams: list = field(default_factory=list)
    rooms: list = field(default_factory=list)
    venues: list = field(default_factory=list)
    sessions: list = field(default_factory=list)

    def has_data(self):
        return bool(self.subjects or self.students or self.exams)

    def subject(self, title):
        for s in self.subjects:
            if s.title == clean_text(title).rstrip("."):
                return s
        raise ValueError(f"No such subject: {title}")

    def venue(self, venue_id):
        for v in self.venues:
            if v.venue_id == venue_id:
                return v
        raise ValueError(f"No such venue: {venue_id}")

    def room(self, room_id):
        for r in self.rooms:
            if r.room_id == room_id:
                return r
        return None

    def student(self, lui):
        for s in self.students:
            if s.lui == str(lui):
                return s
        raise ValueError(f"No such student: {lui}")

    def exam(self, short_title):
        for e in self.exams:
            if e.short_title == short_title:
                return e
        raise ValueError(f"No such exam: {short_title}")

    def exams_for(self, student):
        return [e for e in self.exams if student.takes(e.subject)]
