import pytest
from datetime import date, time
from models import ExamBlock, Subject, Unit, Student, Exam, ExamType, Room, Venue


def make_student(lui, given, family, aara=False, subjects=()):
    return Student(lui, given, family, aara=aara, house="Blue",
                   dob=date(2007, 5, 1), subjects=list(subjects))


@pytest.fixture
def block():
    """A small exam block: two subjects, a regular and an AARA venue."""
    english = Subject("English", "The study of language.")
    maths = Subject("Mathematical Methods", "The study of change.")
    rooms = [Room("R1"), Room("R2"), Room("S101")]
    b = ExamBlock(title="Exam Block 2025", version=1.0)
    b.subjects = [english, maths]
    b.units = [Unit(english, "3", "Textual connections", "Texts in context.")]
    b.rooms = rooms
    b.venues = [
        Venue("V1", rows=2, columns=5, aara=False, rooms=("R1", "R2")),
        Venue("W1", rows=1, columns=4, aara=True, rooms=("S101",)),
    ]
    b.students = [
        make_student("1000000001", "Zara Anne", "Zed", subjects=[english, maths]),
        make_student("1000000002", "Amy", "Adams", subjects=[english]),
        make_student("1000000003", "Bob Charles", "Brown", subjects=[maths]),
        make_student("1000000004", "Carl", "Cole", aara=True, subjects=[english]),
    ]
    b.exams = [
        Exam(english, ExamType.INTERNAL, date(2025, 3, 10), time(8, 30)),
        Exam(maths, ExamType.EXTERNAL, date(2025, 3, 10), time(8, 30), paper="1",
             subtitle="Technology Free"),
    ]
    return b
