"""
Desk Allocation Module

Seats the students sitting a session into a venue's desks. Students are
ordered alphabetically by family name and placed row by row. When the room
is at most half full, only every second column is used so that students
are spaced apart ("skip-column" placement); otherwise every desk is filled.
"""

from dataclasses import dataclass, field
from models import Desk

SKIP_COLUMN = "skip-column"
DENSE = "dense"


class CapacityError(Exception):
    """Raised when a venue has fewer usable desks than students to seat."""

    def __init__(self, venue_id, students, capacity, mode):
        self.venue_id = venue_id
        self.students = students
        self.capacity = capacity
        self.mode = mode
        super().__init__(
            f"Venue {venue_id} has only {capacity} desks available ({mode}), "
            f"{students} students will not fit"
        )


@dataclass
class Allocation:
    venue_id: str
    mode: str
    desks: list = field(default_factory=list)

    def pairs(self):
        return [(d.number, d.student_id) for d in self.desks]

    def seated(self):
        return [d for d in self.desks if d.student is not None]

    def desk_for(self, student_id):
        for d in self.desks:
            if d.student_id == str(student_id):
                return d
        return None


def sort_key(student):
    return (student.family_name.casefold(), student.given_names.casefold(), student.lui)


def placement_mode(desk_count, student_count):
    """
    Chooses skip-column placement when the students take up no more than
    half of the desks, so 5 students in a 10 desk venue are still spaced out.
    """
    if student_count * 2 <= desk_count:
        return SKIP_COLUMN
    return DENSE


def seat_positions(rows, columns, mode):
    """Lists the (row, column) positions usable under a mode, in seating order."""
    step = 2 if mode == SKIP_COLUMN else 1
    return [(r, c) for r in range(rows) for c in range(0, columns, step)]


def allocate_desks(venue, students):
    """
    Assigns every desk in the venue to a student or leaves it empty.
    Returns an Allocation covering all desks in row-major order, or raises
    CapacityError without assigning anything.
    """
    seen = set()
    for s in students:
        if s.aara != venue.aara:
            kind = "an AARA" if venue.aara else "a non-AARA"
            raise ValueError(f"Student {s.lui} cannot be seated in {kind} venue ({venue.venue_id})")
        if s.lui in seen:
            raise ValueError(f"Student {s.lui} appears more than once")
        seen.add(s.lui)

    ordered = sorted(students, key=sort_key)
    mode = placement_mode(venue.desk_count, len(ordered))
    positions = seat_positions(venue.rows, venue.columns, mode)
    if len(ordered) > len(positions):
        raise CapacityError(venue.venue_id, len(ordered), len(positions), mode)

    desks = [
        Desk(number=r * venue.columns + c + 1, row=r, column=c)
        for r in range(venue.rows)
        for c in range(venue.columns)
    ]
    for student, (r, c) in zip(ordered, positions):
        desks[r * venue.columns + c].student = student

    return Allocation(venue.venue_id, mode, desks)
