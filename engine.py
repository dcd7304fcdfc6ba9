from collections import defaultdict
from models import Session
from allocator import allocate_desks, CapacityError


class ExamBlockEngine:
    """
    The ExamBlockEngine class is responsible for placing exams into venue sessions
    and, at finalisation, allocating every student sitting a session to a desk.
    AARA students are only ever counted and seated in AARA venues and vice versa.
    """
    def __init__(self, block):
        # Perform basic validation to ensure there is an exam block to work on
        if block is None:
            raise ValueError("No exam block provided")

        self.block = block

        # Human readable record of what the engine did, shown in the GUI log window
        self.allocation_log = []

    def count_students(self, subject, aara):
        """
        Counts the students of one partition (AARA or non-AARA) taking a subject.
        """
        return sum(1 for s in self.block.students if s.aara == aara and s.takes(subject))

    def session_students(self, session):
        """
        Collects the distinct students who will sit any exam in this session.
        Only students of the venue's own partition are included.
        """
        students = []
        for exam in session.exams:
            for student in self.block.students:
                if student.aara != session.venue.aara:
                    continue
                if student.takes(exam.subject) and student not in students:
                    students.append(student)
        return students

    def session_number(self, venue, day, start):
        """
        Finds the number of the session at a given date and time in a venue.
        Returns zero if no session exists at that time.
        """
        for session in self.block.sessions:
            if (session.venue.venue_id == venue.venue_id and
                    session.day == day and session.start == start):
                return session.session_number
        return 0

    def get_session(self, venue, session_number):
        for session in self.block.sessions:
            if (session.venue.venue_id == venue.venue_id and
                    session.session_number == session_number):
                return session
        raise ValueError(f"No session {session_number} in venue {venue.venue_id}")

    def next_session_number(self, venue):
        numbers = [s.session_number for s in self.sessions_for(venue)]
        return max(numbers, default=0) + 1

    def sessions_for(self, venue):
        return [s for s in self.block.sessions if s.venue.venue_id == venue.venue_id]

    def _students_for_exam(self, exam, venue):
        """Students of the venue's partition taking this exam's subject."""
        return [s for s in self.block.students
                if s.aara == venue.aara and s.takes(exam.subject)]

    def _check_fit(self, venue, session, exam):
        # Work out how many distinct students the session would hold with this exam added
        current = self.session_students(session) if session else []
        incoming = [s for s in self._students_for_exam(exam, venue) if s not in current]
        total = len(current) + len(incoming)

        if current:
            self.allocation_log.append(
                f"{len(current)} students already sit an exam in {venue.venue_id} at that time, "
                f"along with {len(incoming)} students for {exam.subject.title}")

        if not venue.will_fit(total):
            self.allocation_log.append(
                f"REFUSED: {exam.short_title} in {venue.venue_id} - "
                f"{total} students but only {venue.desk_count} desks")
            raise CapacityError(venue.venue_id, total, venue.desk_count, "all desks")
        return total

    def _add_to_session(self, session, exam):
        # A finalised session's desks no longer cover the students of a new exam
        if exam in session.exams:
            return
        session.schedule_exam(exam)
        if session.is_finalised:
            session.desks = []
            self.allocation_log.append(
                f"Desk allocation for session {session} discarded, finalise again to reseat")

    def schedule_exam(self, exam, venue):
        """
        Schedules an exam into a venue at the exam's own date and start time.
        Joins the existing session at that time or creates a new one, refusing
        with CapacityError (and creating nothing) if the students will not fit.
        """
        number = self.session_number(venue, exam.date, exam.time)
        session = self.get_session(venue, number) if number else None

        total = self._check_fit(venue, session, exam)

        if session is None:
            session = Session(venue, self.next_session_number(venue), exam.date, exam.time)
            self.block.sessions.append(session)
            self.allocation_log.append(f"Created session {session}")

        self._add_to_session(session, exam)
        self.allocation_log.append(
            f"{exam.subject.title} exam added to {venue.venue_id} ({total} students in session)")
        return session

    def add_exam_to_session(self, exam, session):
        """
        Adds an exam to an existing session, applying the same capacity check.
        """
        total = self._check_fit(session.venue, session, exam)
        self._add_to_session(session, exam)
        self.allocation_log.append(
            f"{exam.subject.title} exam added to session {session} ({total} students in session)")
        return session

    def remove_exam(self, venue, exam):
        """
        Removes an exam from the venue's sessions, dropping any session left empty.
        """
        for session in self.sessions_for(venue):
            if exam in session.exams:
                session.remove_exam(exam)
                session.desks = []
                if not session.exams:
                    self.block.sessions.remove(session)
                    self.allocation_log.append(f"Removed empty session {session}")

    def clear_sessions(self):
        count = len(self.block.sessions)
        self.block.sessions.clear()
        self.allocation_log.append(f"All {count} session(s) removed")

    def finalise(self):
        """
        Allocates students to desks for every session in every venue.
        Every session is allocated before any is updated, so a CapacityError
        in one session leaves all sessions exactly as they were.
        """
        allocations = {}
        by_venue = defaultdict(list)
        for session in self.block.sessions:
            by_venue[session.venue.venue_id].append(session)

        for venue in self.block.venues:
            for session in by_venue.get(venue.venue_id, []):
                students = self.session_students(session)
                try:
                    allocations[session.session_id] = (session, allocate_desks(venue, students))
                except CapacityError:
                    self.allocation_log.append(
                        f"IMPOSSIBLE: {len(students)} students do not fit session {session}")
                    raise

        # Commit only once every session has an allocation
        for session, allocation in allocations.values():
            session.desks = allocation.desks
            for desk in session.desks:
                if desk.student is not None:
                    desk.exam = next(
                        (e for e in session.exams if desk.student.takes(e.subject)), None)
            self.allocation_log.append(
                f"Allocated {len(allocation.seated())} students in session {session} "
                f"({allocation.mode})")

        return {sid: allocation for sid, (_, allocation) in allocations.items()}
