"""
Controller Module

Holds the exam block being edited together with what the user currently has
selected, and carries out the user's requests (load, save, schedule, clear,
finalise). The GUI only reads the resulting state and re-renders from it.
"""

import os
from dataclasses import dataclass
from models import ExamBlock
from engine import ExamBlockEngine
from ebd_format import load_exam_block, save_exam_block
from report import finalisation_report, save_finalisation_report


@dataclass
class ViewState:
    selected_exam: object = None
    selected_venue: object = None
    selected_session: object = None

    def has_selection(self):
        return any((self.selected_exam, self.selected_venue, self.selected_session))


class ExamBlockController:
    def __init__(self, block=None, database=None, report_dir=None):
        self.block = block or ExamBlock()
        self.engine = ExamBlockEngine(self.block)
        self.database = database
        self.report_dir = report_dir
        self.state = ViewState()
        self.last_report_path = None

    def load(self, filename):
        """Replaces the current exam block with the one in the file."""
        block = load_exam_block(filename)
        self.block = block
        self.engine = ExamBlockEngine(block)
        self.state = ViewState()
        return block

    def save(self, filename=None, title=None, version=None):
        """
        Saves to the given file, or back over the current one. Saving over the
        current file without a version moves the version on by 0.1.
        """
        if not filename:
            filename = self.block.filename
            if not filename:
                raise ValueError("No file name to save to")
            if version is None:
                version = round(self.block.version + 0.1, 2)
        save_exam_block(self.block, filename, title, version)
        return filename

    def select_exam(self, exam):
        self.state.selected_exam = exam

    def select_venue(self, venue):
        self.state.selected_venue = venue
        self.state.selected_session = None

    def select_session(self, session):
        self.state.selected_session = session
        self.state.selected_venue = None

    def clear_selection(self):
        self.state = ViewState()

    def button_states(self):
        has_sessions = bool(self.block.sessions)
        target = self.state.selected_venue or self.state.selected_session
        return {
            "add": bool(self.state.selected_exam and target),
            "clear": self.state.has_selection() or has_sessions,
            "finalise": has_sessions,
        }

    def add_selected(self):
        """
        Schedules the selected exam into the selected venue or session.
        Selections are cleared afterwards, whether or not the exam fitted.
        """
        exam = self.state.selected_exam
        if exam is None:
            raise ValueError("Please select an exam.")
        try:
            if self.state.selected_session is not None:
                return self.engine.add_exam_to_session(exam, self.state.selected_session)
            if self.state.selected_venue is not None:
                return self.engine.schedule_exam(exam, self.state.selected_venue)
            raise ValueError("Please select a venue or existing session.")
        finally:
            self.clear_selection()

    def remove_all_sessions(self):
        count = len(self.block.sessions)
        self.engine.clear_sessions()
        self.clear_selection()
        return count

    def finalise(self, filename, title=None, version=None, description=""):
        """
        Allocates every session's desks, saves the finalised block, writes the
        timestamped report beside it and archives the seating when a database
        is attached. Returns the report text. If the block cannot be saved the
        previous desks, title and version are put back before the error is raised.
        """
        if not self.block.sessions:
            raise ValueError("No sessions to finalise.")
        previous_desks = [(session, session.desks) for session in self.block.sessions]
        previous_details = (self.block.title, self.block.version, self.block.filename)
        self.engine.finalise()
        try:
            self.save(filename, title, version)
        except OSError:
            for session, desks in previous_desks:
                session.desks = desks
            self.block.title, self.block.version, self.block.filename = previous_details
            self.engine.allocation_log.append(
                f"Finalise abandoned, could not save {filename}")
            raise
        self.last_report_path = save_finalisation_report(self.block, self.report_dir)
        if self.database is not None:
            self.database.save_finalisation(self.block, description)
        return finalisation_report(self.block)

    def window_title(self):
        title = "Exam Block Manager"
        if self.block.title:
            title += f" - {self.block.title}"
        if self.block.filename:
            title += f" ({os.path.basename(self.block.filename)})"
        return title
