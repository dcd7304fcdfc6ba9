import os
import pytest
from controller import ExamBlockController, ViewState
from database import AllocationDatabase
from ebd_format import load_exam_block
from allocator import CapacityError
from models import Venue


def test_buttons_start_disabled(block):
    controller = ExamBlockController(block)
    assert controller.button_states() == {"add": False, "clear": False, "finalise": False}


def test_add_needs_exam_and_target(block):
    controller = ExamBlockController(block)
    controller.select_exam(block.exams[0])
    assert controller.button_states() == {"add": False, "clear": True, "finalise": False}

    controller.select_venue(block.venue("V1"))
    assert controller.button_states()["add"] is True


def test_selecting_session_replaces_venue(block):
    controller = ExamBlockController(block)
    controller.select_venue(block.venue("V1"))
    controller.select_session("session")
    assert controller.state.selected_venue is None
    assert controller.state.selected_session == "session"
    controller.select_venue(block.venue("V1"))
    assert controller.state.selected_session is None


def test_add_selected_schedules_and_clears(block):
    controller = ExamBlockController(block)
    controller.select_exam(block.exams[0])
    controller.select_venue(block.venue("V1"))

    session = controller.add_selected()

    assert block.sessions == [session]
    assert controller.state == ViewState()
    assert controller.button_states() == {"add": False, "clear": True, "finalise": True}


def test_add_selected_into_existing_session(block):
    controller = ExamBlockController(block)
    controller.select_exam(block.exams[0])
    controller.select_venue(block.venue("V1"))
    session = controller.add_selected()

    controller.select_exam(block.exams[1])
    controller.select_session(session)
    assert controller.add_selected() is session
    assert session.exams == block.exams


def test_add_without_exam(block):
    controller = ExamBlockController(block)
    controller.select_venue(block.venue("V1"))
    with pytest.raises(ValueError, match="select an exam"):
        controller.add_selected()


def test_add_without_target_clears_selection(block):
    controller = ExamBlockController(block)
    controller.select_exam(block.exams[0])
    with pytest.raises(ValueError, match="venue or existing session"):
        controller.add_selected()
    assert not controller.state.has_selection()


def test_refused_add_still_clears_selection(block):
    tiny = Venue("T1", rows=1, columns=1)
    block.venues.append(tiny)
    controller = ExamBlockController(block)
    controller.select_exam(block.exams[0])
    controller.select_venue(tiny)
    with pytest.raises(CapacityError):
        controller.add_selected()
    assert not controller.state.has_selection()
    assert block.sessions == []


def test_remove_all_sessions(block):
    controller = ExamBlockController(block)
    controller.select_exam(block.exams[0])
    controller.select_venue(block.venue("W1"))
    controller.add_selected()
    assert controller.remove_all_sessions() == 1
    assert controller.button_states()["finalise"] is False


def test_save_needs_a_file_name(block):
    with pytest.raises(ValueError):
        ExamBlockController(block).save()


def test_saving_over_current_file_bumps_version(block, tmp_path):
    controller = ExamBlockController(block)
    path = str(tmp_path / "block.ebd")
    controller.save(path)
    assert block.version == 1.0

    assert controller.save() == path
    assert block.version == 1.1
    assert load_exam_block(path).version == 1.1


def test_load_replaces_block(block, tmp_path):
    path = str(tmp_path / "block.ebd")
    ExamBlockController(block).save(path)

    controller = ExamBlockController()
    controller.select_exam("something")
    loaded = controller.load(path)

    assert controller.block is loaded
    assert controller.engine.block is loaded
    assert not controller.state.has_selection()
    assert controller.window_title() == "Exam Block Manager - Exam Block 2025 (block.ebd)"


def test_finalise_without_sessions(block):
    with pytest.raises(ValueError):
        ExamBlockController(block).finalise("unused.ebd")


def test_finalise_saves_reports_and_archives(block, tmp_path):
    database = AllocationDatabase(":memory:")
    controller = ExamBlockController(block, database=database, report_dir=str(tmp_path))
    controller.select_exam(block.exams[0])
    controller.select_venue(block.venue("V1"))
    controller.add_selected()

    path = str(tmp_path / "final.ebd")
    text = controller.finalise(path, title="Final Block", version=2.0, description="Term 1")

    assert "Final Block (v2.0)" in text
    assert os.path.exists(controller.last_report_path)
    assert controller.last_report_path.endswith(".efr")

    loaded = load_exam_block(path)
    assert loaded.title == "Final Block"
    assert [d.student_id for d in loaded.sessions[0].desks if d.student] == \
        ["1000000002", "1000000001"]

    saved = database.get_saved_finalisations()
    assert [(row[1], row[4]) for row in saved] == [("Final Block", "Term 1")]
    database.close()


def test_failed_save_leaves_block_unfinalised(block, tmp_path):
    controller = ExamBlockController(block, report_dir=str(tmp_path))
    controller.select_exam(block.exams[0])
    controller.select_venue(block.venue("V1"))
    session = controller.add_selected()

    path = str(tmp_path / "missing" / "final.ebd")
    with pytest.raises(OSError):
        controller.finalise(path, title="Final Block", version=2.0)

    assert session.desks == []
    assert (block.title, block.version, block.filename) == ("Exam Block 2025", 1.0, "")
    assert controller.last_report_path is None
    assert os.listdir(tmp_path) == []
