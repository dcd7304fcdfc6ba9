import io
import pytest
from engine import ExamBlockEngine
from ebd_format import (read_exam_block, write_exam_block, load_exam_block,
                        save_exam_block, BlockFileError)


def written(block):
    stream = io.StringIO()
    write_exam_block(block, stream)
    return stream.getvalue()


def test_written_file_layout(block):
    text = written(block)
    lines = text.splitlines()
    assert lines[0] == "Title: Exam Block 2025"
    assert lines[1] == "Version: 1.0"
    assert "[Begin]" in lines
    assert lines[-1] == "[End]"
    assert "[Subjects: 2]" in lines
    assert "1. 1000000001 Zara Zed" in lines
    assert ("Given: Zara Anne, Family: Zed, DOB: 2007-05-01, House: Blue, AARA: false"
            in lines)
    assert "Subjects: English; Mathematical Methods" in lines
    assert "1. V1 (10 Non-AARA desks)" in lines


def test_block_survives_save_and_load(block, tmp_path):
    engine = ExamBlockEngine(block)
    session = engine.schedule_exam(block.exams[0], block.venue("V1"))
    engine.add_exam_to_session(block.exams[1], session)
    engine.schedule_exam(block.exams[0], block.venue("W1"))
    engine.finalise()

    path = tmp_path / "block.ebd"
    save_exam_block(block, path)
    loaded = load_exam_block(path)

    assert loaded.filename == str(path)
    assert loaded.title == block.title
    assert loaded.version == block.version
    assert loaded.subjects == block.subjects
    assert [u.key for u in loaded.units] == ["English:3"]
    assert [s.lui for s in loaded.students] == [s.lui for s in block.students]
    assert loaded.student("1000000004").aara is True
    assert [sub.title for sub in loaded.student("1000000001").subjects] == \
        ["English", "Mathematical Methods"]
    assert loaded.exams == block.exams
    assert loaded.venues == block.venues

    assert [s.session_id for s in loaded.sessions] == ["V1_1", "W1_1"]
    before = [(d.number, d.student_id, d.exam.short_title)
              for d in block.sessions[0].desks if d.student]
    restored = [(d.number, d.student_id, d.exam.short_title)
                for d in loaded.sessions[0].desks if d.student]
    assert restored == before
    assert len(loaded.sessions[0].desks) == 10


def test_unfinalised_sessions_load_without_desks(block):
    ExamBlockEngine(block).schedule_exam(block.exams[0], block.venue("V1"))
    loaded = read_exam_block(io.StringIO(written(block)))
    assert loaded.sessions[0].exams == [block.exams[0]]
    assert loaded.sessions[0].desks == []


def test_save_with_new_title_and_version(block, tmp_path):
    path = tmp_path / "renamed.ebd"
    save_exam_block(block, path, title="Mock Block", version=2.5)
    loaded = load_exam_block(path)
    assert (loaded.title, loaded.version) == ("Mock Block", 2.5)
    assert block.filename == str(path)


def test_blank_lines_are_ignored(block):
    text = written(block).replace("\n", "\n\n")
    assert read_exam_block(io.StringIO(text)).title == block.title


def test_missing_title(block):
    text = written(block).replace("Title:", "Heading:", 1)
    with pytest.raises(BlockFileError) as excinfo:
        read_exam_block(io.StringIO(text))
    assert excinfo.value.line_number == 1


def test_index_out_of_sync(block):
    text = written(block).replace("2. MATHEMATICAL METHODS", "3. MATHEMATICAL METHODS", 1)
    with pytest.raises(BlockFileError, match="out of sync"):
        read_exam_block(io.StringIO(text))


def test_unknown_subject_reference(block):
    text = written(block).replace("Subjects: English; Mathematical Methods",
                                  "Subjects: English; Chemistry")
    with pytest.raises(BlockFileError, match="Chemistry"):
        read_exam_block(io.StringIO(text))


def test_venue_with_unknown_room(block):
    text = written(block).replace("Rooms: R1 R2", "Rooms: R1 R9")
    with pytest.raises(BlockFileError, match="R9"):
        read_exam_block(io.StringIO(text))


def test_venue_with_no_rows(block):
    text = written(block).replace("Rows: 2", "Rows: 0")
    with pytest.raises(BlockFileError):
        read_exam_block(io.StringIO(text))


@pytest.mark.parametrize("old, new", [
    ("AARA: false", "AARA: maybe"),
    ("Exam Time: 08:30", "Exam Time: half past eight"),
    ("Exam Type: INTERNAL", "Exam Type: ORAL"),
    ("[Rooms: 3]", "[Classrooms: 3]"),
])
def test_malformed_values(block, old, new):
    text = written(block).replace(old, new, 1)
    with pytest.raises(BlockFileError) as excinfo:
        read_exam_block(io.StringIO(text))
    assert str(excinfo.value).startswith("Line ")


def test_truncated_file(block):
    text = written(block).replace("[End]", "")
    with pytest.raises(BlockFileError, match="Unexpected end of file"):
        read_exam_block(io.StringIO(text))


def test_exam_header_carries_subtitle(block):
    lines = written(block).splitlines()
    assert "2. Year 12 External Assessment Mathematical Methods Paper 1 Technology Free" in lines
    assert "1. Year 12 Internal Assessment English" in lines


def test_file_that_is_not_utf8(tmp_path):
    path = tmp_path / "latin1.ebd"
    path.write_bytes(b"Title: Caf\xe9 Block\nVersion: 1.0\n[Begin]\n[End]\n")
    with pytest.raises(BlockFileError, match="UTF-8"):
        load_exam_block(path)
