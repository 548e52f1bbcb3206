from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from coursework.core.errors import ConflictError, NotFoundError, SubmissionLockedError
from coursework.services.attachments import AttachmentDescriptor
from coursework.services.submission_store import SubmissionFilter, SubmissionStore

NOW = datetime(2026, 2, 28, 12, 0, tzinfo=timezone.utc)


def attachment(name="essay.pdf", handle="submissions/submission-1-aa.pdf"):
    return AttachmentDescriptor(filename=name, storage_path=handle, media_type="application/pdf", size=3)


@pytest.fixture()
def store(db):
    return SubmissionStore(db)


def create(store, assignment_id, student_id, handle="submissions/submission-1-aa.pdf"):
    return store.create(
        assignment_id=assignment_id,
        student_id=student_id,
        attachments=[attachment(handle=handle)],
        comment="",
        submitted_at=NOW,
        is_late=False,
    )


def test_create_and_get(store, seed):
    sub = create(store, seed.assignment_x, seed.student_a.id)

    got = store.get(sub.id)
    assert got.student_id == seed.student_a.id
    assert got.is_late is False
    assert [a.stored_name for a in got.attachments] == ["submission-1-aa.pdf"]
    assert got.grade is None


def test_duplicate_pair_is_a_conflict(store, seed):
    create(store, seed.assignment_x, seed.student_a.id, handle="submissions/s-1.pdf")

    with pytest.raises(ConflictError, match="update your existing submission"):
        create(store, seed.assignment_x, seed.student_a.id, handle="submissions/s-2.pdf")

    # the session is usable again and nothing was half-written
    assert len(store.list(SubmissionFilter(student_id=seed.student_a.id))) == 1
    with pytest.raises(NotFoundError):
        store.find_by_stored_name("s-2.pdf")


def test_same_student_other_assignment_is_fine(store, seed):
    create(store, seed.assignment_x, seed.student_a.id, handle="submissions/s-1.pdf")
    create(store, seed.assignment_open, seed.student_a.id, handle="submissions/s-2.pdf")
    assert len(store.list()) == 2


def test_get_unknown_id(store):
    with pytest.raises(NotFoundError):
        store.get(9999)


def test_list_filters(store, seed):
    a = create(store, seed.assignment_x, seed.student_a.id, handle="submissions/s-1.pdf")
    b = create(store, seed.assignment_x, seed.student_b.id, handle="submissions/s-2.pdf")
    c = create(store, seed.assignment_strict, seed.student_a.id, handle="submissions/s-3.pdf")
    store.update(
        b.id,
        {"grade": 70, "feedback": "", "graded_by": seed.lecturer.id, "graded_at": NOW},
    )

    ids = lambda flt: [s.id for s in store.list(flt)]  # noqa: E731

    assert ids(SubmissionFilter()) == [a.id, b.id, c.id]
    assert ids(SubmissionFilter(assignment_id=seed.assignment_x)) == [a.id, b.id]
    assert ids(SubmissionFilter(student_id=seed.student_a.id)) == [a.id, c.id]
    assert ids(SubmissionFilter(graded=True)) == [b.id]
    assert ids(SubmissionFilter(graded=False)) == [a.id, c.id]
    # lecturer_2 owns only the strict assignment
    assert ids(SubmissionFilter(assignment_owner_id=seed.lecturer_2.id)) == [c.id]


def test_update_replaces_attachment_rows(store, seed):
    sub = create(store, seed.assignment_x, seed.student_a.id, handle="submissions/s-1.pdf")

    updated = store.update(
        sub.id,
        {"comment": "v2"},
        attachments=[attachment("b.pdf", "submissions/s-2.pdf"), attachment("c.pdf", "submissions/s-3.pdf")],
    )

    assert updated.comment == "v2"
    assert [a.filename for a in updated.attachments] == ["b.pdf", "c.pdf"]
    assert [a.position for a in updated.attachments] == [0, 1]
    with pytest.raises(NotFoundError):
        store.find_by_stored_name("s-1.pdf")


def test_update_unknown_id(store):
    with pytest.raises(NotFoundError):
        store.update(4242, {"comment": "x"})


def test_conditional_update_refuses_graded_record(store, seed):
    sub = create(store, seed.assignment_x, seed.student_a.id)
    store.update(sub.id, {"grade": 85, "feedback": "ok", "graded_by": seed.lecturer.id, "graded_at": NOW})

    with pytest.raises(SubmissionLockedError):
        store.update(sub.id, {"comment": "sneaky"}, require_ungraded=True)

    assert store.get(sub.id).comment == ""


def test_delete(store, seed):
    sub = create(store, seed.assignment_x, seed.student_a.id)

    store.delete(sub.id, require_ungraded=True)

    with pytest.raises(NotFoundError):
        store.get(sub.id)
    with pytest.raises(NotFoundError):
        store.find_by_stored_name("submission-1-aa.pdf")
    # the pair is free again
    create(store, seed.assignment_x, seed.student_a.id, handle="submissions/s-9.pdf")


def test_delete_unknown_id(store):
    with pytest.raises(NotFoundError):
        store.delete(4242)


def test_conditional_delete_refuses_graded_record(store, seed):
    sub = create(store, seed.assignment_x, seed.student_a.id)
    store.update(sub.id, {"grade": 85, "feedback": "ok", "graded_by": seed.lecturer.id, "graded_at": NOW})

    with pytest.raises(SubmissionLockedError):
        store.delete(sub.id, require_ungraded=True)

    assert store.get(sub.id).grade == 85


def test_partial_grade_fields_are_rejected_by_the_schema(store, seed):
    sub = create(store, seed.assignment_x, seed.student_a.id)

    with pytest.raises(IntegrityError):
        store.update(sub.id, {"grade": 85})

    assert store.get(sub.id).grade is None
