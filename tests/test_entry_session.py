import threading

import pytest

from schemas.marks import Actor, ActorRole, RecordStatus, ScoreKind
from services.entry_session import EntrySession, context_lock
from services.errors import AuthorizationError, PersistenceError, RecordLocked, ValidationError
from conftest import EXAM, FailingRecordStore, entry_context, make_record


def stored(store, subject_id="math"):
    return {r.student_id: r for r in store.fetch_records(EXAM) if r.subject_id == subject_id}


def test_load_seeds_roster_in_order_with_empty_drafts(open_session, math_teacher):
    session = open_session(math_teacher, "math")
    state = session.state

    assert list(state.entries) == ["s1", "s2", "s3"]
    entry = state.entries["s1"]
    assert entry.status == RecordStatus.DRAFT
    assert not entry.persisted and not entry.locked
    assert not entry.internal.entered and not entry.external.entered
    assert state.progress.submitted == 0 and state.progress.total == 3


def test_load_picks_up_existing_records(store, open_session, math_teacher):
    store.upsert_records([make_record("s2", "math", 0, 55, comment="recheck")])
    entry = open_session(math_teacher, "math").state.entries["s2"]

    assert entry.persisted
    assert entry.internal.entered and entry.internal.value == 0
    assert entry.total == 55
    assert entry.rejection_comment == "recheck"


def test_invalid_score_is_kept_as_state(open_session, math_teacher):
    session = open_session(math_teacher, "math")
    entry = session.set_score("s1", ScoreKind.INTERNAL, 25)
    session.set_score("s2", ScoreKind.INTERNAL, 19)

    assert entry.internal.raw == 25
    assert not entry.internal.valid
    assert not entry.valid
    assert session.state.entries["s2"].valid
    assert session.state.has_errors


def test_last_write_wins_per_field(open_session, math_teacher):
    session = open_session(math_teacher, "math")
    session.set_score("s1", ScoreKind.EXTERNAL, 90)
    entry = session.set_score("s1", ScoreKind.EXTERNAL, "70")
    assert entry.valid and entry.external.value == 70


def test_unknown_student_is_rejected(open_session, math_teacher):
    session = open_session(math_teacher, "math")
    with pytest.raises(ValidationError):
        session.set_score("x1", ScoreKind.INTERNAL, 10)


def test_save_draft_is_idempotent(store, open_session, math_teacher):
    session = open_session(math_teacher, "math")
    session.set_score("s1", ScoreKind.INTERNAL, 18)
    session.set_score("s1", ScoreKind.EXTERNAL, 70)

    first = session.save_draft()
    snapshot = {k: r.model_dump(exclude={"updated_at"}) for k, r in stored(store).items()}
    second = session.save_draft()

    assert first.saved == 1 and second.saved == 1
    assert {k: r.model_dump(exclude={"updated_at"}) for k, r in stored(store).items()} == snapshot
    assert snapshot["s1"]["total_score"] == 88
    assert snapshot["s1"]["status"] == RecordStatus.DRAFT
    assert snapshot["s1"]["recorded_by"] == "t-math"


def test_save_draft_skips_invalid_entries_only(store, open_session, math_teacher):
    session = open_session(math_teacher, "math")
    session.set_score("s1", ScoreKind.INTERNAL, 25)
    session.set_score("s2", ScoreKind.INTERNAL, 15)

    result = session.save_draft()

    assert result.skipped == ["s1"]
    assert set(stored(store)) == {"s2"}
    assert session.state.entries["s1"].internal.raw == 25


def test_submit_with_invalid_score_persists_nothing(store, open_session, math_teacher):
    session = open_session(math_teacher, "math")
    session.set_score("s1", ScoreKind.INTERNAL, 25)
    session.set_score("s2", ScoreKind.INTERNAL, 15)
    session.set_score("s2", ScoreKind.EXTERNAL, 60)

    with pytest.raises(ValidationError):
        session.submit_for_review()

    assert stored(store) == {}


def test_submit_locks_entries(store, open_session, math_teacher):
    session = open_session(math_teacher, "math")
    session.set_score("s1", ScoreKind.INTERNAL, 18)
    session.set_score("s1", ScoreKind.EXTERNAL, 70)

    result = session.submit_for_review()

    assert result.saved == 1
    assert stored(store)["s1"].status == RecordStatus.SUBMITTED
    entry = session.state.entries["s1"]
    assert entry.locked
    assert session.state.progress.submitted == 1
    with pytest.raises(RecordLocked):
        session.set_score("s1", ScoreKind.INTERNAL, 20)


def test_reload_keeps_submitted_records_read_only(store, open_session, math_teacher):
    store.upsert_records([make_record("s1", "math", 18, 70, RecordStatus.SUBMITTED)])
    session = open_session(math_teacher, "math")
    with pytest.raises(RecordLocked):
        session.set_score("s1", ScoreKind.EXTERNAL, 10)
    session.set_score("s2", ScoreKind.EXTERNAL, 10)
    session.save_draft()
    assert stored(store)["s1"].status == RecordStatus.SUBMITTED


def test_records_of_other_teachers_are_read_only(store, open_session):
    store.upsert_records([make_record("s1", "math", 18, 70, recorded_by="t-math")])
    substitute = Actor(id="t-sub", role=ActorRole.SUBJECT_TEACHER, scope_subject_ids=["math"])
    session = open_session(substitute, "math")

    assert session.state.entries["s1"].locked
    with pytest.raises(RecordLocked):
        session.set_score("s1", ScoreKind.INTERNAL, 1)


def test_subject_outside_scope_is_refused(store, machine, limits, classroom, math_teacher):
    session = EntrySession(store, machine, limits)
    with pytest.raises(AuthorizationError):
        session.load(entry_context(math_teacher, "science"), classroom, math_teacher)


def test_class_teacher_cannot_enter_marks(store, machine, limits, classroom, class_teacher):
    session = EntrySession(store, machine, limits)
    with pytest.raises(AuthorizationError):
        session.load(entry_context(class_teacher, "math"), classroom, class_teacher)


def test_failed_persistence_keeps_draft_for_retry(db, store, open_session, math_teacher):
    failing = FailingRecordStore(db, fail_on=1)
    session = open_session(math_teacher, "math", session_store=failing)
    session.set_score("s1", ScoreKind.INTERNAL, 18)

    with pytest.raises(PersistenceError):
        session.submit_for_review()

    entry = session.state.entries["s1"]
    assert entry.dirty and entry.internal.value == 18
    assert entry.status == RecordStatus.DRAFT and not entry.locked
    assert stored(store) == {}

    failing.fail_on = 0
    assert session.submit_for_review().saved == 1
    assert stored(store)["s1"].status == RecordStatus.SUBMITTED


def test_failing_flag_and_name_filter(open_session, math_teacher):
    session = open_session(math_teacher, "math")
    low = session.set_score("s1", ScoreKind.EXTERNAL, 20)
    high = session.set_score("s2", ScoreKind.EXTERNAL, 60)

    assert low.failing and not high.failing
    assert not session.state.entries["s3"].failing
    assert [e.student.student_id for e in session.state.filter("EMILY")] == ["s2"]


def test_sessions_for_same_context_share_persist_lock(open_session, math_teacher, science_teacher):
    first = open_session(math_teacher, "math")
    second = open_session(math_teacher, "math")
    lock = context_lock(entry_context(math_teacher, "math"))

    assert first._persist_lock is lock and second._persist_lock is lock
    assert context_lock(entry_context(science_teacher, "science")) is not lock

    acquired = []
    with lock:
        worker = threading.Thread(target=lambda: acquired.append(lock.acquire(blocking=False)))
        worker.start()
        worker.join()
        # 같은 스레드에서는 재진입 가능 (라우터가 잡은 채로 저장)
        first.save_draft()
    assert acquired == [False]
