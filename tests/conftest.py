import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.db import Base
from models.class_teachers import ClassTeacher as ClassTeacherModel
from models.students import Student as StudentModel
import models.assessment_records  # noqa: F401

from schemas.marks import Actor, ActorRole, AssessmentRecord, EntryContext, RecordStatus, ReviewContext
from services.directory import SqlReviewerDirectory, SqlStudentDirectory
from services.entry_session import EntrySession
from services.notifications import ChangeNotifier
from services.record_store import SqlRecordStore
from services.review_aggregator import ReviewAggregator
from services.state_machine import AssessmentStateMachine
from services.validation import ScoreLimits, compute_total

EXAM = "mid-term-1"
CLASS_ID = "10"
SECTION = "A"


class FailingRecordStore(SqlRecordStore):
    """fail_on 번째 행을 쓰는 순간 DB 오류를 내는 저장소"""

    def __init__(self, db, fail_on: int):
        super().__init__(db)
        self.fail_on = fail_on
        self.calls = 0

    def _upsert_one(self, record):
        self.calls += 1
        if self.calls == self.fail_on:
            raise OperationalError("UPSERT assessment_records", {}, Exception("database is locked"))
        super()._upsert_one(record)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def limits():
    return ScoreLimits(internal_max=20, external_max=80, pass_mark=35)


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def events(notifier):
    received = []
    notifier.subscribe(received.append)
    return received


@pytest.fixture
def store(db):
    return SqlRecordStore(db)


@pytest.fixture
def machine(store, notifier):
    return AssessmentStateMachine(store, notifier)


@pytest.fixture
def classroom(db):
    """10-A 반 학생 3명 + 담임 ct-1"""
    db.add_all([
        StudentModel(id="s1", student_name="John Smith", roll_no=101, class_id=CLASS_ID, section_id=SECTION),
        StudentModel(id="s2", student_name="Emily Johnson", roll_no=102, class_id=CLASS_ID, section_id=SECTION),
        StudentModel(id="s3", student_name="Michael Brown", roll_no=103, class_id=CLASS_ID, section_id=SECTION),
        StudentModel(id="x1", student_name="Other Section", roll_no=1, class_id=CLASS_ID, section_id="B"),
        ClassTeacherModel(class_id=CLASS_ID, section_id=SECTION, teacher_id="ct-1"),
    ])
    db.commit()
    return SqlStudentDirectory(db).roster(CLASS_ID, SECTION)


@pytest.fixture
def math_teacher():
    return Actor(id="t-math", role=ActorRole.SUBJECT_TEACHER, scope_subject_ids=["math"])


@pytest.fixture
def science_teacher():
    return Actor(id="t-sci", role=ActorRole.SUBJECT_TEACHER, scope_subject_ids=["science"])


@pytest.fixture
def class_teacher():
    return Actor(id="ct-1", role=ActorRole.CLASS_TEACHER, scope_class_id=CLASS_ID, scope_section_id=SECTION)


@pytest.fixture
def review_context():
    return ReviewContext(exam_id=EXAM, class_id=CLASS_ID, section_id=SECTION, class_teacher_id="ct-1")


def entry_context(teacher: Actor, subject_id: str) -> EntryContext:
    return EntryContext(exam_id=EXAM, subject_id=subject_id, class_id=CLASS_ID, section_id=SECTION, teacher_id=teacher.id)


@pytest.fixture
def open_session(store, machine, limits, classroom):
    def _open(teacher: Actor, subject_id: str, session_store=None) -> EntrySession:
        session_store = session_store or store
        session_machine = machine if session_store is store else AssessmentStateMachine(session_store, machine.notifier)
        session = EntrySession(session_store, session_machine, limits)
        session.load(entry_context(teacher, subject_id), classroom, teacher)
        return session
    return _open


@pytest.fixture
def aggregator(store, machine, db, limits, classroom):
    return ReviewAggregator(store, machine, SqlReviewerDirectory(db), limits)


def make_record(student_id, subject_id, internal, external, status=RecordStatus.DRAFT,
                recorded_by="t-math", comment=None) -> AssessmentRecord:
    return AssessmentRecord(
        exam_id=EXAM,
        student_id=student_id,
        subject_id=subject_id,
        class_id=CLASS_ID,
        section_id=SECTION,
        internal_score=internal,
        external_score=external,
        total_score=compute_total(internal, external),
        status=status,
        recorded_by=recorded_by,
        rejection_comment=comment,
    )
