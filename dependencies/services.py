from fastapi import Depends, Request
from sqlalchemy.orm import Session

from database.db import get_db
from services.directory import SqlReviewerDirectory, SqlStudentDirectory
from services.entry_session import EntrySession
from services.notifications import ChangeNotifier, RecentChangesFeed
from services.record_store import SqlRecordStore
from services.review_aggregator import ReviewAggregator
from services.state_machine import AssessmentStateMachine
from services.validation import ScoreLimits


# ✅ 알림 허브/피드는 앱 단위 객체 (main.py에서 app.state에 등록)
def get_notifier(request: Request) -> ChangeNotifier:
    return request.app.state.notifier


def get_change_feed(request: Request) -> RecentChangesFeed:
    return request.app.state.change_feed


def get_limits() -> ScoreLimits:
    return ScoreLimits.from_settings()


def get_store(db: Session = Depends(get_db)) -> SqlRecordStore:
    return SqlRecordStore(db)


def get_students(db: Session = Depends(get_db)) -> SqlStudentDirectory:
    return SqlStudentDirectory(db)


def get_state_machine(
    store: SqlRecordStore = Depends(get_store),
    notifier: ChangeNotifier = Depends(get_notifier),
) -> AssessmentStateMachine:
    return AssessmentStateMachine(store, notifier)


# ✅ 입력 세션은 요청마다 새로 만든다 (초안은 클라이언트가 들고 다님)
def get_entry_session(
    store: SqlRecordStore = Depends(get_store),
    machine: AssessmentStateMachine = Depends(get_state_machine),
    limits: ScoreLimits = Depends(get_limits),
) -> EntrySession:
    return EntrySession(store, machine, limits)


def get_review_aggregator(
    db: Session = Depends(get_db),
    store: SqlRecordStore = Depends(get_store),
    machine: AssessmentStateMachine = Depends(get_state_machine),
    limits: ScoreLimits = Depends(get_limits),
) -> ReviewAggregator:
    return ReviewAggregator(store, machine, SqlReviewerDirectory(db), limits)
