"""
services/entry_session.py

과목 교사 한 명의 성적 입력 세션.
- 초안 상태(SessionState)는 이 세션 인스턴스가 소유한다. 전역/싱글턴 없음.
- 점수 범위 오류는 예외가 아니라 초안에 남는 표시용 상태다.
- 제출(submit_for_review)만은 오류 필드가 하나라도 있으면 배치 전체를 거부한다.
- 저장 호출은 (시험, 과목, 반, 분반) 단위로 직렬화된다. HTTP 요청은 load부터 저장까지 같은 잠금을 잡는다.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple, Union

from schemas.marks import (
    Actor, AssessmentRecord, DraftEntry, EntryContext, RecordFilter, RecordStatus,
    RosterEntry, SaveResult, ScoreKind, SessionState,
)
from services.authorization import authorize_entry, foreign_author
from services.errors import RecordLocked, ValidationError
from services.state_machine import AssessmentStateMachine, PendingChange, TransitionEvent
from services.record_store import RecordStore
from services.validation import ScoreLimits, compute_total, is_failing, validate_score

logger = logging.getLogger(__name__)

LOCK_REASONS = {
    RecordStatus.SUBMITTED: "검토 중인 성적은 수정할 수 없습니다",
    RecordStatus.PUBLISHED: "공개된 성적은 수정할 수 없습니다",
}

_context_locks: Dict[Tuple[str, str, str, str], threading.RLock] = {}
_context_locks_guard = threading.Lock()


def context_lock(context: EntryContext) -> threading.RLock:
    """(시험, 과목, 반, 분반) 단위 저장 잠금. 요청마다 세션을 새로 만들어도 같은 잠금을 공유한다."""
    key = (context.exam_id, context.subject_id, context.class_id, context.section_id)
    with _context_locks_guard:
        return _context_locks.setdefault(key, threading.RLock())


class EntrySession:
    def __init__(self, store: RecordStore, machine: AssessmentStateMachine, limits: Optional[ScoreLimits] = None):
        self.store = store
        self.machine = machine
        self.limits = limits or ScoreLimits.from_settings()
        self.state: Optional[SessionState] = None
        self._persist_lock = threading.RLock()

    # ==========================================================
    # [load] 기존 레코드로 초안 채우기
    # ==========================================================
    def load(self, context: EntryContext, roster: List[RosterEntry], actor: Actor) -> SessionState:
        authorize_entry(actor, context)
        self._persist_lock = context_lock(context)
        records = self.store.fetch_records(
            context.exam_id,
            RecordFilter(student_ids=[s.student_id for s in roster], subject_id=context.subject_id),
        )
        by_student: Dict[str, AssessmentRecord] = {r.student_id: r for r in records}

        entries = {}
        for student in roster:
            entry = DraftEntry(student=student)
            record = by_student.get(student.student_id)
            if record is not None:
                entry.internal = validate_score(ScoreKind.INTERNAL, record.internal_score, self.limits)
                entry.external = validate_score(ScoreKind.EXTERNAL, record.external_score, self.limits)
            self._sync(entry, record, context)
            entries[student.student_id] = entry

        self.state = SessionState(context=context, entries=entries)
        logger.info(
            f"성적 입력 세션 시작: exam={context.exam_id}, subject={context.subject_id}, "
            f"class={context.class_id}-{context.section_id}, 학생 {len(roster)}명, 기존 레코드 {len(records)}건"
        )
        return self.state

    def _sync(self, entry: DraftEntry, record: Optional[AssessmentRecord], context: EntryContext) -> None:
        if record is not None:
            entry.status = record.status
            entry.persisted = True
            entry.recorded_by = record.recorded_by
            entry.rejection_comment = record.rejection_comment
        if foreign_author(record, context):
            entry.locked_reason = "다른 교사가 입력한 성적입니다"
        else:
            entry.locked_reason = LOCK_REASONS.get(entry.status) if entry.persisted else None
        self._refresh_failing(entry)

    def _refresh_failing(self, entry: DraftEntry) -> None:
        entry.failing = (entry.internal.entered or entry.external.entered) and is_failing(entry.total, self.limits)

    def _require_state(self) -> SessionState:
        if self.state is None:
            raise RuntimeError("load()를 먼저 호출해야 합니다")
        return self.state

    # ==========================================================
    # [set_score] 마지막 입력이 이긴다, 오류 값도 그대로 보존
    # ==========================================================
    def set_score(self, student_id: str, kind: ScoreKind, raw_value: Union[float, int, str, None]) -> DraftEntry:
        state = self._require_state()
        entry = state.entries.get(student_id)
        if entry is None:
            raise ValidationError(f"명부에 없는 학생입니다: {student_id}")
        if entry.locked:
            raise RecordLocked(f"{entry.student.name}: {entry.locked_reason}")

        check = validate_score(kind, raw_value, self.limits)
        if check.kind == ScoreKind.INTERNAL:
            entry.internal = check
        else:
            entry.external = check
        entry.dirty = True
        self._refresh_failing(entry)
        if not check.valid:
            logger.debug(f"점수 범위 오류 표시: student={student_id}, {check.error.message}")
        return entry

    def _pending(self) -> List[DraftEntry]:
        state = self._require_state()
        return [
            e for e in state.entries.values()
            if not e.locked and (e.dirty or e.persisted or e.internal.raw is not None or e.external.raw is not None)
        ]

    def _to_record(self, entry: DraftEntry) -> AssessmentRecord:
        ctx = self._require_state().context
        return AssessmentRecord(
            exam_id=ctx.exam_id,
            student_id=entry.student.student_id,
            subject_id=ctx.subject_id,
            class_id=ctx.class_id,
            section_id=ctx.section_id,
            internal_score=entry.internal.value,
            external_score=entry.external.value,
            total_score=compute_total(entry.internal.value, entry.external.value),
            status=entry.status,
            recorded_by=ctx.teacher_id,
            rejection_comment=entry.rejection_comment,
        )

    def _commit(self, entries: List[DraftEntry], event: TransitionEvent) -> List[AssessmentRecord]:
        state = self._require_state()
        changes = [
            PendingChange(
                record=self._to_record(e),
                event=event,
                previous=e.status if e.persisted else None,
            )
            for e in entries
        ]
        records = self.machine.apply(changes, actor_id=state.context.teacher_id)
        # 저장 성공 후에만 초안에 반영 (실패 시 초안은 그대로 남아 재시도 가능)
        for record in records:
            entry = state.entries[record.student_id]
            entry.dirty = False
            self._sync(entry, record, state.context)
        return records

    # ==========================================================
    # [save_draft] DRAFT로 저장 (멱등)
    # ==========================================================
    def save_draft(self) -> SaveResult:
        with self._persist_lock:
            pending = self._pending()
            valid = [e for e in pending if e.valid]
            skipped = [e.student.student_id for e in pending if not e.valid]
            if skipped:
                logger.warning(f"점수 오류로 임시 저장에서 제외: {skipped}")
            records = self._commit(valid, TransitionEvent.SAVE) if valid else []
            return SaveResult(status=RecordStatus.DRAFT, saved=len(records), skipped=skipped, records=records)

    # ==========================================================
    # [submit_for_review] SUBMITTED로 제출 (오류가 하나라도 있으면 전부 거부)
    # ==========================================================
    def submit_for_review(self) -> SaveResult:
        with self._persist_lock:
            state = self._require_state()
            invalid = [sid for sid, e in state.entries.items() if not e.valid]
            if invalid:
                logger.warning(f"점수 오류로 제출 거부: {invalid}")
                raise ValidationError(f"점수 오류가 남아 있어 제출할 수 없습니다: {', '.join(invalid)}")
            pending = self._pending()
            if not pending:
                raise ValidationError("제출할 성적이 없습니다")
            records = self._commit(pending, TransitionEvent.SUBMIT)
            logger.info(
                f"성적 제출 완료: exam={state.context.exam_id}, subject={state.context.subject_id}, {len(records)}건"
            )
            return SaveResult(status=RecordStatus.SUBMITTED, saved=len(records), records=records)
