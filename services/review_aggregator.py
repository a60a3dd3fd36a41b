"""
services/review_aggregator.py

담임용 검토 집계.
- 학생별 과목 상태를 하나의 표시 상태로 요약 (우선순위 고정)
    전 과목 PUBLISHED → PUBLISHED
    하나라도 SUBMITTED → READY_TO_REVIEW
    하나라도 DRAFT (SUBMITTED 없음) → IN_PROGRESS
    레코드 없음 → NO_DATA
- 승인/반려는 학생 한 명의 해당 시험 전 과목을 한 번에(원자적으로) 처리
"""

import logging
from collections import Counter
from typing import Dict, List, Optional

from schemas.marks import (
    Actor, AssessmentRecord, BatchResult, RecordFilter, RecordStatus, ReviewContext,
    ReviewDecision, RosterEntry, StudentReviewStatus, StudentStatusSummary,
)
from services.authorization import authorize_review
from services.directory import ReviewerDirectory
from services.errors import ValidationError
from services.record_store import RecordStore
from services.state_machine import AssessmentStateMachine, PendingChange, TransitionEvent
from services.validation import ScoreLimits, compute_aggregate_percentage

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    StudentReviewStatus.PUBLISHED: "Published",
    StudentReviewStatus.READY_TO_REVIEW: "Ready to Review",
    StudentReviewStatus.IN_PROGRESS: "Drafts in Progress",
    StudentReviewStatus.NO_DATA: "No Data",
}

# 담임이 먼저 처리해야 할 순서
ATTENTION_ORDER = {
    StudentReviewStatus.READY_TO_REVIEW: 0,
    StudentReviewStatus.IN_PROGRESS: 1,
    StudentReviewStatus.NO_DATA: 2,
    StudentReviewStatus.PUBLISHED: 3,
}


def summarize_status(records: List[AssessmentRecord]) -> StudentReviewStatus:
    if not records:
        return StudentReviewStatus.NO_DATA
    statuses = {r.status for r in records}
    if statuses == {RecordStatus.PUBLISHED}:
        return StudentReviewStatus.PUBLISHED
    if RecordStatus.SUBMITTED in statuses:
        return StudentReviewStatus.READY_TO_REVIEW
    return StudentReviewStatus.IN_PROGRESS


def class_overview(summaries: List[StudentStatusSummary]) -> Dict[str, int]:
    counts = Counter(s.status for s in summaries)
    return {status.value: counts.get(status, 0) for status in StudentReviewStatus}


class ReviewAggregator:
    def __init__(self, store: RecordStore, machine: AssessmentStateMachine,
                 reviewers: ReviewerDirectory, limits: Optional[ScoreLimits] = None):
        self.store = store
        self.machine = machine
        self.reviewers = reviewers
        self.limits = limits or ScoreLimits.from_settings()

    def authorize(self, context: ReviewContext, actor: Actor) -> None:
        assigned = self.reviewers.class_teacher_for(context.class_id, context.section_id)
        authorize_review(actor, context, assigned)

    # ==========================================================
    # [목록] 학생별 상태 요약
    # ==========================================================
    def list_student_statuses(self, context: ReviewContext, roster: List[RosterEntry], actor: Actor,
                              prioritized: bool = False) -> List[StudentStatusSummary]:
        self.authorize(context, actor)
        records = self.store.fetch_records(
            context.exam_id, RecordFilter(class_id=context.class_id, section_id=context.section_id)
        )
        by_student: Dict[str, List[AssessmentRecord]] = {}
        for r in records:
            by_student.setdefault(r.student_id, []).append(r)

        summaries = []
        for student in roster:
            student_records = by_student.get(student.student_id, [])
            status = summarize_status(student_records)
            summaries.append(StudentStatusSummary(
                student_id=student.student_id,
                name=student.name,
                roll_no=student.roll_no,
                status=status,
                label=STATUS_LABELS[status],
                subject_count=len(student_records),
                aggregate_percentage=compute_aggregate_percentage(student_records, self.limits),
            ))

        if prioritized:
            summaries.sort(key=lambda s: ATTENTION_ORDER[s.status])
        return summaries

    # ==========================================================
    # [상세] 검토 전 학생 한 명의 과목별 성적
    # ==========================================================
    def student_records(self, context: ReviewContext, student_id: str, actor: Actor) -> List[AssessmentRecord]:
        self.authorize(context, actor)
        return self.store.fetch_records(
            context.exam_id,
            RecordFilter(student_ids=[student_id], class_id=context.class_id, section_id=context.section_id),
        )

    # ==========================================================
    # [검토] 학생 단위 승인(공개) / 반려
    # ==========================================================
    def review_student(self, context: ReviewContext, student_id: str, decision: ReviewDecision,
                       actor: Actor, comment: Optional[str] = None) -> BatchResult:
        decision = ReviewDecision(decision)
        records = self.student_records(context, student_id, actor)
        if decision == ReviewDecision.REJECT and not (comment or "").strip():
            raise ValidationError("반려 사유를 입력해야 합니다")

        if decision == ReviewDecision.APPROVE:
            # 공개된 과목은 종단 상태라 제외, 나머지는 전부 SUBMITTED여야 승인 가능
            actionable = [r for r in records if r.status != RecordStatus.PUBLISHED]
        else:
            # 반려는 제출된 과목만 되돌린다 (작성 중인 과목은 그대로)
            actionable = [r for r in records if r.status == RecordStatus.SUBMITTED]
        if not actionable:
            raise ValidationError(f"검토할 성적이 없습니다: student={student_id}")

        event = TransitionEvent.APPROVE if decision == ReviewDecision.APPROVE else TransitionEvent.REJECT
        changes = [
            PendingChange(record=r, event=event, previous=r.status, comment=comment)
            for r in actionable
        ]
        updated = self.machine.apply(changes, actor_id=actor.id)

        new_status = RecordStatus.PUBLISHED if decision == ReviewDecision.APPROVE else RecordStatus.DRAFT
        logger.info(
            f"학생 성적 {decision.value}: exam={context.exam_id}, student={student_id}, "
            f"{len(updated)}/{len(actionable)}과목, by={actor.id}"
        )
        return BatchResult(
            student_id=student_id,
            decision=decision,
            new_status=new_status,
            succeeded=len(updated),
            total=len(actionable),
            records=updated,
        )


def published_results(store: RecordStore, exam_id: str, student_id: str,
                      limits: Optional[ScoreLimits] = None) -> Dict[str, object]:
    """학생/학부모 화면용: PUBLISHED 레코드만 노출"""
    limits = limits or ScoreLimits.from_settings()
    records = [
        r for r in store.fetch_records(exam_id, RecordFilter(student_ids=[student_id]))
        if r.status == RecordStatus.PUBLISHED
    ]
    return {
        "exam_id": exam_id,
        "student_id": student_id,
        "records": records,
        "aggregate_percentage": compute_aggregate_percentage(records, limits),
    }
