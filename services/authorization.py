"""
services/authorization.py

입력/검토 경계에서 Actor 권한을 한 번에 판단한다.
- 과목 교사: 본인 컨텍스트, 담당 과목, 본인이 입력한 레코드만 저장/제출
- 담임: 배정된 (반, 분반)의 레코드만 반려/승인
- 학생/학부모: 본인(자녀)의 공개 성적만 열람
"""

import logging
from typing import Optional

from schemas.marks import Actor, ActorRole, AssessmentRecord, EntryContext, ReviewContext
from services.errors import AuthorizationError, NoReviewerAssigned

logger = logging.getLogger(__name__)


def authorize_entry(actor: Actor, context: EntryContext) -> None:
    if actor.role != ActorRole.SUBJECT_TEACHER:
        raise AuthorizationError("과목 교사만 성적을 입력할 수 있습니다")
    if actor.id != context.teacher_id:
        raise AuthorizationError("본인의 입력 세션만 사용할 수 있습니다")
    if actor.scope_subject_ids is not None and context.subject_id not in actor.scope_subject_ids:
        logger.warning(f"담당 외 과목 입력 시도: actor={actor.id}, subject={context.subject_id}")
        raise AuthorizationError(f"담당 과목이 아닙니다: {context.subject_id}")


def foreign_author(record: Optional[AssessmentRecord], context: EntryContext) -> bool:
    """다른 교사가 입력한 레코드인지 (본인 레코드만 저장/제출 가능)"""
    return record is not None and record.recorded_by != context.teacher_id


def authorize_review(actor: Actor, context: ReviewContext, assigned_teacher_id: Optional[str]) -> None:
    if assigned_teacher_id is None:
        logger.warning(f"담임 미배정 반 검토 시도: {context.class_id}-{context.section_id}, actor={actor.id}")
        raise NoReviewerAssigned(context.class_id, context.section_id)
    if actor.role != ActorRole.CLASS_TEACHER:
        raise AuthorizationError("담임만 성적을 검토할 수 있습니다")
    if actor.id != assigned_teacher_id or actor.id != context.class_teacher_id:
        logger.warning(f"담임 권한 없음: actor={actor.id}, assigned={assigned_teacher_id}")
        raise AuthorizationError(f"{context.class_id}-{context.section_id} 반의 담임이 아닙니다")
    if actor.scope_class_id is not None and actor.scope_class_id != context.class_id:
        raise AuthorizationError("배정된 반이 아닙니다")
    if actor.scope_section_id is not None and actor.scope_section_id != context.section_id:
        raise AuthorizationError("배정된 분반이 아닙니다")


def authorize_results(actor: Actor, student_id: str) -> None:
    """공개 성적 열람: 학생 본인, 연결된 학부모, 교사만"""
    if actor.role == ActorRole.STUDENT:
        allowed = actor.id == student_id
    elif actor.role == ActorRole.PARENT:
        allowed = student_id in (actor.scope_student_ids or [])
    else:
        allowed = True
    if not allowed:
        logger.warning(f"타 학생 성적 열람 시도: actor={actor.id}({actor.role.value}), student={student_id}")
        raise AuthorizationError("본인(자녀)의 성적만 열람할 수 있습니다")


def authorize_staff(actor: Actor) -> None:
    if actor.role not in (ActorRole.SUBJECT_TEACHER, ActorRole.CLASS_TEACHER):
        raise AuthorizationError("교사만 조회할 수 있습니다")
