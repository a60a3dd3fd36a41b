import logging
from typing import Optional
from fastapi import APIRouter, Depends

from dependencies.security import get_actor
from dependencies.services import get_entry_session, get_students
from schemas.marks import Actor, EntryContext, ScoreKind, SessionState
from schemas.marks_requests import EntryRequest
from services.directory import StudentDirectory
from services.entry_session import EntrySession, context_lock

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/marks/entry", tags=["성적 입력"])


# ==========================================================
# [공통] 세션 준비
# ==========================================================
def _entry_context(actor: Actor, exam_id: str, subject_id: str, class_id: str, section_id: str) -> EntryContext:
    return EntryContext(
        exam_id=exam_id,
        subject_id=subject_id,
        class_id=class_id,
        section_id=section_id,
        teacher_id=actor.id,
    )


def _open_session(session: EntrySession, students: StudentDirectory, actor: Actor,
                  context: EntryContext) -> SessionState:
    roster = students.roster(context.class_id, context.section_id)
    return session.load(context, roster, actor)


def _apply_scores(session: EntrySession, req: EntryRequest):
    # 요청 순서대로 적용 → 같은 필드는 마지막 값이 이김
    for item in req.scores:
        if "internal" in item.model_fields_set:
            session.set_score(item.student_id, ScoreKind.INTERNAL, item.internal)
        if "external" in item.model_fields_set:
            session.set_score(item.student_id, ScoreKind.EXTERNAL, item.external)


def _state_payload(state: SessionState, q: Optional[str] = None) -> dict:
    data = state.model_dump(mode="json")
    if q:
        data["entries"] = {e.student.student_id: e.model_dump(mode="json") for e in state.filter(q)}
    return data


# ✅ [LOAD] 입력 화면 초기 데이터 (명부 + 기존 성적 + 잠금/오류 표시)
@router.get("/")
def load_entry(
    exam_id: str,
    subject_id: str,
    class_id: str,
    section_id: str = "A",
    q: Optional[str] = None,
    actor: Actor = Depends(get_actor),
    session: EntrySession = Depends(get_entry_session),
    students: StudentDirectory = Depends(get_students),
):
    context = _entry_context(actor, exam_id, subject_id, class_id, section_id)
    state = _open_session(session, students, actor, context)
    return {
        "success": True,
        "data": _state_payload(state, q),
        "message": "성적 입력 세션 조회 완료"
    }


# ✅ [DRAFT] 임시 저장 (오류 있는 학생만 제외하고 저장)
@router.post("/draft")
def save_draft(
    req: EntryRequest,
    actor: Actor = Depends(get_actor),
    session: EntrySession = Depends(get_entry_session),
    students: StudentDirectory = Depends(get_students),
):
    context = _entry_context(actor, req.exam_id, req.subject_id, req.class_id, req.section_id)
    # 같은 컨텍스트의 동시 요청은 load부터 저장까지 직렬화
    with context_lock(context):
        _open_session(session, students, actor, context)
        _apply_scores(session, req)
        result = session.save_draft()
    return {
        "success": True,
        "data": {
            "result": result.model_dump(mode="json"),
            "state": _state_payload(session.state),
        },
        "message": f"임시 저장 완료 ({result.saved}건, 제외 {len(result.skipped)}건)"
    }


# ✅ [SUBMIT] 검토 요청 (오류가 하나라도 있으면 전체 거부)
@router.post("/submit")
def submit_for_review(
    req: EntryRequest,
    actor: Actor = Depends(get_actor),
    session: EntrySession = Depends(get_entry_session),
    students: StudentDirectory = Depends(get_students),
):
    context = _entry_context(actor, req.exam_id, req.subject_id, req.class_id, req.section_id)
    with context_lock(context):
        _open_session(session, students, actor, context)
        _apply_scores(session, req)
        result = session.submit_for_review()
    return {
        "success": True,
        "data": {
            "result": result.model_dump(mode="json"),
            "state": _state_payload(session.state),
        },
        "message": f"검토 요청 완료 ({result.saved}건)"
    }
