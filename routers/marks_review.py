from fastapi import APIRouter, Depends

from dependencies.security import get_actor
from dependencies.services import get_limits, get_review_aggregator, get_students
from schemas.marks import Actor, ReviewContext
from schemas.marks_requests import ReviewRequest
from services.directory import StudentDirectory
from services.review_aggregator import ReviewAggregator, class_overview, summarize_status
from services.validation import ScoreLimits, compute_aggregate_percentage

router = APIRouter(prefix="/marks/review", tags=["성적 검토"])


def _context(actor: Actor, exam_id: str, class_id: str, section_id: str) -> ReviewContext:
    return ReviewContext(exam_id=exam_id, class_id=class_id, section_id=section_id, class_teacher_id=actor.id)


# ==========================================================
# [1단계] 반 전체 현황
# ==========================================================

# ✅ [LIST] 학생별 검토 상태 (prioritized=true면 검토 대기 학생 먼저)
@router.get("/")
def list_student_statuses(
    exam_id: str,
    class_id: str,
    section_id: str = "A",
    prioritized: bool = False,
    actor: Actor = Depends(get_actor),
    aggregator: ReviewAggregator = Depends(get_review_aggregator),
    students: StudentDirectory = Depends(get_students),
):
    context = _context(actor, exam_id, class_id, section_id)
    summaries = aggregator.list_student_statuses(
        context, students.roster(class_id, section_id), actor, prioritized=prioritized
    )
    return {
        "success": True,
        "data": {
            "students": [s.model_dump(mode="json") for s in summaries],
            "overview": class_overview(summaries),
        },
        "message": "반 성적 현황 조회 완료"
    }


# ==========================================================
# [2단계] 학생 단위 검토
# ==========================================================

def _not_in_class(student_id: str, class_id: str, section_id: str) -> dict:
    return {
        "success": False,
        "error": {"code": 404, "message": f"{class_id}-{section_id} 반에 없는 학생입니다: {student_id}"}
    }


# ✅ [DETAIL] 학생 한 명의 과목별 성적
@router.get("/{student_id}")
def read_student_records(
    student_id: str,
    exam_id: str,
    class_id: str,
    section_id: str = "A",
    actor: Actor = Depends(get_actor),
    aggregator: ReviewAggregator = Depends(get_review_aggregator),
    students: StudentDirectory = Depends(get_students),
    limits: ScoreLimits = Depends(get_limits),
):
    context = _context(actor, exam_id, class_id, section_id)
    aggregator.authorize(context, actor)
    student = students.find(student_id, class_id, section_id)
    if student is None:
        return _not_in_class(student_id, class_id, section_id)

    records = aggregator.student_records(context, student_id, actor)
    return {
        "success": True,
        "data": {
            "student_id": student_id,
            "name": student.name,
            "roll_no": student.roll_no,
            "status": summarize_status(records).value,
            "records": [r.model_dump(mode="json") for r in records],
            "aggregate_percentage": compute_aggregate_percentage(records, limits),
        },
        "message": "학생 성적 상세 조회 완료"
    }


# ✅ [REVIEW] 승인(공개) / 반려 - 승인은 전 과목 일괄, 반려는 제출된 과목만
@router.post("/{student_id}")
def review_student(
    student_id: str,
    req: ReviewRequest,
    actor: Actor = Depends(get_actor),
    aggregator: ReviewAggregator = Depends(get_review_aggregator),
    students: StudentDirectory = Depends(get_students),
):
    context = _context(actor, req.exam_id, req.class_id, req.section_id)
    aggregator.authorize(context, actor)
    if students.find(student_id, req.class_id, req.section_id) is None:
        return _not_in_class(student_id, req.class_id, req.section_id)

    result = aggregator.review_student(context, student_id, req.decision, actor, comment=req.comment)
    return {
        "success": True,
        "data": result.model_dump(mode="json"),
        "message": f"{result.succeeded} of {result.total} 과목 처리 완료"
    }
