from fastapi import APIRouter, Depends

from dependencies.security import get_actor
from dependencies.services import get_limits, get_store
from schemas.marks import Actor
from services.authorization import authorize_results
from services.record_store import RecordStore
from services.review_aggregator import published_results
from services.validation import ScoreLimits

router = APIRouter(prefix="/results", tags=["성적 열람"])


# ✅ [READ] 학생/학부모용 성적 조회 - PUBLISHED 레코드만 노출 (본인/자녀만)
@router.get("/{student_id}")
def read_published_results(
    student_id: str,
    exam_id: str,
    actor: Actor = Depends(get_actor),
    store: RecordStore = Depends(get_store),
    limits: ScoreLimits = Depends(get_limits),
):
    authorize_results(actor, student_id)
    result = published_results(store, exam_id, student_id, limits)
    if not result["records"]:
        return {
            "success": False,
            "error": {"code": 404, "message": "공개된 성적이 없습니다"}
        }
    return {
        "success": True,
        "data": {
            "exam_id": exam_id,
            "student_id": student_id,
            "records": [r.model_dump(mode="json") for r in result["records"]],
            "aggregate_percentage": result["aggregate_percentage"],
        },
        "message": "공개 성적 조회 완료"
    }
