from typing import Optional
from fastapi import APIRouter, Depends, Query

from dependencies.security import get_actor
from dependencies.services import get_change_feed
from schemas.marks import Actor
from services.authorization import authorize_staff
from services.notifications import RecentChangesFeed

router = APIRouter(prefix="/marks/changes", tags=["성적 변경 알림"])


# ✅ [READ] 최근 상태 변경 이벤트 (교사 대시보드 폴링용, 최신순)
@router.get("/")
def read_recent_changes(
    exam_id: Optional[str] = None,
    student_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    feed: RecentChangesFeed = Depends(get_change_feed),
):
    authorize_staff(actor)
    events = feed.recent(exam_id=exam_id, student_id=student_id, limit=limit)
    return {
        "success": True,
        "data": [e.model_dump(mode="json") for e in events],
        "message": f"최근 변경 {len(events)}건"
    }
