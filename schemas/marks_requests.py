from pydantic import BaseModel, Field
from typing import List, Optional, Union
from schemas.marks import ReviewDecision

# ✅ 학생 한 명의 점수 입력 (보내지 않은 필드는 변경하지 않음, null은 '미입력'으로 지움)
class ScoreInput(BaseModel):
    student_id: str                                   # 학생 ID
    internal: Optional[Union[float, str]] = None      # 내부 평가 점수 (잘못된 값도 그대로 받음)
    external: Optional[Union[float, str]] = None      # 외부 평가 점수

# ✅ 임시 저장 / 제출 요청
class EntryRequest(BaseModel):
    exam_id: str                                      # 시험 ID
    subject_id: str                                   # 과목 ID
    class_id: str                                     # 반 ID
    section_id: str = "A"                             # 분반
    scores: List[ScoreInput] = Field(default_factory=list)

# ✅ 담임 검토 요청
class ReviewRequest(BaseModel):
    exam_id: str                                      # 시험 ID
    class_id: str                                     # 반 ID
    section_id: str = "A"                             # 분반
    decision: ReviewDecision                          # APPROVE(공개) / REJECT(반려)
    comment: Optional[str] = None                     # 반려 사유 (REJECT일 때 필수)
