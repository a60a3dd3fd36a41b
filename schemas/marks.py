"""
schemas/marks.py

- 성적 라이프사이클(입력 → 제출 → 검토 → 공개)에서 주고받는 값 객체 모음
- Pydantic v2 기준
- 포함 내용:
  1) 상태/종류 Enum: RecordStatus, ScoreKind, ActorRole, ReviewDecision, StudentReviewStatus
  2) 성적 레코드: RecordKey, AssessmentRecord, RecordFilter
  3) 컨텍스트/행위자: RosterEntry, EntryContext, ReviewContext, Actor
  4) 검증 결과: RangeError, ScoreCheck
  5) 입력 세션 상태: DraftEntry, SessionProgress, SessionState, SaveResult
  6) 검토/알림: StudentStatusSummary, BatchResult, StatusChangeEvent
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


# =========================================================
# 1) Enum
# =========================================================

class RecordStatus(str, Enum):
    DRAFT = "DRAFT"            # 입력 중 (반려되어 돌아온 경우 포함)
    SUBMITTED = "SUBMITTED"    # 담임 검토 대기
    PUBLISHED = "PUBLISHED"    # 승인 · 공개 (학생/학부모 열람 가능, 종단 상태)


class ScoreKind(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class ActorRole(str, Enum):
    SUBJECT_TEACHER = "SUBJECT_TEACHER"
    CLASS_TEACHER = "CLASS_TEACHER"
    STUDENT = "STUDENT"        # 공개 성적 열람만
    PARENT = "PARENT"          # 자녀(scope_student_ids)의 공개 성적 열람만


class ReviewDecision(str, Enum):
    APPROVE = "APPROVE"        # 승인과 동시에 공개
    REJECT = "REJECT"          # 사유와 함께 DRAFT로 반려


class StudentReviewStatus(str, Enum):
    PUBLISHED = "PUBLISHED"
    READY_TO_REVIEW = "READY_TO_REVIEW"
    IN_PROGRESS = "IN_PROGRESS"
    NO_DATA = "NO_DATA"


# =========================================================
# 2) 성적 레코드
# =========================================================

class RecordKey(BaseModel):
    """(시험, 학생, 과목) 복합키"""
    exam_id: str
    student_id: str
    subject_id: str

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.exam_id}/{self.student_id}/{self.subject_id}"


class AssessmentRecord(BaseModel):
    exam_id: str                                  # 시험 ID
    student_id: str                               # 학생 ID
    subject_id: str                               # 과목 ID
    class_id: str                                 # 반 ID
    section_id: str                               # 분반
    internal_score: Optional[float] = None        # None = 미입력
    external_score: Optional[float] = None        # None = 미입력
    total_score: float = 0                        # internal + external (직접 수정 불가)
    status: RecordStatus = RecordStatus.DRAFT
    recorded_by: str                              # 입력한 과목 교사 ID
    rejection_comment: Optional[str] = None       # 반려 사유
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def key(self) -> RecordKey:
        return RecordKey(exam_id=self.exam_id, student_id=self.student_id, subject_id=self.subject_id)


class RecordFilter(BaseModel):
    """fetch_records 조회 조건 (None인 항목은 조건에서 제외)"""
    student_ids: Optional[List[str]] = None
    subject_id: Optional[str] = None
    class_id: Optional[str] = None
    section_id: Optional[str] = None


# =========================================================
# 3) 컨텍스트 / 행위자
# =========================================================

class RosterEntry(BaseModel):
    student_id: str
    name: str
    roll_no: int


class EntryContext(BaseModel):
    """과목 교사 한 명이 (시험, 과목, 반, 분반)에 대해 성적을 입력하는 범위"""
    exam_id: str
    subject_id: str
    class_id: str
    section_id: str
    teacher_id: str

    model_config = ConfigDict(frozen=True)


class ReviewContext(BaseModel):
    """담임이 (시험, 반, 분반) 전체 과목을 검토하는 범위"""
    exam_id: str
    class_id: str
    section_id: str
    class_teacher_id: str

    model_config = ConfigDict(frozen=True)


class Actor(BaseModel):
    """요청 주체. 권한 판단은 services/authorization.py 한 곳에서만 한다."""
    id: str
    role: ActorRole
    scope_class_id: Optional[str] = None
    scope_section_id: Optional[str] = None
    scope_subject_ids: Optional[List[str]] = None
    scope_student_ids: Optional[List[str]] = None


# =========================================================
# 4) 검증 결과 (예외가 아니라 값)
# =========================================================

class RangeError(BaseModel):
    kind: ScoreKind
    max: float
    raw: Optional[Union[float, str]] = None

    @property
    def message(self) -> str:
        return f"{self.kind.value} 점수는 0~{self.max:g} 범위여야 합니다 (입력값: {self.raw})"


class ScoreCheck(BaseModel):
    kind: ScoreKind
    raw: Optional[Union[float, str]] = None       # 사용자가 입력한 원본 값 (잘못된 값도 그대로 보존)
    value: Optional[float] = None                 # 해석된 숫자, 미입력/오류면 None
    error: Optional[RangeError] = None

    @computed_field  # type: ignore[misc]
    @property
    def valid(self) -> bool:
        return self.error is None

    @computed_field  # type: ignore[misc]
    @property
    def entered(self) -> bool:
        # 0점 입력과 미입력을 구분한다
        return self.value is not None


# =========================================================
# 5) 입력 세션 상태
# =========================================================

class DraftEntry(BaseModel):
    student: RosterEntry
    internal: ScoreCheck = Field(default_factory=lambda: ScoreCheck(kind=ScoreKind.INTERNAL))
    external: ScoreCheck = Field(default_factory=lambda: ScoreCheck(kind=ScoreKind.EXTERNAL))
    status: RecordStatus = RecordStatus.DRAFT     # 저장소에 반영된 상태 (레코드가 없으면 암묵적 DRAFT)
    persisted: bool = False                       # 저장소에 레코드가 존재하는지
    recorded_by: Optional[str] = None
    rejection_comment: Optional[str] = None
    locked_reason: Optional[str] = None           # 읽기 전용 사유 (None이면 편집 가능)
    dirty: bool = False                           # load 이후 수정 여부
    failing: bool = False                         # 총점이 통과 기준 미만 (표시용)

    def check(self, kind: ScoreKind) -> ScoreCheck:
        return self.internal if kind == ScoreKind.INTERNAL else self.external

    @computed_field  # type: ignore[misc]
    @property
    def total(self) -> float:
        return (self.internal.value or 0) + (self.external.value or 0)

    @computed_field  # type: ignore[misc]
    @property
    def valid(self) -> bool:
        return self.internal.valid and self.external.valid

    @computed_field  # type: ignore[misc]
    @property
    def locked(self) -> bool:
        return self.locked_reason is not None


class SessionProgress(BaseModel):
    submitted: int
    total: int

    @computed_field  # type: ignore[misc]
    @property
    def percent(self) -> float:
        return round(self.submitted / self.total * 100, 1) if self.total else 0.0


class SessionState(BaseModel):
    context: EntryContext
    entries: Dict[str, DraftEntry] = Field(default_factory=dict)   # student_id → 초안 (명부 순서 유지)

    @computed_field  # type: ignore[misc]
    @property
    def progress(self) -> SessionProgress:
        done = sum(
            1 for e in self.entries.values()
            if e.persisted and e.status in (RecordStatus.SUBMITTED, RecordStatus.PUBLISHED)
        )
        return SessionProgress(submitted=done, total=len(self.entries))

    @computed_field  # type: ignore[misc]
    @property
    def has_errors(self) -> bool:
        return any(not e.valid for e in self.entries.values())

    def filter(self, term: str) -> List[DraftEntry]:
        """이름 부분 일치(대소문자 무시) 검색"""
        needle = (term or "").strip().lower()
        return [e for e in self.entries.values() if needle in e.student.name.lower()]


class SaveResult(BaseModel):
    status: RecordStatus
    saved: int
    skipped: List[str] = Field(default_factory=list)      # 오류 필드 때문에 저장하지 않은 학생 ID
    records: List[AssessmentRecord] = Field(default_factory=list)


# =========================================================
# 6) 검토 / 알림
# =========================================================

class StudentStatusSummary(BaseModel):
    student_id: str
    name: str
    roll_no: int
    status: StudentReviewStatus
    label: str
    subject_count: int
    aggregate_percentage: float


class BatchResult(BaseModel):
    student_id: str
    decision: ReviewDecision
    new_status: RecordStatus
    succeeded: int
    total: int
    records: List[AssessmentRecord] = Field(default_factory=list)


class StatusChangeEvent(BaseModel):
    record_key: RecordKey
    previous_status: Optional[RecordStatus] = None    # None = 새로 생성된 레코드
    new_status: RecordStatus
    actor_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
