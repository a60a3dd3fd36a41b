from sqlalchemy import Column, Integer, Float, String, Text, DateTime, UniqueConstraint, Index
from sqlalchemy.sql import func
from database.db import Base

class AssessmentRecord(Base):
    __tablename__ = "assessment_records"  # 시험별 · 학생별 · 과목별 성적 레코드
    __table_args__ = (
        # (시험, 학생, 과목) 조합당 레코드는 하나뿐 → upsert 기준 키
        UniqueConstraint("exam_id", "student_id", "subject_id", name="uq_assessment_record_key"),
        Index("ix_assessment_records_class", "exam_id", "class_id", "section_id"),
    )

    id = Column(Integer, primary_key=True, index=True)        # 내부 PK (외부에는 복합키로만 노출)
    exam_id = Column(String(64), nullable=False)              # 시험 ID
    student_id = Column(String(64), nullable=False)           # 학생 ID
    subject_id = Column(String(64), nullable=False)           # 과목 ID
    class_id = Column(String(64), nullable=False)             # 학년/반 ID
    section_id = Column(String(32), nullable=False)           # 분반
    internal_score = Column(Float, nullable=True)             # 내부 평가 점수 (NULL = 미입력)
    external_score = Column(Float, nullable=True)             # 외부 평가 점수 (NULL = 미입력)
    total_score = Column(Float, nullable=False, default=0)    # 합계 (항상 internal + external)
    status = Column(String(20), nullable=False, default="DRAFT")  # DRAFT / SUBMITTED / PUBLISHED
    recorded_by = Column(String(64), nullable=False)          # 입력한 과목 교사 ID
    rejection_comment = Column(Text, nullable=True)           # 반려 사유 (DRAFT로 돌아온 경우만)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
