"""
services/record_store.py

성적 레코드 저장소 계약과 SQLAlchemy 구현.
- fetch_records: 시험 + 조건으로 조회
- upsert_records: (exam_id, student_id, subject_id) 기준 생성-또는-수정, 호출 단위 원자성(전부 아니면 전무)
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.assessment_records import AssessmentRecord as AssessmentRecordModel
from schemas.marks import AssessmentRecord, RecordFilter
from services.errors import PersistenceError

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    @abstractmethod
    def fetch_records(self, exam_id: str, filter: Optional[RecordFilter] = None) -> List[AssessmentRecord]: ...
    @abstractmethod
    def upsert_records(self, records: List[AssessmentRecord]) -> None: ...


class SqlRecordStore(RecordStore):
    def __init__(self, db: Session):
        self.db = db

    # ==========================================================
    # [조회]
    # ==========================================================
    def fetch_records(self, exam_id: str, filter: Optional[RecordFilter] = None) -> List[AssessmentRecord]:
        filter = filter or RecordFilter()
        try:
            q = self.db.query(AssessmentRecordModel).filter(AssessmentRecordModel.exam_id == exam_id)
            if filter.student_ids is not None:
                q = q.filter(AssessmentRecordModel.student_id.in_(filter.student_ids))
            if filter.subject_id is not None:
                q = q.filter(AssessmentRecordModel.subject_id == filter.subject_id)
            if filter.class_id is not None:
                q = q.filter(AssessmentRecordModel.class_id == filter.class_id)
            if filter.section_id is not None:
                q = q.filter(AssessmentRecordModel.section_id == filter.section_id)
            rows = q.order_by(AssessmentRecordModel.student_id, AssessmentRecordModel.subject_id).all()
        except SQLAlchemyError as e:
            logger.error(f"성적 조회 실패: exam_id={exam_id}, error={e}")
            raise PersistenceError("성적 레코드를 조회하지 못했습니다") from e
        return [AssessmentRecord.model_validate(r) for r in rows]

    # ==========================================================
    # [upsert] 한 트랜잭션 안에서 전부 반영하거나 전부 롤백
    # ==========================================================
    def upsert_records(self, records: List[AssessmentRecord]) -> None:
        if not records:
            return
        try:
            for record in records:
                self._upsert_one(record)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"성적 저장 실패, 롤백: {len(records)}건, error={e}")
            raise PersistenceError("성적 레코드를 저장하지 못했습니다", attempted=len(records)) from e

    def _upsert_one(self, record: AssessmentRecord) -> None:
        row = (
            self.db.query(AssessmentRecordModel)
            .filter(
                AssessmentRecordModel.exam_id == record.exam_id,
                AssessmentRecordModel.student_id == record.student_id,
                AssessmentRecordModel.subject_id == record.subject_id,
            )
            .first()
        )
        values = record.model_dump(exclude={"updated_at"})
        values["status"] = record.status.value
        if row is None:
            self.db.add(AssessmentRecordModel(**values))
        else:
            for key, value in values.items():
                setattr(row, key, value)
        self.db.flush()
