"""
services/directory.py

외부 소유 데이터 조회 (읽기 전용)
- StudentDirectory: 반/분반 학생 명부 (출석 번호 순)
- ReviewerDirectory: 반/분반 담임 배정
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy.orm import Session

from models.class_teachers import ClassTeacher as ClassTeacherModel
from models.students import Student as StudentModel
from schemas.marks import RosterEntry


class StudentDirectory(ABC):
    @abstractmethod
    def roster(self, class_id: str, section_id: str) -> List[RosterEntry]: ...
    @abstractmethod
    def find(self, student_id: str, class_id: str, section_id: str) -> Optional[RosterEntry]: ...


class ReviewerDirectory(ABC):
    @abstractmethod
    def class_teacher_for(self, class_id: str, section_id: str) -> Optional[str]: ...


def _to_entry(s: StudentModel) -> RosterEntry:
    return RosterEntry(student_id=s.id, name=s.student_name, roll_no=s.roll_no)


class SqlStudentDirectory(StudentDirectory):
    def __init__(self, db: Session):
        self.db = db

    def roster(self, class_id: str, section_id: str) -> List[RosterEntry]:
        students = (
            self.db.query(StudentModel)
            .filter(StudentModel.class_id == class_id, StudentModel.section_id == section_id)
            .order_by(StudentModel.roll_no)
            .all()
        )
        return [_to_entry(s) for s in students]

    def find(self, student_id: str, class_id: str, section_id: str) -> Optional[RosterEntry]:
        """해당 반/분반 명부에 있는 학생만 반환"""
        student = (
            self.db.query(StudentModel)
            .filter(
                StudentModel.id == student_id,
                StudentModel.class_id == class_id,
                StudentModel.section_id == section_id,
            )
            .first()
        )
        return _to_entry(student) if student else None


class SqlReviewerDirectory(ReviewerDirectory):
    def __init__(self, db: Session):
        self.db = db

    def class_teacher_for(self, class_id: str, section_id: str) -> Optional[str]:
        row = (
            self.db.query(ClassTeacherModel)
            .filter(ClassTeacherModel.class_id == class_id, ClassTeacherModel.section_id == section_id)
            .first()
        )
        return row.teacher_id if row else None
