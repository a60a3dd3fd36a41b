from sqlalchemy import Column, Integer, String, UniqueConstraint
from database.db import Base

class ClassTeacher(Base):
    __tablename__ = "class_teachers"  # 담임 배정 테이블
    __table_args__ = (
        UniqueConstraint("class_id", "section_id", name="uq_class_teacher_section"),
    )

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(String(64), nullable=False)            # 반 ID
    section_id = Column(String(32), nullable=False)          # 분반
    teacher_id = Column(String(64), nullable=False)          # 담임 교사 ID (검토/공개 권한자)
