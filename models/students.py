from sqlalchemy import Column, Integer, String
from database.db import Base

class Student(Base):
    __tablename__ = "students"  # 학생 기본 정보 테이블 (학생 명부 서비스 소유, 여기서는 읽기 전용)

    id = Column(String(64), primary_key=True, index=True)           # 고유 학생 ID
    student_name = Column(String(100), nullable=False)              # 학생 이름
    roll_no = Column(Integer, nullable=False)                       # 출석 번호
    class_id = Column(String(64), nullable=False, index=True)       # 소속 반 ID
    section_id = Column(String(32), nullable=False)                 # 분반
