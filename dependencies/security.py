from typing import Optional, Annotated
from fastapi import Header, HTTPException
from pydantic import ValidationError as PydanticValidationError
from schemas.marks import Actor

# 인증은 앞단(게이트웨이/세션 서비스)이 처리하고, 확인된 사용자 정보를 헤더로 넘겨준다고 가정
ActorIdHeader = Annotated[Optional[str], Header(alias="X-Actor-Id")]
ActorRoleHeader = Annotated[Optional[str], Header(alias="X-Actor-Role")]
ActorClassHeader = Annotated[Optional[str], Header(alias="X-Actor-Class")]
ActorSectionHeader = Annotated[Optional[str], Header(alias="X-Actor-Section")]
ActorSubjectsHeader = Annotated[Optional[str], Header(alias="X-Actor-Subjects")]
ActorStudentsHeader = Annotated[Optional[str], Header(alias="X-Actor-Students")]


def get_actor(
    actor_id: ActorIdHeader = None,
    role: ActorRoleHeader = None,
    class_id: ActorClassHeader = None,
    section_id: ActorSectionHeader = None,
    subjects: ActorSubjectsHeader = None,
    students: ActorStudentsHeader = None,
) -> Actor:
    if not actor_id or not role:
        raise HTTPException(status_code=401, detail="Missing X-Actor-Id / X-Actor-Role header")

    # "math, sci" → ["math","sci"] / 헤더가 없으면 과목 제한 없음(None)
    subject_ids = [s.strip() for s in subjects.split(",") if s.strip()] if subjects is not None else None
    student_ids = [s.strip() for s in students.split(",") if s.strip()] if students is not None else None

    try:
        return Actor(
            id=actor_id.strip(),
            role=role.strip().upper(),
            scope_class_id=class_id,
            scope_section_id=section_id,
            scope_subject_ids=subject_ids,
            scope_student_ids=student_ids,
        )
    except PydanticValidationError:
        raise HTTPException(status_code=401, detail=f"Unknown actor role: {role}")
