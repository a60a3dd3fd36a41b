"""
services/errors.py

성적 워크플로우 예외 계층.
- 점수 범위 오류(RangeError)는 예외가 아니라 값(schemas.marks.RangeError)으로 다룬다.
- 아래 예외는 요청된 작업 하나를 중단시키는 경우에만 사용한다.
- code / status_code 는 middlewares/error_handler.py 가 그대로 응답에 싣는다.
"""


class MarksError(Exception):
    code = "MARKS_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarksError):
    """전이에 필요한 전제 조건이 빠짐 (빈 반려 사유, 오류 필드가 남은 채 제출 등)"""
    code = "VALIDATION_ERROR"
    status_code = 422


class IllegalTransition(ValidationError):
    """현재 상태에서 허용되지 않는 전이 (예: DRAFT에서 바로 승인)"""
    code = "ILLEGAL_TRANSITION"
    status_code = 409


class RecordLocked(ValidationError):
    """제출/공개되었거나 다른 교사가 입력한 레코드를 수정하려 함"""
    code = "RECORD_LOCKED"
    status_code = 409


class NoReviewerAssigned(MarksError):
    """반/분반에 담임이 배정되지 않아 검토할 수 없음 (재시도 대신 배정을 먼저 고쳐야 함)"""
    code = "NO_REVIEWER_ASSIGNED"
    status_code = 409

    def __init__(self, class_id: str, section_id: str):
        super().__init__(f"{class_id}-{section_id} 반에 배정된 담임이 없습니다")
        self.class_id = class_id
        self.section_id = section_id


class AuthorizationError(MarksError):
    code = "FORBIDDEN"
    status_code = 403


class PersistenceError(MarksError):
    """저장소 실패(타임아웃, 충돌, 저장소 측 검증 거부). 재시도 가능, 부분 반영 없음."""
    code = "PERSISTENCE_ERROR"
    status_code = 503

    def __init__(self, message: str, attempted: int = 0):
        super().__init__(f"{message} (0 of {attempted} records saved)" if attempted else message)
        self.attempted = attempted
