"""
services/state_machine.py

성적 레코드 상태 전이.

    DRAFT ──submit──▶ SUBMITTED ──approve──▶ PUBLISHED (종단)
      ▲                   │
      └──────reject───────┘  (반려 사유 필수)

- next_status(): 순수 전이표 조회. 예외 없이 TransitionOutcome 값을 돌려준다.
- AssessmentStateMachine.apply(): 배치 전체를 먼저 검사하고, 한 번의 upsert로 원자적으로 저장한 뒤
  상태가 바뀐 레코드마다 변경 알림을 보낸다.
- 행위자 권한 검사는 여기서 하지 않는다 (services/authorization.py).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from schemas.marks import AssessmentRecord, RecordStatus, StatusChangeEvent
from services.errors import IllegalTransition
from services.notifications import ChangeNotifier
from services.record_store import RecordStore
from services.validation import compute_total

logger = logging.getLogger(__name__)


class TransitionEvent(str, Enum):
    SAVE = "save"
    SUBMIT = "submit"
    REJECT = "reject"
    APPROVE = "approve"


# (현재 상태, 이벤트) → 다음 상태. 새 레코드는 암묵적으로 DRAFT 취급.
TRANSITIONS: Dict[Tuple[RecordStatus, TransitionEvent], RecordStatus] = {
    (RecordStatus.DRAFT, TransitionEvent.SAVE): RecordStatus.DRAFT,
    (RecordStatus.DRAFT, TransitionEvent.SUBMIT): RecordStatus.SUBMITTED,
    (RecordStatus.SUBMITTED, TransitionEvent.REJECT): RecordStatus.DRAFT,
    (RecordStatus.SUBMITTED, TransitionEvent.APPROVE): RecordStatus.PUBLISHED,
}


@dataclass(frozen=True)
class TransitionOutcome:
    current: Optional[RecordStatus]
    event: TransitionEvent
    status: Optional[RecordStatus] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def next_status(current: Optional[RecordStatus], event: TransitionEvent,
                comment: Optional[str] = None) -> TransitionOutcome:
    event = TransitionEvent(event)
    source = current or RecordStatus.DRAFT
    target = TRANSITIONS.get((source, event))
    if target is None:
        if source == RecordStatus.PUBLISHED:
            return TransitionOutcome(current, event, error="공개된 성적은 더 이상 변경할 수 없습니다")
        return TransitionOutcome(current, event, error=f"{source.value} 상태에서는 '{event.value}' 할 수 없습니다")
    if event == TransitionEvent.REJECT and not (comment or "").strip():
        return TransitionOutcome(current, event, error="반려 사유를 입력해야 합니다")
    return TransitionOutcome(current, event, status=target)


@dataclass
class PendingChange:
    """
    전이 요청 하나.
    record: 저장할 값 (점수/반/입력자 포함), previous: 저장소의 현재 상태 (새 레코드면 None)
    """
    record: AssessmentRecord
    event: TransitionEvent
    previous: Optional[RecordStatus] = None
    comment: Optional[str] = None


def _resolve(change: PendingChange, status: RecordStatus) -> AssessmentRecord:
    record = change.record
    if status == RecordStatus.DRAFT:
        # 반려면 새 사유, 단순 저장이면 기존 사유 유지
        comment = change.comment.strip() if change.event == TransitionEvent.REJECT else record.rejection_comment
    else:
        comment = None
    return record.model_copy(update={
        "status": status,
        "rejection_comment": comment,
        "total_score": compute_total(record.internal_score, record.external_score),
    })


class AssessmentStateMachine:
    def __init__(self, store: RecordStore, notifier: Optional[ChangeNotifier] = None):
        self.store = store
        self.notifier = notifier

    def apply(self, changes: List[PendingChange], actor_id: str) -> List[AssessmentRecord]:
        """
        배치 전이. 하나라도 허용되지 않으면 IllegalTransition, 저장소 실패면 PersistenceError.
        어느 경우든 저장소에는 아무것도 반영되지 않는다.
        """
        resolved: List[AssessmentRecord] = []
        for change in changes:
            outcome = next_status(change.previous, change.event, change.comment)
            if not outcome.ok:
                logger.warning(f"전이 거부: key={change.record.key}, event={change.event.value}, reason={outcome.error}")
                raise IllegalTransition(f"{change.record.key}: {outcome.error}")
            resolved.append(_resolve(change, outcome.status))

        self.store.upsert_records(resolved)
        logger.info(f"성적 {len(resolved)}건 저장 완료: actor={actor_id}")

        if self.notifier is not None:
            for change, record in zip(changes, resolved):
                if change.previous != record.status:
                    self.notifier.emit(StatusChangeEvent(
                        record_key=record.key,
                        previous_status=change.previous,
                        new_status=record.status,
                        actor_id=actor_id,
                    ))
        return resolved
