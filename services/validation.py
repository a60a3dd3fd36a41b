"""
services/validation.py

점수 검증과 합계/백분율 계산 (순수 함수, 부작용 없음).
입력 중에 매 키 입력마다 호출해도 안전하다.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Union

from config.settings import settings
from schemas.marks import AssessmentRecord, RangeError, ScoreCheck, ScoreKind


@dataclass(frozen=True)
class ScoreLimits:
    internal_max: float = 20
    external_max: float = 80
    pass_mark: float = 35

    @classmethod
    def from_settings(cls, s=settings) -> "ScoreLimits":
        return cls(
            internal_max=s.INTERNAL_MAX_SCORE,
            external_max=s.EXTERNAL_MAX_SCORE,
            pass_mark=s.PASS_MARK,
        )

    def max_for(self, kind: ScoreKind) -> float:
        return self.internal_max if kind == ScoreKind.INTERNAL else self.external_max

    @property
    def subject_max(self) -> float:
        return self.internal_max + self.external_max


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_score(kind: ScoreKind, value: Union[float, int, str, None], limits: ScoreLimits) -> ScoreCheck:
    """
    점수 하나를 검증한다. 예외를 던지지 않고 ScoreCheck 값으로 돌려준다.
    - 빈 값: 오류 아님, value=None (0점과 구분)
    - 숫자가 아니거나 0 미만 / 만점 초과: RangeError (보정하지 않음)
    """
    kind = ScoreKind(kind)
    if _is_empty(value):
        return ScoreCheck(kind=kind, raw=None, value=None)

    max_score = limits.max_for(kind)
    if isinstance(value, bool):
        return ScoreCheck(kind=kind, raw=str(value), error=RangeError(kind=kind, max=max_score, raw=str(value)))

    try:
        number = float(value)
    except (TypeError, ValueError):
        return ScoreCheck(kind=kind, raw=value, error=RangeError(kind=kind, max=max_score, raw=value))

    if number != number or number < 0 or number > max_score:  # NaN 포함
        return ScoreCheck(kind=kind, raw=value, error=RangeError(kind=kind, max=max_score, raw=value))

    return ScoreCheck(kind=kind, raw=value, value=number)


def compute_total(internal: Optional[float], external: Optional[float]) -> float:
    # 미입력은 합계에 0으로 기여
    return (internal or 0) + (external or 0)


def compute_aggregate_percentage(records: Iterable[AssessmentRecord], limits: ScoreLimits) -> float:
    """총점 합 / (과목별 만점 합) × 100, 레코드가 없으면 0"""
    records = list(records)
    if not records:
        return 0.0
    obtained = sum(r.total_score for r in records)
    possible = limits.subject_max * len(records)
    return round(obtained / possible * 100, 2)


def is_failing(total: float, limits: ScoreLimits) -> bool:
    return total < limits.pass_mark
