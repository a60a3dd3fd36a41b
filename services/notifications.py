"""
services/notifications.py

성적 상태 변경 알림 (fire-and-forget).
리스너가 실패해도 이미 성공한 저장은 되돌리거나 막지 않는다.
"""

import logging
import threading
from collections import deque
from typing import Callable, Deque, List, Optional

from schemas.marks import StatusChangeEvent

logger = logging.getLogger(__name__)

Listener = Callable[[StatusChangeEvent], None]


class ChangeNotifier:
    def __init__(self):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: StatusChangeEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"상태 변경 알림 실패: key={event.record_key}, listener={listener!r}")


def log_status_change(event: StatusChangeEvent) -> None:
    previous = event.previous_status.value if event.previous_status else "NEW"
    logger.info(f"성적 상태 변경: {event.record_key} {previous} → {event.new_status.value} (by {event.actor_id})")


class RecentChangesFeed:
    """대시보드/성적 화면이 폴링하는 최근 변경 이벤트 버퍼"""

    def __init__(self, maxlen: int = 200):
        self._events: Deque[StatusChangeEvent] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def __call__(self, event: StatusChangeEvent) -> None:
        with self._lock:
            self._events.append(event)

    def recent(self, exam_id: Optional[str] = None, student_id: Optional[str] = None,
               limit: int = 50) -> List[StatusChangeEvent]:
        with self._lock:
            events = list(self._events)
        if exam_id is not None:
            events = [e for e in events if e.record_key.exam_id == exam_id]
        if student_id is not None:
            events = [e for e in events if e.record_key.student_id == student_id]
        # 최신순
        return list(reversed(events))[:limit]
