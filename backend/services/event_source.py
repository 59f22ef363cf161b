# services/event_source.py
# 캘린더 저장소 어댑터
# - 권한 요청(비동기) -> 결과와 무관하게 저장소 재초기화 + 리스너 알림
# - 날짜/구간 조회 -> CalendarEvent 목록
# - 제안 일정 저장(기본 캘린더)
import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from schemas.suggestion_schema import CalendarEvent, SuggestedEvent
from routes.schedule_render import to_calendar_event
from routes.schedule_time import day_bounds

logger = logging.getLogger(__name__)


class CalendarStoreError(Exception):
    """외부 캘린더 저장소 호출 실패"""


class CalendarAccessDenied(CalendarStoreError):
    """사용자가 캘린더 접근을 거부했거나 토큰이 유효하지 않음"""


class AccessState(str, Enum):
    NOT_DETERMINED = "not_determined"
    GRANTED = "granted"
    DENIED = "denied"
    ERROR = "error"


class EventStore(Protocol):
    """
    외부 캘린더 저장소가 제공해야 하는 최소 인터페이스.
    원본 항목은 title/summary, start, end 를 가진 dict.
    """

    def request_access(self) -> bool: ...

    def events_between(self, start: datetime, end: datetime) -> List[Dict[str, Any]]: ...

    def save_event(self, event: Dict[str, Any]) -> Dict[str, Any]: ...


class InMemoryEventStore:
    """
    메모리 저장소. 구간 조회는 [start, end)와 겹치는 일정을 시작 시각 순으로 돌려준다.

    :param events: 초기 일정(dict: title, start, end)
    :param granted: request_access 결과
    """

    def __init__(self, events: Optional[List[Dict[str, Any]]] = None, granted: bool = True):
        self.events: List[Dict[str, Any]] = list(events or [])
        self.granted = granted
        self._lock = Lock()

    def request_access(self) -> bool:
        return self.granted

    def events_between(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        with self._lock:
            hits = [e for e in self.events if e["start"] < end and e["end"] > start]
        return sorted(hits, key=lambda e: e["start"])

    def save_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            self.events.append(dict(event))
        return event


class EventSource:
    """
    외부 저장소를 감싸 CalendarEvent 목록을 제공하는 어댑터.

    접근 권한이 확정되기 전이거나 거부/오류 상태면 조회 결과는 항상 빈 목록이다.

    :param store_factory: 저장소 생성 함수. 권한 요청 뒤 저장소를 새로 만들 때도 사용
    :type store_factory: Callable[[], EventStore]
    :param executor: 권한 요청을 실행할 executor (없으면 단일 워커 스레드)
    :type executor: Optional[Executor]
    """

    def __init__(self, store_factory: Callable[[], EventStore], executor: Optional[Executor] = None):
        self._store_factory = store_factory
        self._store: Optional[EventStore] = store_factory()
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="event-source")
        self._listeners: List[Callable[[], None]] = []
        self.access = AccessState.NOT_DETERMINED

    @property
    def store(self) -> Optional[EventStore]:
        return self._store

    # 권한 / 알림
    def request_access(self, callback: Optional[Callable[[AccessState], None]] = None) -> "Future[AccessState]":
        """
        저장소 접근 권한을 비동기로 요청한다.
        결과(허용/거부/오류)와 상관없이 저장소를 다시 만들고 리스너들에게 알린 뒤 callback을 호출한다.
        callback은 워커 스레드에서 실행되므로, UI 상태를 건드리려면 호출 측에서 다시 디스패치해야 한다.

        :param callback: 완료 시 호출할 함수 (AccessState) -> None
        :return: 최종 AccessState를 담은 Future
        :rtype: Future[AccessState]
        """

        return self._executor.submit(self._request_access, callback)

    def _request_access(self, callback):
        try:
            granted = self._store.request_access() if self._store is not None else False
            self.access = AccessState.GRANTED if granted else AccessState.DENIED
        except CalendarAccessDenied:
            self.access = AccessState.DENIED
        except Exception as e:
            logger.error("[EventSource] access request failed: %s", e)
            self.access = AccessState.ERROR

        logger.info("[EventSource] access=%s", self.access.value)
        self.reinitialize()
        self.notify_changed()
        if callback:
            callback(self.access)
        return self.access

    def reinitialize(self) -> None:
        # 권한 변경 후에는 새 저장소 인스턴스를 써야 함
        self._store = self._store_factory()

    def subscribe(self, listener: Callable[[], None]) -> None:
        """저장소 변경 시 호출될 리스너(예: 화면 새로고침)를 등록한다."""
        self._listeners.append(listener)

    def notify_changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("[EventSource] change listener failed")

    # 조회
    def events_for_date(self, day: Union[date, datetime]) -> List[CalendarEvent]:
        """
        해당 날짜 00:00:00부터 24시간 구간과 겹치는 모든 일정을 반환한다. 시각 부분은 무시한다.

        :param day: 기준 날짜
        :type day: Union[date, datetime]
        :return: CalendarEvent 목록
        :rtype: List[CalendarEvent]
        """

        start, end = day_bounds(day)
        return self.events_between(start, end)

    def events_between(self, start: datetime, end: datetime) -> List[CalendarEvent]:
        """
        [start, end) 구간과 겹치는 일정을 모든 캘린더에서 조회한다.
        권한이 없거나 저장소가 준비되지 않았거나 저장소 호출이 실패하면 빈 목록.

        :param start: 하한(포함)
        :type start: datetime
        :param end: 상한(제외)
        :type end: datetime
        :return: CalendarEvent 목록(저장소가 준 순서 유지)
        :rtype: List[CalendarEvent]
        """

        if self.access != AccessState.GRANTED or self._store is None:
            logger.debug("[EventSource] skip query: access=%s", self.access.value)
            return []
        try:
            raw = self._store.events_between(start, end)
        except CalendarStoreError as e:
            logger.warning("[EventSource] query failed: %s", e)
            return []

        out: List[CalendarEvent] = []
        for item in raw:
            ev = to_calendar_event(item)
            if ev is None:
                logger.debug("[EventSource] skip entry without start/end: %s", item.get("id"))
                continue
            out.append(ev)
        return out

    def upcoming(self, days: int = 7, now: Optional[datetime] = None) -> List[CalendarEvent]:
        """
        지금부터 days일 동안의 일정(제안 요청용 기본 구간).
        """
        start = now or datetime.now(timezone.utc)
        return self.events_between(start, start + timedelta(days=days))

    # 저장
    def save_suggestion(self, suggestion: SuggestedEvent) -> Dict[str, Any]:
        """
        제안 일정 하나를 기본 캘린더에 새 일정으로 저장한다.

        :param suggestion: 저장할 제안
        :type suggestion: SuggestedEvent
        :return: 저장소가 돌려준 항목
        :rtype: Dict[str, Any]
        :raises CalendarStoreError: 권한이 없거나 저장 실패
        """

        if self.access != AccessState.GRANTED or self._store is None:
            raise CalendarAccessDenied("calendar access not granted")
        return self._store.save_event({
            "title": suggestion.title,
            "start": suggestion.start,
            "end": suggestion.end,
        })
