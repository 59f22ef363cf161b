# services/planner.py
# 다음 N일 일정 -> 제안 요청 -> 기본 캘린더에 저장(best effort) -> 새로고침 알림
import logging
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from schemas.suggestion_schema import CalendarEvent, PlanOut, SuggestionResult
from services.event_source import EventSource, CalendarStoreError
from services.suggestion_client import SuggestionClient

logger = logging.getLogger(__name__)

NEW_EVENT_TITLE = "New event"
NEW_EVENT_DURATION = timedelta(hours=1)


def draft_event_at(start: datetime) -> CalendarEvent:
    """
    타임라인에서 새 일정을 만들 때의 초안. 제목 'New event', 길이 1시간.
    """
    return CalendarEvent(title=NEW_EVENT_TITLE, start=start, end=start + NEW_EVENT_DURATION)


class WeekPlanner:
    """
    다가오는 일정을 읽어 제안을 받고, 받은 제안을 하나씩 저장한다.
    저장 하나가 실패해도 나머지는 계속 저장한다. 겹침/중복 검사는 하지 않는다.

    :param source: 일정 조회/저장 어댑터
    :type source: EventSource
    :param client: 제안 클라이언트
    :type client: SuggestionClient
    :param days: 조회 구간(일)
    :type days: int
    """

    def __init__(self, source: EventSource, client: SuggestionClient, days: int = 7):
        self.source = source
        self.client = client
        self.days = days

    def plan(self, now: Optional[datetime] = None) -> PlanOut:
        start = now or datetime.now(timezone.utc)
        end = start + timedelta(days=self.days)
        events = self.source.events_between(start, end)
        return self._persist(self.client.fetch(events, (start, end)))

    def plan_async(
        self,
        now: Optional[datetime] = None,
        callback: Optional[Callable[[PlanOut], None]] = None,
    ) -> "Future[PlanOut]":
        """
        조회는 호출 스레드에서, 제안 요청은 클라이언트 워커에서 실행한다.
        완료 처리(저장/알림/callback)도 워커 스레드에서 일어나므로 UI 갱신은 호출 측에서 디스패치해야 한다.
        """

        start = now or datetime.now(timezone.utc)
        end = start + timedelta(days=self.days)
        events = self.source.events_between(start, end)
        done: "Future[PlanOut]" = Future()

        def _finish(fut):
            try:
                out = self._persist(fut.result())
                if callback:
                    callback(out)
            except Exception as e:
                done.set_exception(e)
                return
            done.set_result(out)

        self.client.fetch_async(events, (start, end)).add_done_callback(_finish)
        return done

    def _persist(self, result: SuggestionResult) -> PlanOut:
        out = PlanOut(result=result)
        if not result.ok:
            logger.info("[Planner] no suggestions: status=%s", result.status.value)

        for s in result.suggestions:
            try:
                self.source.save_suggestion(s)
                out.saved.append(s)
            except CalendarStoreError as e:
                logger.warning("[Planner] save failed for '%s': %s", s.title, e)
                out.failed.append(s)

        logger.info("[Planner] saved=%d failed=%d", len(out.saved), len(out.failed))
        # 결과와 상관없이 화면 새로고침
        self.source.notify_changed()
        return out
