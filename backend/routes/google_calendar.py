# Google Calendar API 래퍼 모듈
# - EventStore 구현(GoogleCalendarStore): 권한 확인 / 전체 캘린더 이벤트 조회 / 기본 캘린더에 생성
# - 간단한 REST 엔드포인트(하루 일정 조회, 새 일정 생성)
import logging, requests
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from urllib.parse import quote

import config
from schemas.suggestion_schema import CalendarEvent, EventCreateIn
from services.event_source import (
    AccessState,
    CalendarAccessDenied,
    CalendarStoreError,
    EventSource,
)
from services.planner import draft_event_at
from routes.schedule_render import to_google_body
from routes.schedule_time import parse_event_time, rfc3339

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/google/calendar", tags=["google-calendar"])

GCAL_BASE = "https://www.googleapis.com/calendar/v3"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# 요청별 권한 확인에 쓰는 공용 워커
_ACCESS_POOL = ThreadPoolExecutor(max_workers=4, thread_name_prefix="gcal-access")
# 모든 저장소 인스턴스가 공유하는 HTTP 세션(커넥션 풀)
_SESSION = requests.Session()


# 캘린더 ID를 URL 경로 세그먼트로 안전 인코딩
def _cid(s: str) -> str:
    return quote(s, safe='@._-+%')


class GoogleCalendarStore:
    """
    Google Calendar v3 REST API 위의 EventStore 구현.

    :param access_token: 캘린더 스코프가 있는 OAuth 액세스 토큰
    :type access_token: str
    :param session: requests.Session 호환 객체(get/post). 없으면 모듈 공용 세션
    :param default_calendar_id: 새 일정을 넣을 캘린더
    :type default_calendar_id: str
    """

    def __init__(self, access_token: str, session=None, default_calendar_id: str = config.DEFAULT_CALENDAR_ID):
        self._access_token = access_token
        self.session = session or _SESSION
        self.default_calendar_id = default_calendar_id

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    def _request(self, method: str, url: str, what: str, **kwargs) -> Dict[str, Any]:
        # 네트워크 오류와 JSON이 아닌 응답도 저장소 오류로 바꿔서 올린다
        try:
            r = getattr(self.session, method)(url, headers=self._headers(), **kwargs)
        except requests.RequestException as e:
            logger.error("%s transport failed: %s", what, e.__class__.__name__)
            raise CalendarStoreError(f"{what} failed: {e}") from e
        self._check(r, what)
        try:
            return r.json()
        except ValueError as e:
            logger.error("%s returned non-JSON body: %s", what, r.text[:200])
            raise CalendarStoreError(f"{what} returned invalid JSON") from e

    def _check(self, r, what: str):
        # 401/403은 권한 문제로, 나머지 실패는 일반 저장소 오류로 본다
        if r.status_code in (401, 403):
            logger.warning("%s denied: %s", what, r.status_code)
            raise CalendarAccessDenied(f"{what} denied ({r.status_code})")
        if not r.ok:
            logger.error("%s failed: %s | %s", what, r.status_code, r.text)
            raise CalendarStoreError(f"{what} failed ({r.status_code})")

    def request_access(self) -> bool:
        """
        calendarList 호출로 토큰이 캘린더에 접근 가능한지 확인한다.

        :return: 접근 가능하면 True, 401/403이면 False
        :rtype: bool
        :raises CalendarStoreError: 그 밖의 API 오류
        """

        if not self._access_token:
            return False
        try:
            self.calendar_list()
        except CalendarAccessDenied:
            return False
        return True

    def calendar_list(self) -> List[Dict[str, Any]]:
        """
        사용자의 캘린더 목록(calendarList)을 전부 조회한다.

        :return: 캘린더 목록
        :rtype: List[Dict[str, Any]]
        :raises CalendarStoreError: Google API 오류
        """

        data = self._request("get", f"{GCAL_BASE}/users/me/calendarList", "CalendarList", timeout=20)
        return data.get("items", [])

    def _list_events_for_calendar(self, calendar_id: str, time_min: str, time_max: str) -> List[Dict[str, Any]]:
        # list 파라미터: 단일 인스턴스로 전개 및 시작시간 기준 정렬
        params: Dict[str, Any] = {
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": 2500,
            "timeMin": time_min,
            "timeMax": time_max,
        }
        data = self._request(
            "get",
            f"{GCAL_BASE}/calendars/{_cid(calendar_id)}/events",
            f"List events cid={calendar_id}",
            params=params,
            timeout=25,
        )
        items = data.get("items", [])
        # 이후 처리에서 캘린더 출처를 알 수 있게 주석 필드 추가
        for it in items:
            it["_calendarId"] = calendar_id
        return items

    def events_between(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """
        모든 캘린더에서 [start, end)와 겹치는 이벤트를 모아 시작시간 순으로 반환한다.
        일부 캘린더 조회가 실패해도 나머지 결과는 돌려준다.

        :param start: 하한(포함)
        :type start: datetime
        :param end: 상한(제외)
        :type end: datetime
        :return: 원본 이벤트 리스트
        :rtype: List[Dict[str, Any]]
        """

        time_min, time_max = rfc3339(start), rfc3339(end)
        logger.info("[GCAL] list all: timeMin=%s, timeMax=%s", time_min, time_max)

        all_items: List[Dict[str, Any]] = []
        for cal in self.calendar_list():
            cid = cal.get("id") or "primary"
            try:
                items = self._list_events_for_calendar(cid, time_min, time_max)
            except CalendarAccessDenied:
                raise
            except CalendarStoreError:
                # 일부 캘린더가 실패해도 전체 실패로 보지 않음
                continue
            logger.info("[GCAL] %s -> %d items", cid, len(items))
            all_items.extend(items)

        # 종일 일정(date)과 시간 일정(dateTime)이 섞여 있으므로 datetime으로 바꿔서 정렬
        def _start_key(e: Dict[str, Any]):
            s = e.get("start", {})
            return parse_event_time(s.get("dateTime") or s.get("date")) or _EPOCH

        all_items.sort(key=_start_key)
        return all_items

    def save_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        기본 캘린더에 새 이벤트를 생성한다.

        :param event: {title, start(datetime), end(datetime)}
        :type event: Dict[str, Any]
        :return: 생성된 이벤트(`_calendarId` 포함)
        :rtype: Dict[str, Any]
        :raises CalendarStoreError: Google API 오류
        """

        item = self._request(
            "post",
            f"{GCAL_BASE}/calendars/{_cid(self.default_calendar_id)}/events",
            "Insert event",
            json=to_google_body(event.get("title"), event["start"], event["end"]),
            timeout=20,
        )
        item["_calendarId"] = self.default_calendar_id
        return item


def google_event_source(x_google_access_token: Optional[str] = Header(None)) -> EventSource:
    """
    요청 헤더의 토큰으로 EventSource를 만들고 권한을 확인한다.

    :param x_google_access_token: X-Google-Access-Token 헤더
    :type x_google_access_token: Optional[str]
    :return: 권한이 확인된 EventSource
    :rtype: EventSource
    :raises HTTPException: 401 - 토큰 없음/거부, 502 - Google API 오류
    """

    if not x_google_access_token:
        raise HTTPException(401, "X-Google-Access-Token header required")
    source = EventSource(lambda: GoogleCalendarStore(x_google_access_token), executor=_ACCESS_POOL)
    access = source.request_access().result()
    if access == AccessState.DENIED:
        raise HTTPException(401, "Google Calendar access denied")
    if access == AccessState.ERROR:
        raise HTTPException(502, "Google Calendar access check failed")
    return source


# REST 핸들러
@router.get("/events", response_model=List[CalendarEvent])
def list_events(
    day: Optional[date] = Query(None, alias="date"),
    timeMin: Optional[datetime] = Query(None),
    timeMax: Optional[datetime] = Query(None),
    source: EventSource = Depends(google_event_source),
):
    """
    하루(date) 또는 구간(timeMin~timeMax)의 일정을 반환한다. 아무것도 없으면 오늘.

    :param day: 조회할 날짜(YYYY-MM-DD)
    :type day: Optional[date]
    :param timeMin: 하한(포함)
    :type timeMin: Optional[datetime]
    :param timeMax: 상한(제외)
    :type timeMax: Optional[datetime]
    :return: CalendarEvent 목록
    :rtype: List[CalendarEvent]
    """

    if timeMin and timeMax:
        items = source.events_between(timeMin, timeMax)
    else:
        items = source.events_for_date(day or datetime.now(config.CALENDAR_TZ))
    logger.info("[GCAL] REST /events -> %d items", len(items))
    return items


@router.post("/events")
def create_event(body: EventCreateIn, source: EventSource = Depends(google_event_source)):
    """
    기본 캘린더에 새 일정을 만든다. end/title이 없으면 초안 기본값을 쓴다.

    :param body: 생성 입력
    :type body: EventCreateIn
    :return: 생성된 이벤트 JSON
    :rtype: Dict[str, Any]
    """

    draft = draft_event_at(body.start)
    try:
        return source.store.save_event({
            "title": body.title or draft.title,
            "start": body.start,
            "end": body.end or draft.end,
        })
    except CalendarAccessDenied:
        raise HTTPException(401, "Google Calendar access denied")
    except CalendarStoreError:
        raise HTTPException(502, "Google Calendar insert failed")
