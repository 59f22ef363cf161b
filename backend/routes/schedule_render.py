# routes/schedule_render.py
# 저장소 원본 항목 <-> CalendarEvent 변환

from datetime import datetime
from typing import Any, Dict, Optional

from schemas.suggestion_schema import CalendarEvent
from routes.schedule_time import parse_event_time, rfc3339


def _pick_time(v: Any) -> Optional[datetime]:
    # Google 형식({"dateTime"|"date"}), 문자열, datetime 모두 허용
    if v is None or isinstance(v, datetime):
        return v
    if isinstance(v, dict):
        v = v.get("dateTime") or v.get("date")
    return parse_event_time(v)


def to_calendar_event(e: Dict[str, Any]) -> Optional[CalendarEvent]:
    """
    저장소 원본 항목에서 제목/시작/끝만 추려 CalendarEvent로 만든다.
    Google 이벤트(summary, start.dateTime/date)와 단순 dict(title, start, end)를 모두 받는다.

    :param e: 원본 이벤트 항목
    :type e: dict
    :return: CalendarEvent 또는 None(시작/끝이 없을 때)
    :rtype: Optional[CalendarEvent]
    """

    if not e:
        return None

    start = _pick_time(e.get("start"))
    end = _pick_time(e.get("end"))
    if start is None or end is None:
        return None
    return CalendarEvent(
        title=e.get("summary") or e.get("title"),
        start=start,
        end=end,
    )


def to_google_body(title: Optional[str], start: datetime, end: datetime) -> Dict[str, Any]:
    """
    새 일정을 Google Calendar insert 본문으로 만든다.
    """
    return {
        "summary": title or "",
        "start": {"dateTime": rfc3339(start)},
        "end": {"dateTime": rfc3339(end)},
    }
