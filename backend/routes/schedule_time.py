# routes/schedule_time.py
# 시간 / 포맷

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple, Union

from config import CALENDAR_TZ

PROMPT_TS_FORMAT = "%Y-%m-%d %H:%M:%S +0000"


def _as_utc(dt: datetime) -> datetime:
    # 타임존이 없으면 UTC로 간주
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_prompt_timestamp(dt: datetime) -> str:
    """
    프롬프트에 들어갈 시각 문자열을 만든다. 항상 UTC로 변환해서 같은 입력이면 같은 문자열이 나온다.
    예: "2024-01-08 09:00:00 +0000"

    :param dt: 기준 datetime (naive면 UTC로 간주)
    :type dt: datetime
    :return: "YYYY-MM-DD HH:MM:SS +0000" 형태 문자열
    :rtype: str
    """

    return _as_utc(dt).strftime(PROMPT_TS_FORMAT)


def day_bounds(day: Union[date, datetime], tz=None) -> Tuple[datetime, datetime]:
    """
    주어진 날짜의 00:00:00 부터 다음날 00:00:00 까지의 구간을 반환한다.
    시각 부분은 버린다. date 또는 naive datetime은 캘린더 타임존(tz)으로 해석하고,
    aware datetime은 자신의 오프셋을 유지한다.

    :param day: 기준 날짜
    :type day: Union[date, datetime]
    :param tz: 해석에 쓸 타임존(기본 CALENDAR_TZ)
    :return: (start, end) - end는 제외
    :rtype: Tuple[datetime, datetime]
    """

    tz = tz or CALENDAR_TZ
    if isinstance(day, datetime):
        zone = day.tzinfo or tz
        d = day.date()
    else:
        zone = tz
        d = day
    start = datetime(d.year, d.month, d.day, tzinfo=zone)
    # 하루를 더하면 다음날 00:00
    end = datetime.combine(d + timedelta(days=1), datetime.min.time(), tzinfo=zone)
    return start, end


def rfc3339(dt: datetime) -> str:
    """
    datetime을 RFC3339 UTC(Z) 문자열로 반환한다. (timeMin/timeMax 용)

    :param dt: 기준 datetime
    :type dt: datetime
    :return: 'Z'로 끝나는 RFC3339 문자열(UTC)
    :rtype: str
    """
    return (
        _as_utc(dt)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


def parse_event_time(value: Optional[str], tz=None) -> Optional[datetime]:
    """
    구글 캘린더의 date/dateTime 문자열을 aware datetime으로 변환한다.
    날짜만 있으면(YYYY-MM-DD) 캘린더 타임존의 00:00으로 간주한다.(종일 이벤트)

    :param value: 날짜/날짜시간 문자열
    :type value: Optional[str]
    :return: aware datetime 또는 None
    :rtype: Optional[datetime]
    """

    if not value:
        return None
    s = value.strip()
    if len(s) == 10:
        return day_bounds(date.fromisoformat(s), tz)[0]
    # `Z`를 +00:00으로 바꿔서 파싱
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz or CALENDAR_TZ)
    return dt
