# config.py
# 환경 변수 로드 (.env 지원)
import os
from datetime import timezone
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

###############################################
# OPENAI_API_KEY : OPENAI API 인증키            #
# OPENAI_BASE : OPENAI API 엔드포인트 기본 URL    #
# OPENAI_MODEL : 사용할 모델 이름                 #
# OPENAI_TIMEOUT : 요청 타임아웃(초), 비우면 무제한  #
###############################################
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE = os.getenv("OPENAI_BASE", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT")) if os.getenv("OPENAI_TIMEOUT") else None

# 캘린더 관련 설정
CALENDAR_TZ_NAME = os.getenv("CALENDAR_TZ", "UTC")
PLAN_DAYS = int(os.getenv("PLAN_DAYS", "7"))
DEFAULT_CALENDAR_ID = os.getenv("DEFAULT_CALENDAR_ID", "primary")

WEB_ORIGIN = os.getenv("WEB_ORIGIN", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def load_tz(name: str):
    """
    타임존 이름을 tzinfo로 변환한다. 'UTC' 또는 빈 값이면 timezone.utc를 쓴다.

    :param name: IANA 타임존 이름(예: 'Asia/Seoul')
    :type name: str
    :return: tzinfo
    """

    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


CALENDAR_TZ = load_tz(CALENDAR_TZ_NAME)
