# 일정 제안 라우터. 기존 일정을 Completion API에 보내 새 일정을 제안받고, 필요하면 캘린더에 저장함.
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

import config
from schemas.suggestion_schema import PlanOut, SuggestIn, SuggestionResult
from services.event_source import EventSource
from services.planner import WeekPlanner
from services.suggestion_client import SuggestionClient
from routes.google_calendar import google_event_source

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/suggestions", tags=["suggestions"])


def get_suggestion_client(request: Request) -> SuggestionClient:
    """
    앱에 하나 만들어 둔 SuggestionClient를 꺼낸다. API 키가 없으면 500.

    :raises HTTPException: 500 - OPENAI_API_KEY 미설정
    """
    client: SuggestionClient = request.app.state.suggestion_client
    if not client.configured:
        raise HTTPException(500, "OPENAI_API_KEY not set")
    return client


@router.post("", response_model=SuggestionResult)
def suggest(body: SuggestIn, client: SuggestionClient = Depends(get_suggestion_client)):
    """
    주어진 일정 목록으로 제안을 요청한다. 실패도 200으로, status에 종류를 담아 돌려준다.

    :param body: 일정 목록과 (선택) 제안 구간
    :type body: SuggestIn
    :return: 제안 결과
    :rtype: SuggestionResult
    """

    window = None
    if body.window_start and body.window_end:
        window = (body.window_start, body.window_end)
    result = client.fetch(body.events, window)
    logger.info("[Suggest] REST -> status=%s count=%d", result.status.value, len(result.suggestions))
    return result


@router.post("/plan", response_model=PlanOut)
def plan(
    days: int = Query(config.PLAN_DAYS, ge=1, le=31),
    now: Optional[datetime] = Query(None),
    client: SuggestionClient = Depends(get_suggestion_client),
    source: EventSource = Depends(google_event_source),
):
    """
    앞으로 days일의 일정을 읽어 제안을 받고, 제안마다 기본 캘린더에 저장한다(best effort).

    :param days: 조회 구간(일)
    :type days: int
    :param now: 구간 시작(기본: 현재 시각)
    :type now: datetime
    :return: 제안 결과와 저장 성공/실패 목록
    :rtype: PlanOut
    """

    planner = WeekPlanner(source, client, days=days)
    return planner.plan(now or datetime.now(timezone.utc))
