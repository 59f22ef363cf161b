# schemas/suggestion_schema.py
from enum import Enum
from typing import Optional, List, Literal
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict, field_validator


class CalendarEvent(BaseModel):
    """
    캘린더 저장소에서 읽어온 일정의 최소 표현(제목/시작/끝).
    제목은 없을 수 있음.
    """
    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None
    start: datetime
    end: datetime


class SuggestedEvent(BaseModel):
    """
    모델이 제안한 새 일정. 아직 저장되지 않은 상태.
    JSON에서는 startDate/endDate 키를 사용한다.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    start: datetime = Field(alias="startDate")
    end: datetime = Field(alias="endDate")


# Chat Completions 요청/응답 모양
class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class CompletionRequest(BaseModel):
    model: str
    messages: List[ChatMessage]


class ChoiceMessage(BaseModel):
    content: str


class Choice(BaseModel):
    message: ChoiceMessage


class CompletionResponse(BaseModel):
    """
    Completion API의 바깥 봉투(envelope). content 안에 다시 JSON 문자열이 들어있음.
    """
    choices: List[Choice]


class SuggestionStatus(str, Enum):
    OK = "ok"
    ENCODE_ERROR = "encode_error"        # 요청 본문 직렬화 실패
    TRANSPORT_ERROR = "transport_error"  # 네트워크 실패 또는 빈 응답
    ENVELOPE_ERROR = "envelope_error"    # 바깥 봉투 JSON 해석 실패
    CONTENT_ERROR = "content_error"      # content 안의 제안 배열 해석 실패


class SuggestionResult(BaseModel):
    """
    제안 요청 한 번의 결과. 실패해도 예외 대신 status로 구분한다.
    """
    status: SuggestionStatus
    suggestions: List[SuggestedEvent] = Field(default_factory=list)
    error: Optional[str] = None
    http_status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == SuggestionStatus.OK


# IO 모델(요청/응답 스키마)
class SuggestIn(BaseModel):
    """
    /suggestions 엔드포인트 입력 스키마
    """
    events: List[CalendarEvent] = Field(default_factory=list)
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None

    @field_validator("window_end")
    @classmethod
    def _end_after_start(cls, v, info):
        start = info.data.get("window_start")
        if v and start and v < start:
            raise ValueError("window_end must be after window_start")
        return v


class PlanOut(BaseModel):
    """
    /suggestions/plan 엔드포인트 출력 스키마
    """
    result: SuggestionResult
    saved: List[SuggestedEvent] = Field(default_factory=list)
    failed: List[SuggestedEvent] = Field(default_factory=list)


class EventCreateIn(BaseModel):
    """
    /google/calendar/events 생성 입력. end/title이 없으면 기본값(1시간, 'New event')을 쓴다.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    start: datetime
    end: Optional[datetime] = None

    @field_validator("end")
    @classmethod
    def _end_after_start(cls, v, info):
        start = info.data.get("start")
        if v and start and v < start:
            raise ValueError("end must be after start")
        return v
