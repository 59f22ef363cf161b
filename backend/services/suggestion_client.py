# services/suggestion_client.py
# OpenAI Chat Completions 호출 - 기존 일정을 보내고 새 일정 제안을 받아옴

import json, logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

import requests
from pydantic import TypeAdapter, ValidationError

import config
from schemas.suggestion_schema import (
    CalendarEvent,
    ChatMessage,
    CompletionRequest,
    CompletionResponse,
    SuggestedEvent,
    SuggestionResult,
    SuggestionStatus,
)
from routes.schedule_time import format_prompt_timestamp

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = "You are a helpful assistant that schedules events."
NO_TITLE = "(No Title)"
PROMPT_TEMPLATE = (
    "Here are my existing events:\n{events}\n"
    "{window}"
    "Suggest additional events for the upcoming week. "
    "Respond only with a JSON array of objects "
    '{{"title": String, "startDate": "ISO8601", "endDate": "ISO8601"}}.'
)

_SUGGESTIONS = TypeAdapter(List[SuggestedEvent])

Window = Tuple[datetime, datetime]


class SuggestionError(Exception):
    """제안 응답 해석 실패"""


class EnvelopeDecodeError(SuggestionError):
    """바깥 봉투(choices/message/content) 해석 실패"""


class ContentDecodeError(SuggestionError):
    """content 문자열 안의 제안 배열 해석 실패"""


def _event_line(e: CalendarEvent) -> str:
    return f"{e.title or NO_TITLE} from {format_prompt_timestamp(e.start)} to {format_prompt_timestamp(e.end)}"


class SuggestionClient:
    """
    기존 일정을 바탕으로 새 일정을 제안받는 클라이언트.

    호출마다 요청/응답 객체를 새로 만들고, 호출 사이에 공유하는 것은 API 키와 HTTP 세션뿐이다.
    실패는 예외 대신 SuggestionResult.status로 돌려준다.

    :param api_key: Completion API 인증키 (로그에 남기지 않음)
    :type api_key: str
    :param session: requests.Session 호환 객체(post 지원). 없으면 새로 만든다
    :param base_url: API 기본 URL
    :type base_url: str
    :param model: 모델 이름
    :type model: str
    :param timeout: 요청 타임아웃(초). None이면 transport 기본값
    :type timeout: Optional[float]
    :param executor: fetch_async에 쓸 executor
    :type executor: Optional[Executor]
    """

    def __init__(
        self,
        api_key: str,
        session=None,
        base_url: str = config.OPENAI_BASE,
        model: str = config.OPENAI_MODEL,
        timeout: Optional[float] = None,
        executor: Optional[Executor] = None,
    ):
        self._api_key = api_key
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(thread_name_prefix="suggest")
        logger.info("[Suggest] client ready: model=%s base=%s key_loaded=%s", model, self.base_url, bool(api_key))

    @classmethod
    def from_env(cls, session=None) -> "SuggestionClient":
        return cls(
            config.OPENAI_API_KEY,
            session=session,
            base_url=config.OPENAI_BASE,
            model=config.OPENAI_MODEL,
            timeout=config.OPENAI_TIMEOUT,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def __repr__(self):
        return f"SuggestionClient(model={self.model!r}, base_url={self.base_url!r})"

    # 요청 구성
    def build_prompt(self, events: Sequence[CalendarEvent], window: Optional[Window] = None) -> str:
        """
        일정 목록을 한 줄씩 "<제목> from <시작> to <끝>" 으로 나열해 사용자 프롬프트를 만든다.
        제목이 없으면 "(No Title)"을 쓴다. 시각 형식은 format_prompt_timestamp 참고.

        :param events: 기존 일정(입력 순서 유지)
        :type events: Sequence[CalendarEvent]
        :param window: 제안 대상 구간. 있으면 구간을 한 줄 덧붙인다
        :type window: Optional[Tuple[datetime, datetime]]
        :return: 프롬프트 문자열
        :rtype: str
        """

        lines = "\n".join(_event_line(e) for e in events)
        window_line = ""
        if window:
            w_start, w_end = window
            window_line = (
                f"The upcoming week runs from {format_prompt_timestamp(w_start)} "
                f"to {format_prompt_timestamp(w_end)}.\n"
            )
        return PROMPT_TEMPLATE.format(events=lines, window=window_line)

    def build_request(self, events: Sequence[CalendarEvent], window: Optional[Window] = None) -> CompletionRequest:
        return CompletionRequest(
            model=self.model,
            messages=[
                ChatMessage(role="system", content=SYSTEM_INSTRUCTION),
                ChatMessage(role="user", content=self.build_prompt(events, window)),
            ],
        )

    @staticmethod
    def encode_request(request: CompletionRequest) -> bytes:
        """
        요청을 UTF-8 JSON 바이트로 직렬화한다.

        :raises ValueError: 직렬화/인코딩 불가(예: 짝 없는 surrogate 문자)
        """
        return json.dumps(request.model_dump(), ensure_ascii=False, allow_nan=False).encode("utf-8")

    def _headers(self):
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    # 응답 해석(2단계)
    @staticmethod
    def parse_envelope(body: bytes) -> str:
        """
        1단계: Completion 봉투를 해석해 첫 번째 choice의 content를 꺼낸다. 나머지 choice는 무시.

        :param body: 응답 본문
        :type body: bytes
        :return: 모델이 생성한 content 문자열
        :rtype: str
        :raises EnvelopeDecodeError: 봉투 JSON이 깨졌거나 모양이 다르거나 choice가 없음
        """

        try:
            envelope = CompletionResponse.model_validate_json(body)
        except ValidationError as e:
            raise EnvelopeDecodeError(f"invalid completion envelope: {e.error_count()} error(s)") from e
        if not envelope.choices:
            raise EnvelopeDecodeError("completion has no choices")
        return envelope.choices[0].message.content

    @staticmethod
    def parse_suggestions(content: str) -> List[SuggestedEvent]:
        """
        2단계: content 문자열 자체를 SuggestedEvent 배열 JSON으로 해석한다.
        배열 앞뒤에 설명 문장이 붙어 있어도 잘라내지 않고 실패로 본다.

        :param content: 첫 번째 choice의 message.content
        :type content: str
        :return: 제안 목록(비어 있을 수 있음)
        :rtype: List[SuggestedEvent]
        :raises ContentDecodeError: JSON이 아니거나 모양이 다름
        """

        try:
            return _SUGGESTIONS.validate_json(content)
        except ValidationError as e:
            raise ContentDecodeError(f"invalid suggestion array: {e.error_count()} error(s)") from e

    # 호출
    def fetch(self, events: Sequence[CalendarEvent], window: Optional[Window] = None) -> SuggestionResult:
        """
        일정 목록으로 제안을 요청한다. 호출 한 번에 POST 요청은 정확히 한 번(직렬화 실패 시 0번).
        재시도/스트리밍 없음.

        :param events: 기존 일정 (변경하지 않음)
        :type events: Sequence[CalendarEvent]
        :param window: 제안 대상 구간
        :type window: Optional[Tuple[datetime, datetime]]
        :return: 상태가 붙은 결과
        :rtype: SuggestionResult
        """

        try:
            body = self.encode_request(self.build_request(events, window))
        except (TypeError, ValueError) as e:
            logger.error("[Suggest] request encode failed: %s", e)
            return SuggestionResult(status=SuggestionStatus.ENCODE_ERROR, error=str(e))

        logger.debug("[Suggest] req: model=%s events=%d bytes=%d", self.model, len(events), len(body))

        try:
            r = self.session.post(self.endpoint, headers=self._headers(), data=body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("[Suggest] transport failed: %s", e.__class__.__name__)
            return SuggestionResult(status=SuggestionStatus.TRANSPORT_ERROR, error=str(e))

        status_code = getattr(r, "status_code", None)
        if not r.content:
            logger.error("[Suggest] empty response body (status=%s)", status_code)
            return SuggestionResult(
                status=SuggestionStatus.TRANSPORT_ERROR, error="empty response body", http_status=status_code
            )
        if not r.ok:
            logger.error("[Suggest] API error: %s %s", status_code, r.text[:200])

        try:
            content = self.parse_envelope(r.content)
        except EnvelopeDecodeError as e:
            logger.error("[Suggest] %s (status=%s)", e, status_code)
            return SuggestionResult(status=SuggestionStatus.ENVELOPE_ERROR, error=str(e), http_status=status_code)

        try:
            suggestions = self.parse_suggestions(content)
        except ContentDecodeError as e:
            logger.warning("[Suggest] %s | content='%s...'", e, content[:80].replace("\n", " "))
            return SuggestionResult(status=SuggestionStatus.CONTENT_ERROR, error=str(e), http_status=status_code)

        logger.debug("[Suggest] res: suggestions=%d", len(suggestions))
        return SuggestionResult(status=SuggestionStatus.OK, suggestions=suggestions, http_status=status_code)

    def fetch_suggestions(self, events: Sequence[CalendarEvent], window: Optional[Window] = None) -> List[SuggestedEvent]:
        """
        fetch의 얇은 버전. 어떤 실패든 빈 목록을 돌려준다.
        """
        return self.fetch(events, window).suggestions

    def fetch_async(
        self,
        events: Sequence[CalendarEvent],
        window: Optional[Window] = None,
        callback: Optional[Callable[[SuggestionResult], None]] = None,
    ) -> "Future[SuggestionResult]":
        """
        fetch를 워커 스레드에서 실행한다. 취소는 지원하지 않는다.
        callback도 워커 스레드에서 호출되므로, 호출 측 상태를 만지기 전에 직접 디스패치해야 한다.

        :param callback: 결과를 받을 함수
        :return: SuggestionResult를 담은 Future
        :rtype: Future[SuggestionResult]
        """

        def run():
            result = self.fetch(events, window)
            if callback:
                callback(result)
            return result

        return self._executor.submit(run)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        self.session.close()
