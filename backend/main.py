import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from routes.google_calendar import router as google_calendar_router
from routes.suggestions import router as suggestions_router
from services.suggestion_client import SuggestionClient

logging.basicConfig(level=config.LOG_LEVEL)

app = FastAPI()
# 호출 사이에 재사용하는 클라이언트(API 키 + HTTP 세션)
app.state.suggestion_client = SuggestionClient.from_env()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        config.WEB_ORIGIN
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(google_calendar_router)
app.include_router(suggestions_router)


@app.get("/health")
def health():
    return {"ok": True}
