import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lostlink import config
from lostlink.db.db import init_db
from lostlink.errors import PersistenceError
from lostlink.routers import chat, items, matches, notifications, realtime
from lostlink.services.notifier import NotificationEmitter, RecentDeliveryGuard
from lostlink.services.pipeline import MatchingServices
from lostlink.services.realtime import ConnectionManager
from lostlink.services.scorer import GeminiMatchScorer
from lostlink.services.vision import GoogleVisionClient
from lostlink.utils.logging import configure_logging

logger = logging.getLogger(__name__)


def build_services(connections: ConnectionManager) -> MatchingServices:
    return MatchingServices(
        scorer=GeminiMatchScorer(api_key=config.GEMINI_API_KEY),
        vision=GoogleVisionClient(),
        emitter=NotificationEmitter(connections, RecentDeliveryGuard()),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(level=config.LOG_LEVEL)
    init_db()

    app.state.realtime = ConnectionManager()
    app.state.services = build_services(app.state.realtime)
    logger.info("LostLink started")

    yield


app = FastAPI(lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Storage error"})


# Register routers
app.include_router(items.router, prefix="/items", tags=["Items"])
app.include_router(matches.router, prefix="/matches", tags=["Matches"])
app.include_router(chat.router, prefix="/matches", tags=["Chat"])
app.include_router(chat.inbox_router, prefix="/chats", tags=["Chat"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
app.include_router(realtime.router, tags=["Realtime"])


@app.get("/")
def root():
    return {"status": "ok"}
