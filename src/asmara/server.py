import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel
from ulid import ULID

from asmara.application.config import AppConfig, resolve_config
from asmara.application.deck_config import deck_config_to_document
from asmara.application.factory import get_card_store, get_review_recorder
from asmara.application.study_service import StudySession
from asmara.consts import VERSION
from asmara.domain.errors import (
    DeckNotFoundError,
    InvalidCardError,
    InvalidRatingError,
    SessionFinishedError,
    StorageError,
)
from asmara.domain.models import CardRecord
from asmara.domain.ports import CardStore, ReviewRecorder

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("asmara.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"asmara server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info(f"asmara server shutting down, dropping {len(_sessions)} open sessions")
    _sessions.clear()


app = FastAPI(
    title="asmara server",
    description="Study sessions over spaced-repetition decks.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

_backend: dict[str, object] = {}


def get_config() -> AppConfig:
    if "config" not in _backend:
        _backend["config"] = resolve_config()
    return _backend["config"]  # type: ignore[return-value]


def get_store(config: AppConfig = Depends(get_config)) -> CardStore:
    if "store" not in _backend:
        _backend["store"] = get_card_store(config)
    return _backend["store"]  # type: ignore[return-value]


def get_recorder(config: AppConfig = Depends(get_config)) -> ReviewRecorder:
    if "recorder" not in _backend:
        _backend["recorder"] = get_review_recorder(config)
    return _backend["recorder"]  # type: ignore[return-value]


@dataclass
class _OpenSession:
    session: StudySession
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_used: float = field(default_factory=time.monotonic)


_sessions: dict[str, _OpenSession] = {}


def _get_session(session_id: str) -> _OpenSession:
    entry = _sessions.get(session_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    entry.last_used = time.monotonic()
    return entry


def _prune_sessions(config: AppConfig) -> None:
    """Drop idle sessions, then the least recently used ones beyond the cap."""
    now = time.monotonic()
    idle = [
        sid for sid, e in _sessions.items() if now - e.last_used > config.session_idle_seconds
    ]
    for sid in idle:
        del _sessions[sid]

    excess = len(_sessions) - config.max_open_sessions + 1
    if excess > 0:
        oldest = sorted(_sessions, key=lambda sid: _sessions[sid].last_used)[:excess]
        for sid in oldest:
            del _sessions[sid]
        idle.extend(oldest)

    if idle:
        logger.info(f"Evicted {len(idle)} abandoned sessions")


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class CardOut(BaseModel):
    id: str
    front: str
    back: str
    tags: list[str]
    status: str
    interval: float
    ease_factor: float
    current_step: int
    lapses: int
    due_date: datetime
    last_reviewed: datetime | None

    @classmethod
    def from_record(cls, card: CardRecord | None) -> "CardOut | None":
        if card is None:
            return None
        return cls(
            id=card.id,
            front=card.front,
            back=card.back,
            tags=list(card.tags),
            status=card.status.value,
            interval=card.interval,
            ease_factor=card.ease_factor,
            current_step=card.current_step,
            lapses=card.lapses,
            due_date=card.due_date,
            last_reviewed=card.last_reviewed,
        )


class StartSessionRequest(BaseModel):
    deck_id: str


class SessionResponse(BaseModel):
    # None when the deck had nothing due and no session was opened.
    session_id: str | None
    deck_id: str
    remaining: int
    finished: bool
    current: CardOut | None


class GradeRequest(BaseModel):
    # Plain int so out-of-range values reach the scheduler's own validation.
    rating: int


class GradeResponse(BaseModel):
    card: CardOut
    reinsert_offset: int | None
    recorded: bool
    remaining: int
    finished: bool
    next: CardOut | None


class PreviewEntry(BaseModel):
    status: str
    interval: float
    due_date: datetime


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.get("/decks/{deck_id}/config")
async def get_deck_config(deck_id: str, store: CardStore = Depends(get_store)):
    try:
        config = await store.load_deck_config(deck_id)
    except DeckNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StorageError as e:
        logger.error(f"Loading deck config failed: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e
    return deck_config_to_document(config)


@app.post("/sessions", response_model=SessionResponse)
async def start_session(
    req: StartSessionRequest,
    store: CardStore = Depends(get_store),
    recorder: ReviewRecorder = Depends(get_recorder),
    config: AppConfig = Depends(get_config),
):
    """Load the deck's due cards into a new study session."""
    session = StudySession(store, recorder, req.deck_id, tunables=config.tunables())
    try:
        await session.start()
    except DeckNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StorageError as e:
        logger.error(f"Starting session failed: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e

    if session.is_finished:
        logger.info(f"Nothing due on deck {req.deck_id}; no session opened")
        return _session_response(None, session)

    _prune_sessions(config)
    session_id = str(ULID())
    _sessions[session_id] = _OpenSession(session)
    logger.info(f"Session {session_id} opened on deck {req.deck_id} ({session.remaining} due)")
    return _session_response(session_id, session)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    entry = _get_session(session_id)
    return _session_response(session_id, entry.session)


@app.get("/sessions/{session_id}/preview")
async def preview_session(session_id: str) -> dict[int, PreviewEntry]:
    """Next state of the current card for each rating."""
    entry = _get_session(session_id)
    try:
        outcomes = entry.session.preview_current()
    except InvalidCardError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {
        int(r): PreviewEntry(
            status=res.card.status.value, interval=res.card.interval, due_date=res.card.due_date
        )
        for r, res in outcomes.items()
    }


@app.post("/sessions/{session_id}/grade", response_model=GradeResponse)
async def grade_card(session_id: str, req: GradeRequest):
    """Grade the session's current card."""
    entry = _get_session(session_id)
    session = entry.session

    async with entry.lock:
        try:
            outcome = await session.grade(req.rating)
        except (InvalidRatingError, InvalidCardError) as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except SessionFinishedError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        except StorageError as e:
            logger.error(f"Grading in session {session_id} failed: {e}")
            raise HTTPException(status_code=503, detail=str(e)) from e

    if not outcome.recorded:
        logger.warning(f"Review for card {outcome.card.id} was not logged")
    if session.is_finished:
        _sessions.pop(session_id, None)

    return GradeResponse(
        card=CardOut.from_record(outcome.card),
        reinsert_offset=outcome.hint.offset if outcome.hint else None,
        recorded=outcome.recorded,
        remaining=session.remaining,
        finished=session.is_finished,
        next=CardOut.from_record(outcome.next_card),
    )


@app.delete("/sessions/{session_id}")
async def close_session(session_id: str):
    _get_session(session_id)
    _sessions.pop(session_id, None)
    return {"ok": True}


def _session_response(session_id: str | None, session: StudySession) -> SessionResponse:
    return SessionResponse(
        session_id=session_id,
        deck_id=session.deck_id,
        remaining=session.remaining,
        finished=session.is_finished,
        current=CardOut.from_record(session.current),
    )
