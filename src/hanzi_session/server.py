import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Literal

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel
from ulid import ULID

from hanzi_session.application.config import resolve_config
from hanzi_session.application.factory import build_session, get_media_cache, get_services
from hanzi_session.application.orchestrator import Direction, StudySession
from hanzi_session.consts import VERSION
from hanzi_session.domain.constants import MAX_CARD_COUNT, MIN_CARD_COUNT
from hanzi_session.domain.errors import SessionError, UnknownCardError
from hanzi_session.domain.models import (
    GradeResult,
    SessionPreferences,
    SessionStatistics,
    StudyItem,
)
from hanzi_session.infrastructure.vocabulary import load_vocabulary

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("hanzi_session.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"hanzi-session server v{VERSION} starting up...")
    config = resolve_config()
    app.state.config = config
    app.state.services = get_services(config)
    app.state.cache = get_media_cache(config)
    app.state.vocabulary = load_vocabulary(config.vocabulary_path) if config.vocabulary_path else []
    app.state.sessions = {}
    logger.info(f"Loaded {len(app.state.vocabulary)} vocabulary entries")
    yield
    # Shutdown
    logger.info("hanzi-session server shutting down...")
    for session in app.state.sessions.values():
        await session.close()
    app.state.sessions.clear()
    await app.state.services.close()


app = FastAPI(
    title="hanzi-session Server",
    description="Study-session API for the spaced-repetition vocabulary trainer.",
    version=VERSION,
    lifespan=lifespan,
)


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class StartSessionRequest(BaseModel):
    # If None, use defaults/config file.
    level: str | None = None
    character_set: Literal["simplified", "traditional"] | None = None
    card_count: int | None = None
    study_mode: Literal["ChineseToEnglish", "EnglishToChinese"] | None = None


class CardView(BaseModel):
    card_id: str
    display_form: str
    pinyin: str
    meanings: list[str]
    is_new: bool
    is_due: bool
    overdue_days: int | None = None
    prior_outcome: bool | None = None


class StatisticsView(BaseModel):
    total_cards: int
    cards_reviewed: int
    correct_count: int
    incorrect_count: int
    new_cards_studied: int
    review_cards_studied: int
    accuracy: float | None = None


class StartSessionResponse(BaseModel):
    session_id: str
    level: str
    character_set: str
    total_cards: int
    due_count: int
    new_count: int
    capabilities: dict[str, bool]
    no_cards_found: bool
    cards: list[CardView]


class GradeRequest(BaseModel):
    card_id: str
    is_correct: bool


class GradeResponse(BaseModel):
    card_id: str
    is_correct: bool
    status: str
    synced: bool
    error: str | None = None
    statistics: StatisticsView


class NavigateRequest(BaseModel):
    direction: Direction


class NavigateResponse(BaseModel):
    position: int
    moved: bool
    finished: bool
    card: CardView | None = None


class PrefetchRequest(BaseModel):
    enabled: bool


class EndSessionResponse(BaseModel):
    statistics: StatisticsView
    recorded_session_id: str | None = None


def _card_view(item: StudyItem) -> CardView:
    return CardView(
        card_id=item.card_id,
        display_form=item.display_form,
        pinyin=item.entry.pinyin,
        meanings=item.entry.meanings,
        is_new=item.is_new,
        is_due=item.is_due,
        overdue_days=item.due.overdue_days if item.due else None,
        prior_outcome=item.prior_outcome,
    )


def _stats_view(stats: SessionStatistics) -> StatisticsView:
    return StatisticsView(**asdict(stats), accuracy=stats.accuracy)


def _grade_response(result: GradeResult, stats: SessionStatistics) -> GradeResponse:
    return GradeResponse(
        card_id=result.card_id,
        is_correct=result.is_correct,
        status=result.status.value,
        synced=result.synced,
        error=result.error,
        statistics=_stats_view(stats),
    )


async def _evict_oldest_sessions(sessions: dict[str, StudySession], keep: int) -> None:
    """Close and drop the oldest open sessions until at most ``keep`` remain."""
    while sessions and len(sessions) > keep:
        session_id = next(iter(sessions))
        session = sessions.pop(session_id)
        logger.warning(f"Evicting session {session_id}: too many open sessions")
        await session.close()


def _get_session(request: Request, session_id: str) -> StudySession:
    session = request.app.state.sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session


# ---------------------------------------------------------------------------
# Session endpoints
# ---------------------------------------------------------------------------


@app.post("/sessions", response_model=StartSessionResponse)
async def start_session(req: StartSessionRequest, request: Request):
    """
    Compose a new study session from the loaded vocabulary.
    """
    state = request.app.state
    config = state.config
    card_count = req.card_count if req.card_count is not None else config.card_count
    prefs = SessionPreferences(
        level=req.level or config.level,
        character_set=req.character_set or config.character_set,
        card_count=max(MIN_CARD_COUNT, min(card_count, MAX_CARD_COUNT)),
        study_mode=req.study_mode or config.study_mode,
    )

    session = build_session(config, state.services, state.cache)
    try:
        queue = await session.start_session(prefs, state.vocabulary)
    except Exception as e:
        logger.error(f"Failed to start session: {e}", exc_info=True)
        await session.close()
        raise HTTPException(status_code=500, detail=str(e)) from e

    await _evict_oldest_sessions(state.sessions, state.config.max_open_sessions - 1)
    session_id = str(ULID())
    state.sessions[session_id] = session
    logger.info(f"Started session {session_id} with {len(queue)} cards for {prefs.level}")

    return StartSessionResponse(
        session_id=session_id,
        level=queue.level,
        character_set=queue.character_set,
        total_cards=len(queue),
        due_count=queue.due_count,
        new_count=queue.new_count,
        no_cards_found=queue.is_empty,
        capabilities=asdict(session.capabilities),
        cards=[_card_view(item) for item in queue],
    )


@app.get("/sessions/{session_id}", response_model=StatisticsView)
async def get_statistics(session_id: str, request: Request):
    session = _get_session(request, session_id)
    return _stats_view(session.statistics)


@app.post("/sessions/{session_id}/grade", response_model=GradeResponse)
async def grade_card(session_id: str, req: GradeRequest, request: Request):
    """Grade one card. Scheduling failures are reported in ``error``."""
    session = _get_session(request, session_id)
    try:
        result = await session.grade(req.card_id, req.is_correct)
    except UnknownCardError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return _grade_response(result, session.statistics)


@app.post("/sessions/{session_id}/navigate", response_model=NavigateResponse)
async def navigate(session_id: str, req: NavigateRequest, request: Request):
    session = _get_session(request, session_id)
    result = session.navigate(req.direction)
    return NavigateResponse(
        position=result.position,
        moved=result.moved,
        finished=result.finished,
        card=_card_view(result.item) if result.item else None,
    )


@app.post("/sessions/{session_id}/prefetch")
async def set_prefetch(session_id: str, req: PrefetchRequest, request: Request):
    session = _get_session(request, session_id)
    session.set_prefetch_enabled(req.enabled)
    return {"enabled": req.enabled}


@app.post("/sessions/{session_id}/retry")
async def retry_failed_writes(session_id: str, request: Request):
    """Re-send grades whose scheduling write never succeeded."""
    session = _get_session(request, session_id)
    results = await session.retry_failed_writes()
    return {
        "results": [
            {"card_id": r.card_id, "synced": r.synced, "error": r.error} for r in results
        ]
    }


@app.post("/sessions/{session_id}/cards/{card_id}/reset")
async def reset_card(session_id: str, card_id: str, request: Request):
    session = _get_session(request, session_id)
    try:
        progress = await session.reset_card(card_id)
    except UnknownCardError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    if progress is None:
        raise HTTPException(status_code=503, detail="Scheduling service unavailable")
    return {"progress": asdict(progress), "statistics": _stats_view(session.statistics)}


@app.post("/sessions/{session_id}/end", response_model=EndSessionResponse)
async def end_session(session_id: str, request: Request):
    """
    End the session and submit its summary.
    Progress failures are logged; statistics are always returned.
    """
    session = _get_session(request, session_id)
    try:
        stats = await session.end_session()
    except SessionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    finally:
        request.app.state.sessions.pop(session_id, None)
        await session.close()

    return EndSessionResponse(
        statistics=_stats_view(stats),
        recorded_session_id=session.recorder.session_id if session.recorder else None,
    )
