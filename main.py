"""Finance Coach Service — FastAPI server.

- One open coaching session per user, held in process memory
- Onboarding sessions greet proactively and flip to coaching after enough turns
- Coaching instructions carry the user's profile and active goals
- Inference failures turn into an on-brand fallback reply, never an HTTP error
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from coaching_pkg.config import Settings
from coaching_pkg.db import CoachStore, SupabaseStore
from coaching_pkg.errors import EmptyMessageError, SessionEndedError, TurnInFlightError
from coaching_pkg.inference import AgentsInference, InferenceService
from coaching_pkg.models import Goal, GoalDomain, GoalStatus, Turn
from coaching_pkg.session import CoachingSession, SessionRegistry

load_dotenv()

# ── Logging ─────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("coach.server")


# ── FastAPI app ─────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=== Finance Coach Service starting ===")
    yield
    logger.info("=== Finance Coach Service shutting down ===")


app = FastAPI(
    title="Finance Coach Service",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request / Response models ──────────────────────────────────────

class SessionResponse(BaseModel):
    session_id: Optional[str] = None
    mode: str
    is_onboarding: bool
    transcript: list[Turn] = []


class MessageRequest(BaseModel):
    message: str


class MessageResponse(BaseModel):
    response: str
    fallback: bool = False
    mode: str
    onboarding_completed: bool = False
    transcript: list[Turn] = []
    processing_ms: int = 0


class EndSessionResponse(BaseModel):
    session_id: Optional[str] = None
    ended_at: datetime


class GoalCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    target_value: Optional[float] = None
    target_unit: Optional[str] = None
    deadline: Optional[date] = None
    domain: Optional[GoalDomain] = None
    status: GoalStatus = "active"


class GoalStatusUpdate(BaseModel):
    status: GoalStatus


# ── Singletons / dependencies ──────────────────────────────────────
_settings: Settings | None = None
_store: CoachStore | None = None
_inference: InferenceService | None = None
_registry = SessionRegistry()


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def get_store() -> CoachStore:
    global _store
    if _store is None:
        _store = SupabaseStore()
    return _store


def get_inference() -> InferenceService:
    """Lazy-init the inference adapter (singleton)."""
    global _inference
    if _inference is None:
        _inference = AgentsInference(get_settings())
        logger.info("Inference adapter built")
    return _inference


def get_registry() -> SessionRegistry:
    return _registry


def current_user_id(
    authorization: str = Header(default=""),
    store: CoachStore = Depends(get_store),
) -> str:
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    user_id = store.get_current_user(token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user_id


def _open_session(user_id: str, registry: SessionRegistry) -> CoachingSession:
    session = registry.get(user_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No open session")
    return session


# ── Session endpoints ──────────────────────────────────────────────

@app.post("/sessions", response_model=SessionResponse)
async def open_session(
    user_id: str = Depends(current_user_id),
    store: CoachStore = Depends(get_store),
    inference: InferenceService = Depends(get_inference),
    registry: SessionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
):
    """Start a new session, ending the user's previous one if it is still open."""
    session = await registry.open(store, inference, user_id, settings)
    return SessionResponse(
        session_id=session.session_id,
        mode=session.state.value,
        is_onboarding=session.controller.is_onboarding_snapshot,
        transcript=list(session.transcript.turns),
    )


@app.post("/sessions/current/messages", response_model=MessageResponse)
async def send_message(
    req: MessageRequest,
    user_id: str = Depends(current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    start = time.time()
    session = _open_session(user_id, registry)
    try:
        result = await session.send(req.message)
    except EmptyMessageError:
        raise HTTPException(status_code=400, detail="Message must not be empty")
    except (TurnInFlightError, SessionEndedError) as e:
        raise HTTPException(status_code=409, detail=str(e))

    elapsed = int((time.time() - start) * 1000)
    logger.info(
        f"[chat] done user={user_id} fallback={result.fallback} "
        f"len={len(result.reply)} ms={elapsed}"
    )
    return MessageResponse(
        response=result.reply,
        fallback=result.fallback,
        mode=session.state.value,
        onboarding_completed=result.onboarding_completed,
        transcript=list(result.transcript.turns),
        processing_ms=elapsed,
    )


@app.post("/sessions/current/end", response_model=EndSessionResponse)
async def end_session(
    user_id: str = Depends(current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _open_session(user_id, registry)
    ended_at = registry.close(user_id)
    return EndSessionResponse(session_id=session.session_id, ended_at=ended_at)


# ── Goal endpoints ─────────────────────────────────────────────────

@app.get("/goals", response_model=list[Goal])
async def list_goals(
    user_id: str = Depends(current_user_id),
    store: CoachStore = Depends(get_store),
):
    """All goals for the user, newest first."""
    return store.fetch_goals(user_id, statuses=None)


@app.post("/goals", response_model=Goal)
async def create_goal(
    req: GoalCreate,
    user_id: str = Depends(current_user_id),
    store: CoachStore = Depends(get_store),
):
    goal = store.insert_goal(user_id, req.model_dump())
    if goal is None:
        raise HTTPException(status_code=502, detail="Could not save goal")
    return goal


@app.patch("/goals/{goal_id}")
async def update_goal(
    goal_id: str,
    req: GoalStatusUpdate,
    user_id: str = Depends(current_user_id),
    store: CoachStore = Depends(get_store),
):
    if not store.update_goal_status(user_id, goal_id, req.status):
        raise HTTPException(status_code=404, detail="Goal not found")
    return {"id": goal_id, "status": req.status}


# ── Health endpoint ────────────────────────────────────────────────

@app.get("/health")
async def health(registry: SessionRegistry = Depends(get_registry)):
    return {
        "status": "ok",
        "version": "1.0.0",
        "open_sessions": len(registry),
    }


# ── Run directly ───────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8100"))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)
