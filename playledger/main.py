from fastapi import FastAPI, Depends, HTTPException, Path, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional
from starlette.middleware.base import BaseHTTPMiddleware

import asyncio
import json
import logging
import time
import uuid

from . import deps, realtime_publisher
from .deps import get_caller, get_platform
from .errors import LedgerError
from .events import Event
from .logging_utils import setup_logging, get_logger, request_id_ctx
from .platform import Platform
from .validation import MAX_INT


# Rate limiting - store last request times per IP
_RATE_LIMIT_STORE: dict = {}


def check_rate_limit(request: Request, max_requests: int = 30, window_seconds: int = 60) -> bool:
    """
    Simple in-memory rate limiting. Returns True if request is allowed, False if rate limited.
    """
    client_ip = request.client.host if request.client else "unknown"
    current_time = time.time()

    cutoff_time = current_time - window_seconds
    # forget clients whose newest request fell out of the window
    for ip in [ip for ip, times in _RATE_LIMIT_STORE.items() if not times or times[-1] <= cutoff_time]:
        del _RATE_LIMIT_STORE[ip]
    _RATE_LIMIT_STORE[client_ip] = [
        req_time for req_time in _RATE_LIMIT_STORE.get(client_ip, [])
        if req_time > cutoff_time
    ]

    if len(_RATE_LIMIT_STORE[client_ip]) >= max_requests:
        return False

    _RATE_LIMIT_STORE[client_ip].append(current_time)
    return True


def rate_limit_dependency(max_requests: int = 30, window_seconds: int = 60):
    """Create a dependency function that raises HTTP 429 if rate limited"""
    def dependency(request: Request):
        if not check_rate_limit(request, max_requests, window_seconds):
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Maximum {max_requests} requests per {window_seconds} seconds."
            )
    return dependency


# live event feed: {ws: {'connected_at': float}}
_WS_CONNECTIONS: dict = {}
# loop that serves the websockets; events are committed on worker threads
_EVENT_LOOP: Optional[asyncio.AbstractEventLoop] = None


def _prepare_message(e: dict):
    """Serialize event to JSON."""
    try:
        return json.dumps(e)
    except Exception:
        return None


async def _send_to_websocket(ws: WebSocket, msg, ev) -> bool:
    """Send one message. Return False if the socket is gone."""
    try:
        if msg is not None:
            await ws.send_text(msg)
        else:
            await ws.send_json(ev)
        return True
    except Exception as send_exc:
        logger.debug("ws_send_error", extra={"error": str(send_exc)})
        return False


async def broadcast_event(event: dict):
    """Send a committed event to every connected websocket."""
    logger.debug("broadcast_event", extra={"event": event.get("type"), "ws_count": len(_WS_CONNECTIONS)})
    json_message = _prepare_message(event)
    dead = []
    for ws in list(_WS_CONNECTIONS):
        if not await _send_to_websocket(ws, json_message, event):
            dead.append(ws)
    for d in dead:
        _WS_CONNECTIONS.pop(d, None)


def ws_subscriber(event: Event) -> None:
    """EventBus subscriber that hands events to the websocket loop."""
    if _EVENT_LOOP is None or not _WS_CONNECTIONS:
        return
    asyncio.run_coroutine_threadsafe(broadcast_event(event.to_dict()), _EVENT_LOOP)


setup_logging(logging.INFO)
logger = get_logger("playledger.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _EVENT_LOOP
    from .init_db import init_db

    if deps.platform is None:
        deps.platform = init_db()
    _EVENT_LOOP = asyncio.get_running_loop()
    unsubscribe = [deps.platform.events.subscribe(ws_subscriber)]
    nats_handle = realtime_publisher.attach(deps.platform.events, loop=_EVENT_LOOP)
    if nats_handle:
        unsubscribe.append(nats_handle)
    logger.info("startup_complete", extra={"identity": deps.platform.owner})
    try:
        yield
    finally:
        for fn in unsubscribe:
            fn()
        _EVENT_LOOP = None


app = FastAPI(title="playledger", lifespan=lifespan)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_ctx.set(rid)
        start = time.time()
        client = request.client.host if request.client else "-"
        response = None
        try:
            response = await call_next(request)
            return response
        except Exception:
            logger.exception(
                "request_error",
                extra={"path": str(request.url), "method": request.method},
            )
            raise
        finally:
            duration_ms = int((time.time() - start) * 1000)
            status = getattr(response, "status_code", 500)
            logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": status,
                    "duration_ms": duration_ms,
                    "client": client,
                    "caller": request.headers.get("x-caller"),
                },
            )
            if response is not None:
                response.headers["X-Request-ID"] = rid
            request_id_ctx.reset(token)


app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.warning("ledger_error", extra={"method": request.method, "path": request.url.path, "code": exc.code, "error": exc.message})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # raw input is not echoed back; it may not even be encodable
    errors = [{k: v for k, v in e.items() if k != "input"} for e in exc.errors()]
    logger.warning("validation_error", extra={"method": request.method, "url": str(request.url), "error": str(errors)})
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(errors), "message": "Input validation failed"},
    )


# ----------------------------------------------------------------------
# Request bodies
# ----------------------------------------------------------------------

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=20)

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        # byte length is what the ledger enforces; reject early for multibyte names
        try:
            size = len(v.encode("utf-8"))
        except UnicodeEncodeError:
            raise ValueError("Username is not valid UTF-8")
        if size > 20:
            raise ValueError('Username too long (max 20 bytes)')
        return v


class PlayGameRequest(BaseModel):
    duration: int = Field(..., ge=0, le=MAX_INT)
    score: int = Field(..., le=MAX_INT)
    is_win: bool


class SpendRequest(BaseModel):
    amount: int = Field(..., le=MAX_INT)
    item_name: str = Field(..., max_length=64)


class CreateTournamentRequest(BaseModel):
    name: str = Field(..., max_length=100)
    entry_fee: int = Field(0, ge=0, le=MAX_INT)
    duration_secs: int = Field(..., le=MAX_INT)


class CompleteTournamentRequest(BaseModel):
    winner: str = Field(..., min_length=1)


class GameParametersRequest(BaseModel):
    base_reward: int = Field(..., ge=0, le=MAX_INT)
    streak_multiplier: int = Field(..., ge=0, le=MAX_INT)
    daily_limit: int = Field(..., ge=0, le=MAX_INT)
    minimum_game_duration: Optional[int] = Field(None, ge=0, le=MAX_INT)


# ----------------------------------------------------------------------
# Routes
# ----------------------------------------------------------------------

@app.get("/health", include_in_schema=False)
def health():
    return JSONResponse({"status": "ok"})


@app.post("/api/players", status_code=201)
def register_player(
    body: RegisterRequest,
    caller: str = Depends(get_caller),
    platform: Platform = Depends(get_platform),
    _: None = Depends(rate_limit_dependency(max_requests=20, window_seconds=60)),
):
    ok = platform.register_player(caller, body.username)
    return {"registered": ok, "identity": caller}


@app.get("/api/players")
def registered_players(platform: Platform = Depends(get_platform)):
    return {"players": platform.get_registered_players()}


@app.get("/api/players/{identity}")
def player_stats(identity: str, platform: Platform = Depends(get_platform)):
    return {"identity": identity, **asdict(platform.get_player_stats(identity))}


@app.get("/api/players/{identity}/history")
def player_history(identity: str, platform: Platform = Depends(get_platform)):
    return {"identity": identity, "sessions": platform.get_player_game_history(identity)}


@app.get("/api/players/{identity}/transactions")
def player_transactions(identity: str, platform: Platform = Depends(get_platform)):
    rows = platform.get_token_history(identity)
    return {"identity": identity, "transactions": [r.model_dump() for r in rows]}


@app.post("/api/players/{identity}/pause")
def pause_player(identity: str, caller: str = Depends(get_caller), platform: Platform = Depends(get_platform)):
    platform.pause_player_account(caller, identity)
    return {"identity": identity, "is_active": False}


@app.post("/api/players/{identity}/resume")
def resume_player(identity: str, caller: str = Depends(get_caller), platform: Platform = Depends(get_platform)):
    platform.resume_player_account(caller, identity)
    return {"identity": identity, "is_active": True}


@app.post("/api/games")
def play_game(
    body: PlayGameRequest,
    caller: str = Depends(get_caller),
    platform: Platform = Depends(get_platform),
    _: None = Depends(rate_limit_dependency(max_requests=60, window_seconds=60)),
):
    earned = platform.play_game(caller, body.duration, body.score, body.is_win)
    return {"tokens_earned": earned}


@app.get("/api/games/{session_id}")
def game_session(session_id: int = Path(..., le=MAX_INT), platform: Platform = Depends(get_platform)):
    gs = platform.get_game_session(session_id)
    if gs is None:
        raise HTTPException(status_code=404, detail="session not found")
    return gs.model_dump()


@app.post("/api/tokens/spend")
def spend_tokens(body: SpendRequest, caller: str = Depends(get_caller), platform: Platform = Depends(get_platform)):
    ok = platform.spend_tokens(caller, body.amount, body.item_name)
    return {"spent": ok}


@app.post("/api/tournaments", status_code=201)
def create_tournament(
    body: CreateTournamentRequest,
    caller: str = Depends(get_caller),
    platform: Platform = Depends(get_platform),
):
    tid = platform.create_tournament(caller, body.name, body.entry_fee, body.duration_secs)
    return {"tournament_id": tid}


@app.get("/api/tournaments")
def list_tournaments(active: bool = False, platform: Platform = Depends(get_platform)):
    return {"tournaments": [asdict(t) for t in platform.list_tournaments(active_only=active)]}


@app.get("/api/tournaments/{tournament_id}")
def get_tournament(tournament_id: int = Path(..., le=MAX_INT), platform: Platform = Depends(get_platform)):
    t = platform.get_tournament(tournament_id)
    if t is None:
        raise HTTPException(status_code=404, detail="tournament not found")
    return asdict(t)


@app.post("/api/tournaments/{tournament_id}/join")
def join_tournament(tournament_id: int = Path(..., le=MAX_INT), caller: str = Depends(get_caller), platform: Platform = Depends(get_platform)):
    platform.join_tournament(caller, tournament_id)
    return {"tournament_id": tournament_id, "joined": True}


@app.post("/api/tournaments/{tournament_id}/complete")
def complete_tournament(
    body: CompleteTournamentRequest,
    tournament_id: int = Path(..., le=MAX_INT),
    caller: str = Depends(get_caller),
    platform: Platform = Depends(get_platform),
):
    prize = platform.complete_tournament(caller, tournament_id, body.winner)
    return {"tournament_id": tournament_id, "winner": body.winner, "prize": prize}


@app.get("/api/platform")
def platform_stats(platform: Platform = Depends(get_platform)):
    return {
        **asdict(platform.get_platform_stats()),
        "parameters": asdict(platform.get_game_parameters()),
    }


@app.put("/api/platform/parameters")
def update_parameters(
    body: GameParametersRequest,
    caller: str = Depends(get_caller),
    platform: Platform = Depends(get_platform),
):
    platform.update_game_parameters(
        caller, body.base_reward, body.streak_multiplier, body.daily_limit, body.minimum_game_duration
    )
    return asdict(platform.get_game_parameters())


@app.post("/api/platform/toggle")
def toggle_platform(caller: str = Depends(get_caller), platform: Platform = Depends(get_platform)):
    return {"is_active": platform.toggle_platform_status(caller)}


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    _WS_CONNECTIONS[ws] = {'connected_at': time.time()}
    try:
        while True:
            # clients only listen; inbound messages are pings
            await ws.receive_text()
    except WebSocketDisconnect:
        _WS_CONNECTIONS.pop(ws, None)
    except Exception:
        _WS_CONNECTIONS.pop(ws, None)
