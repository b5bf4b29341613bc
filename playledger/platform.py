"""
Application context for the ledger.

``Platform`` owns the database engine, the clock, the event bus and a lock
that serialises every operation. Each public method is one all-or-nothing
transaction: state is committed and the buffered events are published only
when the whole operation succeeds.
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional

from sqlmodel import Session, SQLModel, create_engine

from . import admin, models, players, sessions, tokens, tournaments
from .errors import LedgerError, NotRegistered
from .events import Event, EventBus
from .logging_utils import get_logger

logger = get_logger("playledger.platform")

Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time())


@dataclass
class Tx:
    """State handed to component functions for one operation."""

    session: Session
    state: models.PlatformState
    now: int
    events: List[Event] = field(default_factory=list)

    def emit(self, event: Event) -> None:
        self.events.append(event)


@dataclass
class PlayerStats:
    username: str
    balance: int
    games_played: int
    wins: int
    current_streak: int
    highest_streak: int
    is_active: bool


@dataclass
class PlatformStats:
    total_players: int
    total_tokens: int
    total_sessions: int
    is_active: bool


@dataclass
class TournamentInfo:
    id: int
    name: str
    entry_fee: int
    prize_pool: int
    start_time: int
    end_time: int
    winner: Optional[str]
    is_active: bool
    is_completed: bool
    participants: List[str]


def make_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


class Platform:
    def __init__(
        self,
        engine,
        owner: str,
        clock: Optional[Clock] = None,
        events: Optional[EventBus] = None,
        params: Optional[admin.GameParameters] = None,
    ):
        if players.is_null_identity(owner):
            raise ValueError("platform owner identity is required")
        self.engine = engine
        self.clock = clock or system_clock
        self.events = events or EventBus()
        self._lock = threading.RLock()
        SQLModel.metadata.create_all(engine)
        with Session(engine) as session:
            self.owner = admin.bootstrap(session, owner, params).owner

    @classmethod
    def from_url(cls, url: str, owner: str, **kwargs) -> "Platform":
        return cls(make_engine(url), owner, **kwargs)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str, caller: Optional[str] = None) -> Iterator[Tx]:
        with self._lock:
            with Session(self.engine) as session:
                tx = Tx(session=session, state=admin.load_state(session), now=int(self.clock()))
                try:
                    yield tx
                    session.commit()
                except LedgerError as exc:
                    session.rollback()
                    logger.warning(
                        "operation_rejected",
                        extra={"operation": operation, "caller": caller, "code": exc.code, "error": exc.message},
                    )
                    raise
                except Exception:
                    session.rollback()
                    logger.exception("operation_failed", extra={"operation": operation, "caller": caller})
                    raise
            self.events.publish_all(tx.events)

    @contextmanager
    def _read(self) -> Iterator[Session]:
        with self._lock:
            with Session(self.engine) as session:
                yield session

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    def register_player(self, caller: str, username: str) -> bool:
        with self._transaction("register_player", caller) as tx:
            admin.require_platform_active(tx)
            players.register(tx, caller, username)
        return True

    def pause_player_account(self, caller: str, identity: str) -> None:
        with self._transaction("pause_player_account", caller) as tx:
            admin.require_owner(tx, caller)
            players.set_active(tx, identity, False)

    def resume_player_account(self, caller: str, identity: str) -> None:
        with self._transaction("resume_player_account", caller) as tx:
            admin.require_owner(tx, caller)
            players.set_active(tx, identity, True)

    def get_player_stats(self, identity: str) -> PlayerStats:
        with self._read() as session:
            p = players.get_player(session, identity)
            if p is None:
                raise NotRegistered(f"{identity} is not registered")
            return PlayerStats(
                username=p.username,
                balance=p.token_balance,
                games_played=p.total_games_played,
                wins=p.total_wins,
                current_streak=p.current_win_streak,
                highest_streak=p.highest_win_streak,
                is_active=p.is_active,
            )

    def get_registered_players(self) -> List[str]:
        with self._read() as session:
            return players.registered_players(session)

    # ------------------------------------------------------------------
    # Games and tokens
    # ------------------------------------------------------------------

    def play_game(self, caller: str, duration: int, score: int, is_win: bool) -> int:
        with self._transaction("play_game", caller) as tx:
            reward = sessions.play_game(tx, caller, duration, score, is_win)
        return reward

    def spend_tokens(self, caller: str, amount: int, item_name: str) -> bool:
        with self._transaction("spend_tokens", caller) as tx:
            admin.require_platform_active(tx)
            player = players.require_active_player(tx, caller)
            tokens.spend(tx, player, amount, item_name)
        return True

    def get_player_game_history(self, identity: str) -> List[int]:
        with self._read() as session:
            return sessions.player_history(session, identity)

    def get_game_session(self, session_id: int) -> Optional[models.GameSession]:
        with self._read() as session:
            return sessions.get_session(session, session_id)

    def get_token_history(self, identity: str) -> List[models.TokenTransaction]:
        with self._read() as session:
            return tokens.history(session, identity)

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    def create_tournament(self, caller: str, name: str, entry_fee: int, duration_secs: int) -> int:
        with self._transaction("create_tournament", caller) as tx:
            admin.require_platform_active(tx)
            admin.require_owner(tx, caller)
            tournament_id = tournaments.create(tx, name, entry_fee, duration_secs)
        return tournament_id

    def join_tournament(self, caller: str, tournament_id: int) -> None:
        with self._transaction("join_tournament", caller) as tx:
            tournaments.join(tx, caller, tournament_id)

    def complete_tournament(self, caller: str, tournament_id: int, winner: str) -> int:
        with self._transaction("complete_tournament", caller) as tx:
            admin.require_owner(tx, caller)
            prize = tournaments.complete(tx, tournament_id, winner)
        return prize

    def get_tournament(self, tournament_id: int) -> Optional[TournamentInfo]:
        with self._read() as session:
            t = tournaments.get_tournament(session, tournament_id)
            if t is None:
                return None
            return self._tournament_info(session, t)

    def get_tournament_participants(self, tournament_id: int) -> List[str]:
        with self._read() as session:
            return tournaments.participants(session, tournament_id)

    def list_tournaments(self, active_only: bool = False) -> List[TournamentInfo]:
        with self._read() as session:
            return [self._tournament_info(session, t) for t in tournaments.list_tournaments(session, active_only)]

    @staticmethod
    def _tournament_info(session, t: models.Tournament) -> TournamentInfo:
        return TournamentInfo(
            id=t.id,
            name=t.name,
            entry_fee=t.entry_fee,
            prize_pool=t.prize_pool,
            start_time=t.start_time,
            end_time=t.end_time,
            winner=t.winner,
            is_active=t.is_active,
            is_completed=t.is_completed,
            participants=tournaments.participants(session, t.id),
        )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def get_platform_stats(self) -> PlatformStats:
        with self._read() as session:
            state = admin.load_state(session)
            return PlatformStats(
                total_players=state.total_players_registered,
                total_tokens=state.total_game_tokens,
                total_sessions=state.game_session_counter,
                is_active=state.platform_active,
            )

    def get_game_parameters(self) -> admin.GameParameters:
        with self._read() as session:
            return admin.GameParameters.from_state(admin.load_state(session))

    def update_game_parameters(
        self,
        caller: str,
        base_reward: int,
        streak_multiplier: int,
        daily_limit: int,
        minimum_game_duration: Optional[int] = None,
    ) -> None:
        with self._transaction("update_game_parameters", caller) as tx:
            admin.require_owner(tx, caller)
            admin.update_game_parameters(tx, base_reward, streak_multiplier, daily_limit)
            if minimum_game_duration is not None:
                admin.update_minimum_game_duration(tx, minimum_game_duration)

    def update_minimum_game_duration(self, caller: str, seconds: int) -> None:
        with self._transaction("update_minimum_game_duration", caller) as tx:
            admin.require_owner(tx, caller)
            admin.update_minimum_game_duration(tx, seconds)

    def toggle_platform_status(self, caller: str) -> bool:
        with self._transaction("toggle_platform_status", caller) as tx:
            admin.require_owner(tx, caller)
            active = admin.toggle_platform_status(tx)
        return active
