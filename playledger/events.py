"""
Notifications published after an operation commits.

Each event is a small dataclass; subscribers receive the event object and can
call ``to_dict()`` for a JSON-friendly payload (used by the websocket feed and
the NATS publisher).
"""

from dataclasses import dataclass, asdict
from typing import Any, Callable, ClassVar, Dict, List
import threading

from .logging_utils import get_logger

logger = get_logger("playledger.events")


@dataclass
class Event:
    type: ClassVar[str] = "event"

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["type"] = self.type
        return payload


@dataclass
class PlayerRegistered(Event):
    type: ClassVar[str] = "player_registered"
    player: str
    username: str
    timestamp: int


@dataclass
class GameSessionStarted(Event):
    type: ClassVar[str] = "game_session_started"
    session_id: int
    player: str
    start_time: int


@dataclass
class GameSessionCompleted(Event):
    type: ClassVar[str] = "game_session_completed"
    session_id: int
    player: str
    score: int
    is_win: bool
    tokens_earned: int


@dataclass
class TokensEarned(Event):
    type: ClassVar[str] = "tokens_earned"
    player: str
    amount: int
    reason: str


@dataclass
class TokensSpent(Event):
    type: ClassVar[str] = "tokens_spent"
    player: str
    amount: int
    item: str


@dataclass
class TournamentCreated(Event):
    type: ClassVar[str] = "tournament_created"
    tournament_id: int
    name: str
    entry_fee: int
    start_time: int
    end_time: int


@dataclass
class TournamentJoined(Event):
    type: ClassVar[str] = "tournament_joined"
    tournament_id: int
    player: str
    entry_fee: int
    prize_pool: int


@dataclass
class TournamentCompleted(Event):
    type: ClassVar[str] = "tournament_completed"
    tournament_id: int
    winner: str
    prize: int


@dataclass
class DailyResetOccurred(Event):
    type: ClassVar[str] = "daily_reset_occurred"
    player: str
    timestamp: int


@dataclass
class PlayerStatusChanged(Event):
    type: ClassVar[str] = "player_status_changed"
    player: str
    is_active: bool


@dataclass
class PlatformStatusChanged(Event):
    type: ClassVar[str] = "platform_status_changed"
    is_active: bool


@dataclass
class GameParametersUpdated(Event):
    type: ClassVar[str] = "game_parameters_updated"
    base_reward_per_win: int
    streak_bonus_multiplier: int
    daily_play_limit: int
    minimum_game_duration: int


Subscriber = Callable[[Event], None]


class EventBus:
    """Ordered list of subscriber callbacks.

    Events reach subscribers in the order they were issued within one
    operation. A failing subscriber is logged and skipped.
    """

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(fn)

        def unsubscribe() -> None:
            with self._lock:
                if fn in self._subscribers:
                    self._subscribers.remove(fn)

        return unsubscribe

    def publish(self, event: Event) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for fn in subscribers:
            try:
                fn(event)
            except Exception as exc:
                logger.warning("event_subscriber_failed", extra={"event": event.type, "error": str(exc)})

    def publish_all(self, events: List[Event]) -> None:
        for ev in events:
            self.publish(ev)
