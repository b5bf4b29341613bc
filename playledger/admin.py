"""
Platform administration: the owner, the platform-active flag and the
tunable economic parameters, all held on the singleton PlatformState row.
"""

import os
from dataclasses import dataclass

from . import models
from .errors import AuthorizationError, PlatformInactive
from .events import GameParametersUpdated, PlatformStatusChanged
from .logging_utils import get_logger
from .validation import check_int

logger = get_logger("playledger.admin")

STATE_ID = 1


@dataclass
class GameParameters:
    base_reward_per_win: int = 100
    streak_bonus_multiplier: int = 10
    daily_play_limit: int = 50
    minimum_game_duration: int = 30

    @classmethod
    def from_env(cls) -> "GameParameters":
        """Initial parameters, overridable through environment variables."""
        defaults = cls()
        return cls(
            base_reward_per_win=int(os.getenv("BASE_REWARD_PER_WIN", defaults.base_reward_per_win)),
            streak_bonus_multiplier=int(os.getenv("STREAK_BONUS_MULTIPLIER", defaults.streak_bonus_multiplier)),
            daily_play_limit=int(os.getenv("DAILY_PLAY_LIMIT", defaults.daily_play_limit)),
            minimum_game_duration=int(os.getenv("MINIMUM_GAME_DURATION", defaults.minimum_game_duration)),
        )

    @classmethod
    def from_state(cls, state: models.PlatformState) -> "GameParameters":
        return cls(
            base_reward_per_win=state.base_reward_per_win,
            streak_bonus_multiplier=state.streak_bonus_multiplier,
            daily_play_limit=state.daily_play_limit,
            minimum_game_duration=state.minimum_game_duration,
        )


def bootstrap(session, owner: str, params: GameParameters = None) -> models.PlatformState:
    """Create the platform row on first start; later starts keep the stored owner."""
    state = session.get(models.PlatformState, STATE_ID)
    if state is not None:
        if state.owner != owner:
            logger.warning("owner_mismatch_ignored", extra={"caller": owner, "identity": state.owner})
        return state
    params = params or GameParameters()
    state = models.PlatformState(
        id=STATE_ID,
        owner=owner,
        platform_active=True,
        base_reward_per_win=params.base_reward_per_win,
        streak_bonus_multiplier=params.streak_bonus_multiplier,
        daily_play_limit=params.daily_play_limit,
        minimum_game_duration=params.minimum_game_duration,
    )
    session.add(state)
    session.commit()
    session.refresh(state)
    logger.info("platform_bootstrapped", extra={"identity": owner})
    return state


def load_state(session) -> models.PlatformState:
    state = session.get(models.PlatformState, STATE_ID)
    if state is None:
        raise RuntimeError("platform state missing; call bootstrap() first")
    return state


def require_owner(tx, caller: str) -> None:
    if caller != tx.state.owner:
        raise AuthorizationError("only the platform owner may do this")


def require_platform_active(tx) -> None:
    if not tx.state.platform_active:
        raise PlatformInactive("platform is paused")


def _emit_parameters(tx) -> None:
    s = tx.state
    tx.emit(GameParametersUpdated(
        base_reward_per_win=s.base_reward_per_win,
        streak_bonus_multiplier=s.streak_bonus_multiplier,
        daily_play_limit=s.daily_play_limit,
        minimum_game_duration=s.minimum_game_duration,
    ))


def update_game_parameters(tx, base_reward: int, streak_multiplier: int, daily_limit: int) -> None:
    for name, value in (("base_reward", base_reward), ("streak_multiplier", streak_multiplier), ("daily_limit", daily_limit)):
        check_int(name, value)
    tx.state.base_reward_per_win = base_reward
    tx.state.streak_bonus_multiplier = streak_multiplier
    tx.state.daily_play_limit = daily_limit
    tx.session.add(tx.state)
    _emit_parameters(tx)


def update_minimum_game_duration(tx, seconds: int) -> None:
    check_int("minimum_game_duration", seconds)
    tx.state.minimum_game_duration = seconds
    tx.session.add(tx.state)
    _emit_parameters(tx)


def toggle_platform_status(tx) -> bool:
    tx.state.platform_active = not tx.state.platform_active
    tx.session.add(tx.state)
    tx.emit(PlatformStatusChanged(is_active=tx.state.platform_active))
    logger.info("platform_status_changed", extra={"event": "active" if tx.state.platform_active else "paused"})
    return tx.state.platform_active
