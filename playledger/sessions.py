"""
Game session ledger.

One call to ``play_game`` records a finished game: it checks the daily
window, allocates the next session id, pays the reward and updates the
player's counters and streaks.
"""

from typing import List, Optional
from sqlmodel import select

from . import admin, models, players, tokens
from .errors import DailyLimitReached, GameTooShort, InvalidScore
from .events import DailyResetOccurred, GameSessionCompleted, GameSessionStarted, TokensEarned
from .logging_utils import get_logger
from .rewards import compute_reward
from .validation import MAX_INT, check_int

logger = get_logger("playledger.sessions")

DAY_SECONDS = 24 * 60 * 60
GAME_REWARD_REASON = "Game Reward"


def _apply_daily_reset(tx, player: models.Player) -> None:
    # last_play_time starts at 0, so a player's first game always resets
    if tx.now > player.last_play_time + DAY_SECONDS:
        player.daily_games_played = 0
        tx.emit(DailyResetOccurred(player=player.identity, timestamp=tx.now))


def play_game(tx, identity: str, duration: int, score: int, is_win: bool) -> int:
    """Record a completed game and return the tokens it earned."""
    state = tx.state
    admin.require_platform_active(tx)
    player = players.require_active_player(tx, identity)
    if duration < state.minimum_game_duration:
        raise GameTooShort(f"game must last at least {state.minimum_game_duration}s")
    check_int("duration", duration)
    if score <= 0 or score > MAX_INT:
        raise InvalidScore(f"score must be between 1 and {MAX_INT}")

    _apply_daily_reset(tx, player)
    if player.daily_games_played >= state.daily_play_limit:
        raise DailyLimitReached(f"daily limit of {state.daily_play_limit} games reached")

    state.game_session_counter += 1
    gs = models.GameSession(
        id=state.game_session_counter,
        player=identity,
        start_time=tx.now - duration,
        end_time=tx.now,
        score=score,
        is_win=is_win,
        is_completed=False,
    )
    tx.session.add(gs)
    tx.emit(GameSessionStarted(session_id=gs.id, player=identity, start_time=gs.start_time))

    # streak before this game's result is applied
    reward = compute_reward(player, score, is_win, state)

    player.total_games_played += 1
    player.daily_games_played += 1
    player.last_play_time = tx.now
    if is_win:
        player.total_wins += 1
        player.current_win_streak += 1
        player.highest_win_streak = max(player.highest_win_streak, player.current_win_streak)
    else:
        player.current_win_streak = 0
    tokens.credit(tx, player, reward, GAME_REWARD_REASON)

    gs.tokens_earned = reward
    gs.is_completed = True
    tx.emit(GameSessionCompleted(
        session_id=gs.id,
        player=identity,
        score=score,
        is_win=is_win,
        tokens_earned=reward,
    ))
    tx.emit(TokensEarned(player=identity, amount=reward, reason=GAME_REWARD_REASON))
    logger.info("game_played", extra={"identity": identity, "session_id": gs.id, "amount": reward})
    return reward


def get_session(session, session_id: int) -> Optional[models.GameSession]:
    if not 0 < session_id <= MAX_INT:
        return None
    return session.get(models.GameSession, session_id)


def player_history(session, identity: str) -> List[int]:
    """Session ids for a player in the order they were played."""
    return list(session.exec(
        select(models.GameSession.id)
        .where(models.GameSession.player == identity)
        .order_by(models.GameSession.id)
    ).all())
