from typing import Optional
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class PlatformState(SQLModel, table=True):
    # singleton row; always id 1
    id: Optional[int] = Field(default=None, primary_key=True)
    owner: str
    platform_active: bool = True
    base_reward_per_win: int = 100
    streak_bonus_multiplier: int = 10
    daily_play_limit: int = 50
    minimum_game_duration: int = 30
    total_game_tokens: int = 0
    total_players_registered: int = 0
    game_session_counter: int = 0
    tournament_counter: int = 0


class Player(SQLModel, table=True):
    identity: str = Field(primary_key=True)
    registration_index: int = Field(index=True)
    username: str
    token_balance: int = 0
    total_games_played: int = 0
    total_wins: int = 0
    daily_games_played: int = 0
    current_win_streak: int = 0
    highest_win_streak: int = 0
    last_play_time: int = 0
    is_registered: bool = False
    is_active: bool = False
    registered_at: int = 0


class GameSession(SQLModel, table=True):
    # id is the platform session counter value, not an autoincrement
    id: int = Field(primary_key=True)
    player: str = Field(index=True)
    start_time: int
    end_time: int
    score: int
    is_win: bool = False
    tokens_earned: int = 0
    is_completed: bool = False


class Tournament(SQLModel, table=True):
    id: int = Field(primary_key=True)
    name: str
    entry_fee: int = 0
    prize_pool: int = 0
    start_time: int
    end_time: int
    winner: Optional[str] = None
    is_active: bool = True
    is_completed: bool = False


class TournamentEntry(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("tournament_id", "player"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(index=True)
    player: str = Field(index=True)
    position: int  # 1-based join order
    joined_at: int


class TokenTransaction(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    player: str = Field(index=True)
    kind: str  # "credit" | "debit"
    amount: int
    reason: str = ""
    balance_after: int = 0
    created_at: int = 0
