import pytest
from sqlmodel import Session

from playledger import errors, events, models
from playledger.sessions import DAY_SECONDS
from conftest import ALICE, BOB, OWNER, START


def daily_games(platform, identity):
    with Session(platform.engine) as s:
        return s.get(models.Player, identity).daily_games_played


@pytest.fixture
def alice(platform):
    platform.register_player(ALICE, "alice")
    return ALICE


def test_win_streak_rewards_grow(platform, alice):
    rewards = [platform.play_game(alice, 60, 250, True) for _ in range(4)]
    assert rewards == [127, 137, 147, 157]

    stats = platform.get_player_stats(alice)
    assert stats.balance == 500 + sum(rewards)
    assert stats.games_played == 4 and stats.wins == 4
    assert stats.current_streak == 4 and stats.highest_streak == 4
    assert platform.get_platform_stats().total_tokens == 500 + sum(rewards)


def test_loss_resets_streak_but_not_highest(platform, alice):
    platform.play_game(alice, 60, 100, True)
    platform.play_game(alice, 60, 100, True)
    assert platform.play_game(alice, 60, 50, False) == 25

    stats = platform.get_player_stats(alice)
    assert stats.current_streak == 0
    assert stats.highest_streak == 2
    assert stats.wins == 2 and stats.games_played == 3

    platform.play_game(alice, 60, 100, True)
    stats = platform.get_player_stats(alice)
    assert stats.current_streak == 1
    assert stats.highest_streak == 2


def test_session_record(platform, alice, clock):
    platform.play_game(alice, 90, 250, True)
    gs = platform.get_game_session(1)
    assert gs.player == alice
    assert gs.start_time == clock.now - 90
    assert gs.end_time == clock.now
    assert gs.score == 250 and gs.is_win is True
    assert gs.tokens_earned == 127
    assert gs.is_completed is True
    assert platform.get_game_session(2) is None


def test_session_ids_are_global_and_history_is_per_player(platform, alice):
    platform.register_player(BOB, "bob")
    platform.play_game(alice, 60, 100, True)
    platform.play_game(BOB, 60, 100, False)
    platform.play_game(alice, 60, 100, False)

    assert platform.get_player_game_history(alice) == [1, 3]
    assert platform.get_player_game_history(BOB) == [2]
    assert platform.get_player_game_history("0xghost") == []
    assert platform.get_platform_stats().total_sessions == 3


def test_first_play_emits_daily_reset(platform, alice, recorded):
    platform.play_game(alice, 60, 100, True)
    assert [type(e) for e in recorded] == [
        events.DailyResetOccurred,
        events.GameSessionStarted,
        events.GameSessionCompleted,
        events.TokensEarned,
    ]
    recorded.clear()
    platform.play_game(alice, 60, 100, True)
    assert not any(isinstance(e, events.DailyResetOccurred) for e in recorded)


def test_daily_limit_and_rolling_reset(platform, alice, clock):
    platform.update_game_parameters(OWNER, 100, 10, 3)
    for _ in range(3):
        platform.play_game(alice, 60, 100, True)
    with pytest.raises(errors.DailyLimitReached):
        platform.play_game(alice, 60, 100, True)

    # window is anchored at the last play and needs strictly more than 24h
    clock.advance(DAY_SECONDS)
    with pytest.raises(errors.DailyLimitReached):
        platform.play_game(alice, 60, 100, True)

    clock.advance(1)
    platform.play_game(alice, 60, 100, True)
    assert daily_games(platform, alice) == 1
    assert platform.get_player_stats(alice).games_played == 4


def test_duration_and_score_checks(platform, alice):
    with pytest.raises(errors.GameTooShort):
        platform.play_game(alice, 29, 100, True)
    with pytest.raises(errors.InvalidScore):
        platform.play_game(alice, 30, 0, True)
    assert isinstance(errors.GameTooShort(), errors.InvalidInput)
    assert platform.play_game(alice, 30, 1, False) == 25


def test_unregistered_player_cannot_play(platform):
    with pytest.raises(errors.NotRegistered):
        platform.play_game(BOB, 60, 100, True)


def test_platform_inactive_blocks_play(platform, alice):
    platform.toggle_platform_status(OWNER)
    with pytest.raises(errors.PlatformInactive):
        platform.play_game(alice, 60, 100, True)


def test_last_play_time_tracks_clock(platform, alice, clock):
    platform.play_game(alice, 60, 100, True)
    clock.advance(500)
    platform.play_game(alice, 60, 100, True)
    with Session(platform.engine) as s:
        assert s.get(models.Player, alice).last_play_time == START + 500


def test_oversized_inputs_are_rejected(platform, alice):
    with pytest.raises(errors.InvalidScore):
        platform.play_game(alice, 60, 2 ** 64, True)
    with pytest.raises(errors.InvalidInput):
        platform.play_game(alice, 2 ** 63, 100, True)
    assert platform.get_player_game_history(alice) == []

    # the largest storable score still pays out
    assert platform.play_game(alice, 60, 2 ** 63 - 1, False) == 25 + (2 ** 63 - 1) // 100


def test_reward_that_would_overflow_balance_is_rejected(platform, alice):
    platform.update_game_parameters(OWNER, 2 ** 63 - 1, 0, 50)
    with pytest.raises(errors.InvalidInput):
        platform.play_game(alice, 60, 100, True)
    assert platform.get_player_stats(alice).balance == 500
    assert platform.get_platform_stats().total_sessions == 0


def test_unknown_session_ids(platform):
    assert platform.get_game_session(0) is None
    assert platform.get_game_session(2 ** 64) is None
