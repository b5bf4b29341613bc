from types import SimpleNamespace

from playledger.admin import GameParameters
from playledger.rewards import compute_reward


def streak(n):
    return SimpleNamespace(current_win_streak=n)


def test_reward_example_with_streak():
    params = GameParameters(base_reward_per_win=100, streak_bonus_multiplier=10)
    # 25 participation + 100 win + 30 streak + 2 score
    assert compute_reward(streak(3), 250, True, params) == 157


def test_loss_pays_participation_and_score_only():
    params = GameParameters(base_reward_per_win=100, streak_bonus_multiplier=10)
    assert compute_reward(streak(5), 250, False, params) == 27
    assert compute_reward(streak(0), 99, False, params) == 25


def test_first_win_has_no_streak_bonus():
    params = GameParameters(base_reward_per_win=100, streak_bonus_multiplier=10)
    assert compute_reward(streak(0), 100, True, params) == 126


def test_integer_division_truncates():
    params = GameParameters(base_reward_per_win=7, streak_bonus_multiplier=3)
    # 7 // 4 = 1, + 7, + (7 * 1 * 3) // 100 = 0, + 199 // 100 = 1
    assert compute_reward(streak(1), 199, True, params) == 9


def test_reward_is_deterministic():
    params = GameParameters(base_reward_per_win=100, streak_bonus_multiplier=25)
    results = {compute_reward(streak(4), 1234, True, params) for _ in range(10)}
    assert results == {25 + 100 + 100 + 12}
