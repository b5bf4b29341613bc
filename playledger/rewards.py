"""Token reward for a single game outcome."""

# Fraction of the win reward paid for any completed game
PARTICIPATION_DIVISOR = 4
# Every full 100 points of score is worth one token
SCORE_DIVISOR = 100


def compute_reward(player, score: int, is_win: bool, params) -> int:
    """Return the tokens earned for one game.

    ``player.current_win_streak`` must be the streak *before* this game is
    applied. ``params`` needs ``base_reward_per_win`` and
    ``streak_bonus_multiplier`` (percent per streak step).

    All arithmetic is integer and inputs are non-negative, so ``//``
    truncates the same way the fixed-point reference does.
    """
    base = params.base_reward_per_win
    reward = base // PARTICIPATION_DIVISOR

    if is_win:
        reward += base
        streak = player.current_win_streak
        if streak > 0:
            reward += (base * streak * params.streak_bonus_multiplier) // 100

    reward += score // SCORE_DIVISOR
    return reward
