from gamehub.models.tournament_model import PrizeTier
from gamehub.models.user_model import GameOutcome, GameStats, UserStats

WIN_SCORE = 100
LOSE_SCORE = 10
EXPERIENCE_GAIN = {
    GameOutcome.WIN: 100,
    GameOutcome.DRAW: 50,
    GameOutcome.LOSE: 25,
}
EXPERIENCE_PER_LEVEL = 1000


def level_for(experience: int) -> int:
    return experience // EXPERIENCE_PER_LEVEL + 1


def apply_game_result(stats: UserStats, game_type: str, outcome: GameOutcome, stake: int = 0) -> UserStats:
    """Return the stats after one finished game. The input is left untouched."""
    outcome = GameOutcome(outcome)
    updated = stats.model_copy(deep=True)
    per_game = updated.game_stats.setdefault(game_type, GameStats())

    updated.games_played += 1
    per_game.played += 1

    if outcome == GameOutcome.WIN:
        updated.score += WIN_SCORE
        updated.coins += stake * 2
        updated.games_won += 1
        per_game.won += 1
        updated.win_streak += 1
        updated.best_win_streak = max(updated.best_win_streak, updated.win_streak)
    elif outcome == GameOutcome.LOSE:
        updated.score += LOSE_SCORE
        updated.games_lost += 1
        per_game.lost += 1
        updated.win_streak = 0
    else:
        updated.games_draw += 1
        per_game.draw += 1

    updated.experience += EXPERIENCE_GAIN[outcome]
    updated.level = level_for(updated.experience)
    return updated


def apply_prize(stats: UserStats, tier: PrizeTier) -> UserStats:
    updated = stats.model_copy(deep=True)
    updated.coins += tier.coins
    updated.score += tier.points
    if tier.badge and tier.badge not in updated.badges:
        updated.badges.append(tier.badge)
    return updated
