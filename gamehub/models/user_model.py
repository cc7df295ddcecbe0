from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

class GameKind(str, Enum):
    """Concrete games a room can be opened for. "mixed" is a tournament-only label."""
    TICTACTOE = "tictactoe"
    LUDO = "ludo"
    UNO = "uno"
    BATTLESHIP = "battleship"
    BINGO = "bingo"

class GameOutcome(str, Enum):
    WIN = "win"
    LOSE = "lose"
    DRAW = "draw"

class GameStats(BaseModel):
    played: int = 0
    won: int = 0
    lost: int = 0
    draw: int = 0

def _empty_game_stats() -> Dict[str, GameStats]:
    return {kind.value: GameStats() for kind in GameKind}

class UserStats(BaseModel):
    score: int = 0
    level: int = 1
    experience: int = 0
    coins: int = 100
    games_played: int = 0
    games_won: int = 0
    games_lost: int = 0
    games_draw: int = 0
    win_streak: int = 0
    best_win_streak: int = 0
    game_stats: Dict[str, GameStats] = Field(default_factory=_empty_game_stats)
    badges: List[str] = Field(default_factory=list)

    @property
    def win_rate(self) -> int:
        if self.games_played == 0:
            return 0
        return round(self.games_won / self.games_played * 100)

class UserSettings(BaseModel):
    sound_enabled: bool = True
    notifications_enabled: bool = True
    private_profile: bool = False

class UserProfile(BaseModel):
    """What the tournament engine and game rooms need to know about a user."""
    id: str
    username: str
    is_banned: bool = False
    ban_reason: Optional[str] = None
    ban_expire: Optional[datetime] = None

    class Config:
        from_attributes = True

    def ban_active(self, now: Optional[datetime] = None) -> bool:
        if not self.is_banned:
            return False
        if self.ban_expire is None:
            return True
        return self.ban_expire > (now or datetime.utcnow())
