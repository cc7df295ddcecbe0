from datetime import datetime
from enum import Enum
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from gamehub.models.user_model import GameKind

MAX_PLAYERS = {
    GameKind.TICTACTOE: 2,
    GameKind.LUDO: 4,
    GameKind.UNO: 4,
    GameKind.BATTLESHIP: 2,
    GameKind.BINGO: 10,
}

class RoomStatus(str, Enum):
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class GameResult(str, Enum):
    WIN = "win"
    DRAW = "draw"
    ABANDONED = "abandoned"

class RoomPlayer(BaseModel):
    user_id: str
    username: str
    is_host: bool = False
    is_ready: bool = False

class Move(BaseModel):
    player: str
    move: Any # game-specific, stored as sent
    timestamp: datetime = Field(default_factory=datetime.utcnow)

class ChatMessage(BaseModel):
    user_id: str
    username: str
    message: str = Field(max_length=500)
    timestamp: datetime = Field(default_factory=datetime.utcnow)

class GameRoomModel(BaseModel):
    room_id: str = Field(default_factory=lambda: str(uuid4()))
    game_type: GameKind
    status: RoomStatus = RoomStatus.WAITING
    bet_amount: int = Field(default=0, ge=0)
    players: List[RoomPlayer] = Field(default_factory=list)
    moves: List[Move] = Field(default_factory=list)
    chat: List[ChatMessage] = Field(default_factory=list)
    winner_id: Optional[str] = None
    result: Optional[GameResult] = None
    game_data: Any = None # opaque, never inspected
    tournament_id: Optional[str] = None
    match_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration: int = 0 # seconds
    version: int = 0

    class Config:
        from_attributes = True
        use_enum_values = True

    @property
    def max_players(self) -> int:
        return MAX_PLAYERS.get(GameKind(self.game_type), 2)

    def find_player(self, user_id: str) -> Optional[RoomPlayer]:
        return next((p for p in self.players if p.user_id == user_id), None)
