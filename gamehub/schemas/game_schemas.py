from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator

from gamehub.models.game_model import GameRoomModel
from gamehub.models.user_model import GameKind

class GameCreate(BaseModel):
    game_type: GameKind
    bet_amount: int = Field(default=0, ge=0)
    tournament_id: Optional[str] = None
    match_id: Optional[str] = None

    @model_validator(mode='after')
    def match_needs_tournament(self):
        if bool(self.tournament_id) != bool(self.match_id):
            raise ValueError('tournament_id and match_id must be given together')
        return self

class ReadyPayload(BaseModel):
    ready: bool = True

class MovePayload(BaseModel):
    move: Any

class ChatPayload(BaseModel):
    message: str = Field(min_length=1, max_length=500)

class GameResultPayload(BaseModel):
    winner_id: Optional[str] = None # None means a draw
    game_data: Any = None

class GameHistoryPage(BaseModel):
    games: List[GameRoomModel]
    page: int
    limit: int
    total: int
    pages: int
