from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

MIN_PARTICIPANTS_FLOOR = 2
MAX_PARTICIPANTS_CEILING = 128

class GameType(str, Enum):
    TICTACTOE = "tictactoe"
    LUDO = "ludo"
    UNO = "uno"
    BATTLESHIP = "battleship"
    BINGO = "bingo"
    MIXED = "mixed"

class TournamentFormat(str, Enum):
    SINGLE_ELIMINATION = "single_elimination"
    DOUBLE_ELIMINATION = "double_elimination"
    ROUND_ROBIN = "round_robin"
    SWISS = "swiss"

class TournamentStatus(str, Enum):
    UPCOMING = "upcoming"
    REGISTRATION = "registration"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class MatchStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

class Participant(BaseModel):
    user_id: str
    username: str
    seed: int
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points: int = 0
    is_eliminated: bool = False
    registered_at: datetime = Field(default_factory=datetime.utcnow)

class BracketMatch(BaseModel):
    match_id: str # R{round}M{index}, stable for the tournament's lifetime
    round: int
    index: int
    player1: Optional[str] = None # user ids
    player2: Optional[str] = None
    winner: Optional[str] = None
    game_id: Optional[str] = None # external game session (room id)
    status: MatchStatus = MatchStatus.PENDING
    is_walkover: bool = False

    class Config:
        use_enum_values = True

    @property
    def players(self) -> List[str]:
        return [p for p in (self.player1, self.player2) if p is not None]

    @property
    def is_ready(self) -> bool:
        return self.player1 is not None and self.player2 is not None

    @property
    def loser(self) -> Optional[str]:
        if self.winner is None or self.is_walkover:
            return None
        return self.player2 if self.winner == self.player1 else self.player1

class BracketRound(BaseModel):
    round: int
    matches: List[BracketMatch] = Field(default_factory=list)

class PrizeTier(BaseModel):
    coins: int = Field(default=0, ge=0)
    points: int = Field(default=0, ge=0)
    badge: Optional[str] = None

class Prizes(BaseModel):
    first: PrizeTier = Field(default_factory=PrizeTier)
    second: PrizeTier = Field(default_factory=PrizeTier)
    third: PrizeTier = Field(default_factory=PrizeTier)

class Standings(BaseModel):
    first: Optional[str] = None
    second: Optional[str] = None
    third: Optional[str] = None

class TournamentModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(min_length=3, max_length=100)
    description: Optional[str] = None
    game_type: GameType
    format: TournamentFormat = TournamentFormat.SINGLE_ELIMINATION
    status: TournamentStatus = TournamentStatus.UPCOMING

    min_participants: int = Field(default=MIN_PARTICIPANTS_FLOOR, ge=MIN_PARTICIPANTS_FLOOR, le=MAX_PARTICIPANTS_CEILING)
    max_participants: int = Field(ge=MIN_PARTICIPANTS_FLOOR, le=MAX_PARTICIPANTS_CEILING)
    participants: List[Participant] = Field(default_factory=list)
    brackets: List[BracketRound] = Field(default_factory=list)

    prizes: Prizes = Field(default_factory=Prizes)
    standings: Optional[Standings] = None
    entry_fee: int = Field(default=0, ge=0)
    rules: List[str] = Field(default_factory=list)

    start_date: datetime
    end_date: Optional[datetime] = None
    registration_start_date: Optional[datetime] = None
    registration_end_date: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 0

    class Config:
        from_attributes = True
        use_enum_values = True

    @field_validator('end_date')
    @classmethod
    def end_date_after_start_date(cls, v, info):
        start = info.data.get('start_date')
        if v and start and v < start:
            raise ValueError('End date must be after start date')
        return v

    @model_validator(mode='after')
    def min_not_above_max(self):
        if self.min_participants > self.max_participants:
            raise ValueError('minParticipants cannot exceed maxParticipants')
        return self

    def find_participant(self, user_id: str) -> Optional[Participant]:
        return next((p for p in self.participants if p.user_id == user_id), None)

    def find_match(self, match_id: str) -> Optional[BracketMatch]:
        for bracket_round in self.brackets:
            for match in bracket_round.matches:
                if match.match_id == match_id:
                    return match
        return None

    def get_round(self, round_number: int) -> Optional[BracketRound]:
        if 1 <= round_number <= len(self.brackets):
            return self.brackets[round_number - 1]
        return None

    def seeded_participants(self) -> List[Participant]:
        # sort is stable, so equal seeds keep registration order
        return sorted(self.participants, key=lambda p: p.seed)

class TournamentEventKind(str, Enum):
    TOURNAMENT_STARTED = "tournament_started"
    MATCH_READY = "match_ready"
    MATCH_COMPLETED = "match_completed"
    ROUND_COMPLETED = "round_completed"
    TOURNAMENT_COMPLETED = "tournament_completed"
    TOURNAMENT_CANCELLED = "tournament_cancelled"
    PRIZE_AWARDED = "prize_awarded"

class TournamentEvent(BaseModel):
    """Side-effect intent produced by the engine; the caller decides how to deliver it."""
    kind: TournamentEventKind
    tournament_id: str
    round: Optional[int] = None
    match_id: Optional[str] = None
    user_ids: List[str] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        use_enum_values = True
