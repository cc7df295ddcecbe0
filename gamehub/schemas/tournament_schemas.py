from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from gamehub.models.tournament_model import (
    MAX_PARTICIPANTS_CEILING,
    MIN_PARTICIPANTS_FLOOR,
    GameType,
    Prizes,
    TournamentFormat,
    TournamentModel,
)

class TournamentCreate(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    description: Optional[str] = None
    game_type: GameType
    format: TournamentFormat = TournamentFormat.SINGLE_ELIMINATION
    min_participants: int = Field(default=MIN_PARTICIPANTS_FLOOR, ge=MIN_PARTICIPANTS_FLOOR, le=MAX_PARTICIPANTS_CEILING)
    max_participants: int = Field(ge=MIN_PARTICIPANTS_FLOOR, le=MAX_PARTICIPANTS_CEILING)
    prizes: Prizes = Field(default_factory=Prizes)
    entry_fee: int = Field(default=0, ge=0)
    rules: List[str] = Field(default_factory=list)
    start_date: datetime
    end_date: Optional[datetime] = None
    registration_start_date: Optional[datetime] = None
    registration_end_date: Optional[datetime] = None

    @model_validator(mode='after')
    def check_bounds(self):
        if self.min_participants > self.max_participants:
            raise ValueError('min_participants cannot exceed max_participants')
        return self

class TournamentSummary(BaseModel):
    id: str
    name: str
    game_type: str
    format: str
    status: str
    participant_count: int
    max_participants: int
    entry_fee: int
    start_date: datetime

    @classmethod
    def from_model(cls, tournament: TournamentModel) -> "TournamentSummary":
        return cls(
            id=tournament.id,
            name=tournament.name,
            game_type=tournament.game_type,
            format=tournament.format,
            status=tournament.status,
            participant_count=len(tournament.participants),
            max_participants=tournament.max_participants,
            entry_fee=tournament.entry_fee,
            start_date=tournament.start_date,
        )

class MatchResultPayload(BaseModel):
    winner_id: str

class LinkGamePayload(BaseModel):
    game_id: str

class TournamentLeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    username: str
    seed: int
    wins: int
    losses: int
    points: int
    is_eliminated: bool

class CurrentTournamentLeaderboard(BaseModel):
    tournament: Optional[TournamentSummary] = None # None when nothing is running or scheduled
    leaderboard: List[TournamentLeaderboardEntry] = Field(default_factory=list)
