from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from gamehub.models.user_model import UserStats, UserSettings

class UserRead(BaseModel):
    id: str
    username: str
    email: str
    avatar: Optional[str] = None
    is_admin: bool = False
    is_email_verified: bool = False
    is_online: bool = False
    last_seen: Optional[datetime] = None
    stats: UserStats = Field(default_factory=UserStats)
    settings: UserSettings = Field(default_factory=UserSettings)

    class Config:
        from_attributes = True

class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=20, pattern=r"^[a-zA-Z0-9_]+$")
    avatar: Optional[str] = None
    settings: Optional[Dict[str, bool]] = None

class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    username: str
    avatar: Optional[str] = None
    score: int
    level: int
    games_played: int
    games_won: int
    win_rate: int

class PlayerSearchResult(BaseModel):
    id: str
    username: str
    avatar: Optional[str] = None
    level: int
    is_online: bool

class FriendsLeaderboard(BaseModel):
    """The caller ranked among their friends; the caller is part of `leaderboard`."""
    your_score: int
    your_rank: Optional[int] = None # None while the caller is banned
    leaderboard: List[LeaderboardEntry]

class FriendRequestRead(BaseModel):
    from_user_id: str
    username: str
    avatar: Optional[str] = None
    created_at: datetime
