import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String

from gamehub.core.database import Base

class GameRoom(Base):
    """One row per game room; the GameRoomModel document is stored whole."""
    __tablename__ = "game_rooms"

    room_id = Column(String, primary_key=True, index=True)
    game_type = Column(String, index=True, nullable=False)
    status = Column(String, index=True, nullable=False)
    tournament_id = Column(String, nullable=True, index=True)
    version = Column(Integer, nullable=False, default=0)
    document = Column(JSON, nullable=False)
    created_at = Column(DateTime, index=True, default=datetime.datetime.utcnow)
    ended_at = Column(DateTime, index=True, nullable=True)

class GameRoomPlayer(Base):
    """Who played in a completed room, so history lookups stay in SQL."""
    __tablename__ = "game_room_players"

    room_id = Column(String, ForeignKey("game_rooms.room_id"), primary_key=True)
    user_id = Column(String, primary_key=True, index=True)
