import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String

from gamehub.core.database import Base

class Tournament(Base):
    """One row per tournament aggregate.

    The whole TournamentModel lives in `document`; the other columns mirror a
    few of its fields so listings can filter and sort in SQL. `version` backs
    the compare-and-set save in TournamentService.
    """
    __tablename__ = "tournaments"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    game_type = Column(String, index=True, nullable=False)
    status = Column(String, index=True, nullable=False)
    start_date = Column(DateTime, index=True)
    created_by = Column(String, ForeignKey("users.id"), nullable=True)
    version = Column(Integer, nullable=False, default=0)
    document = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow)
