from gamehub.core.database import Base, engine

# Import all models here to ensure they are registered with Base
from .user import User
from .tournament import Tournament
from .game import GameRoom, GameRoomPlayer
from .notification import Notification

# Create all tables in the database.
# Ensure this is called after all model definitions.
Base.metadata.create_all(bind=engine)
