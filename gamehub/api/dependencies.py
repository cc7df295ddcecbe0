from fastapi import Depends
from sqlalchemy.orm import Session

from gamehub.core import security
from gamehub.core.database import SessionLocal
from gamehub.core.errors import AuthError, Forbidden
from gamehub.models import user as user_model
from gamehub.models.user_model import UserProfile
from gamehub.services.game_service import GameService
from gamehub.services.tournament_service import TournamentService
from gamehub.services.user_service import UserService

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_current_user(token: str = Depends(security.oauth2_scheme), db: Session = Depends(get_db)) -> user_model.User:
    token_data = security.verify_token(token)
    user = db.query(user_model.User).filter(user_model.User.id == token_data.user_id).first()
    if user is None:
        raise AuthError()
    if UserProfile.model_validate(user).ban_active():
        raise Forbidden(f"Account banned. Reason: {user.ban_reason}")
    return user

def require_admin(current_user: user_model.User = Depends(get_current_user)) -> user_model.User:
    if not current_user.is_admin:
        raise Forbidden("Admin access required")
    return current_user

def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)

def get_tournament_service(db: Session = Depends(get_db)) -> TournamentService:
    return TournamentService(db)

def get_game_service(db: Session = Depends(get_db)) -> GameService:
    return GameService(db)
