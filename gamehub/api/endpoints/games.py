from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from gamehub.api.dependencies import get_current_user, get_game_service, get_user_service
from gamehub.core.errors import Forbidden
from gamehub.models import user as user_model
from gamehub.models.game_model import GameRoomModel
from gamehub.models.user_model import GameKind, UserProfile
from gamehub.schemas import game_schemas, user_schemas
from gamehub.services.game_service import GameService, page_count
from gamehub.services.user_service import UserService

router = APIRouter()

def _profile(user: user_model.User) -> UserProfile:
    return UserProfile.model_validate(user)

@router.post("/create", response_model=GameRoomModel, status_code=status.HTTP_201_CREATED)
async def create_game(
    game_in: game_schemas.GameCreate,
    service: GameService = Depends(get_game_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return service.create_room(
        _profile(current_user),
        game_in.game_type.value,
        bet_amount=game_in.bet_amount,
        tournament_id=game_in.tournament_id,
        match_id=game_in.match_id,
    )

# Fixed paths are declared before /{room_id} so they are not captured by it

@router.get("/active", response_model=List[GameRoomModel])
async def active_games(
    game_type: Optional[str] = None,
    service: GameService = Depends(get_game_service),
):
    return service.list_active_rooms(game_type=game_type)

@router.get("/history", response_model=game_schemas.GameHistoryPage)
async def game_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: GameService = Depends(get_game_service),
    current_user: user_model.User = Depends(get_current_user),
):
    games, total = service.game_history(current_user.id, page=page, limit=limit)
    return game_schemas.GameHistoryPage(games=games, page=page, limit=limit, total=total, pages=page_count(total, limit))

@router.get("/leaderboard/global", response_model=List[user_schemas.LeaderboardEntry])
async def global_leaderboard(
    limit: int = Query(100, ge=1, le=500),
    users: UserService = Depends(get_user_service),
):
    return users.leaderboard(limit=limit)

@router.get("/leaderboard/friends", response_model=user_schemas.FriendsLeaderboard)
async def friends_leaderboard(
    users: UserService = Depends(get_user_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return users.friends_leaderboard(current_user.id)

@router.get("/leaderboard/{game_type}", response_model=List[user_schemas.LeaderboardEntry])
async def game_leaderboard(
    game_type: GameKind,
    limit: int = Query(100, ge=1, le=500),
    users: UserService = Depends(get_user_service),
):
    return users.leaderboard(game_type=game_type.value, limit=limit)

@router.get("/search-player", response_model=List[user_schemas.PlayerSearchResult])
async def search_player(
    q: str = Query(..., min_length=1, max_length=20),
    users: UserService = Depends(get_user_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return users.search_players(q)

@router.get("/{room_id}", response_model=GameRoomModel)
async def get_game(room_id: str, service: GameService = Depends(get_game_service)):
    return service.get_room(room_id)

@router.post("/{room_id}/join", response_model=GameRoomModel)
async def join_game(
    room_id: str,
    service: GameService = Depends(get_game_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return service.join_room(room_id, _profile(current_user))

@router.post("/{room_id}/leave", response_model=GameRoomModel)
async def leave_game(
    room_id: str,
    service: GameService = Depends(get_game_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return service.leave_room(room_id, current_user.id)

@router.post("/{room_id}/ready", response_model=GameRoomModel)
async def set_ready(
    room_id: str,
    payload: game_schemas.ReadyPayload,
    service: GameService = Depends(get_game_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return service.set_ready(room_id, current_user.id, payload.ready)

@router.post("/{room_id}/start", response_model=GameRoomModel)
async def start_game(
    room_id: str,
    service: GameService = Depends(get_game_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return service.start_room(room_id, current_user.id)

@router.post("/{room_id}/move", response_model=GameRoomModel)
async def save_move(
    room_id: str,
    payload: game_schemas.MovePayload,
    service: GameService = Depends(get_game_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return service.record_move(room_id, current_user.id, payload.move)

@router.post("/{room_id}/chat", response_model=GameRoomModel)
async def send_chat(
    room_id: str,
    payload: game_schemas.ChatPayload,
    service: GameService = Depends(get_game_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return service.add_chat_message(room_id, _profile(current_user), payload.message)

@router.post("/{room_id}/result", response_model=GameRoomModel)
async def save_game_result(
    room_id: str,
    payload: game_schemas.GameResultPayload,
    service: GameService = Depends(get_game_service),
    current_user: user_model.User = Depends(get_current_user),
):
    room = service.get_room(room_id)
    if room.find_player(current_user.id) is None and not current_user.is_admin:
        raise Forbidden("Only players of this game can report its result.")
    return service.report_game_result(room_id, payload.winner_id, payload.game_data)
