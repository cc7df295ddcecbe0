from typing import List, Optional

from fastapi import APIRouter, Depends, status

from gamehub.api.dependencies import get_current_user, get_tournament_service, require_admin
from gamehub.models import user as user_model
from gamehub.models.tournament_model import GameType, TournamentModel, TournamentStatus
from gamehub.schemas import tournament_schemas
from gamehub.services.tournament_service import TournamentService

router = APIRouter()

@router.get("/", response_model=List[tournament_schemas.TournamentSummary])
async def list_tournaments_endpoint(
    status: Optional[TournamentStatus] = None,
    game_type: Optional[GameType] = None,
    skip: int = 0,
    limit: int = 20,
    service: TournamentService = Depends(get_tournament_service),
):
    tournaments = service.list_tournaments(
        status=status.value if status else None,
        game_type=game_type.value if game_type else None,
        skip=skip,
        limit=limit,
    )
    return [tournament_schemas.TournamentSummary.from_model(t) for t in tournaments]

@router.post("/", response_model=TournamentModel, status_code=status.HTTP_201_CREATED)
async def create_tournament_endpoint(
    tournament_in: tournament_schemas.TournamentCreate,
    service: TournamentService = Depends(get_tournament_service),
    current_user: user_model.User = Depends(require_admin),
):
    return service.create_tournament(tournament_in, creator_id=current_user.id)

# Declared before the /{tournament_id} routes so "current" is not taken for an id
@router.get("/current/leaderboard", response_model=tournament_schemas.CurrentTournamentLeaderboard)
async def current_tournament_leaderboard_endpoint(
    service: TournamentService = Depends(get_tournament_service),
):
    tournament, leaderboard = service.current_leaderboard()
    summary = tournament_schemas.TournamentSummary.from_model(tournament) if tournament else None
    return tournament_schemas.CurrentTournamentLeaderboard(tournament=summary, leaderboard=leaderboard)

@router.get("/{tournament_id}", response_model=TournamentModel)
async def get_tournament_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
):
    return service.get_tournament(tournament_id)

@router.get("/{tournament_id}/leaderboard", response_model=List[tournament_schemas.TournamentLeaderboardEntry])
async def tournament_leaderboard_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
):
    return service.leaderboard(tournament_id)

@router.post("/{tournament_id}/join", response_model=TournamentModel)
async def join_tournament_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return service.register(tournament_id, current_user.id)

@router.post("/{tournament_id}/leave", response_model=TournamentModel)
async def leave_tournament_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
    current_user: user_model.User = Depends(get_current_user),
):
    return service.leave(tournament_id, current_user.id)

@router.post("/{tournament_id}/open-registration", response_model=TournamentModel)
async def open_registration_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
    current_user: user_model.User = Depends(require_admin),
):
    return service.open_registration(tournament_id)

@router.post("/{tournament_id}/start", response_model=TournamentModel)
async def start_tournament_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
    current_user: user_model.User = Depends(require_admin),
):
    return service.start(tournament_id)

@router.post("/{tournament_id}/cancel", response_model=TournamentModel)
async def cancel_tournament_endpoint(
    tournament_id: str,
    service: TournamentService = Depends(get_tournament_service),
    current_user: user_model.User = Depends(require_admin),
):
    return service.cancel(tournament_id)

@router.post("/{tournament_id}/matches/{match_id}/result", response_model=TournamentModel)
async def report_match_result_endpoint(
    tournament_id: str,
    match_id: str,
    payload: tournament_schemas.MatchResultPayload,
    service: TournamentService = Depends(get_tournament_service),
    current_user: user_model.User = Depends(require_admin),
):
    return service.report_match_result(tournament_id, match_id, payload.winner_id)

@router.post("/{tournament_id}/matches/{match_id}/game", response_model=TournamentModel)
async def link_match_game_endpoint(
    tournament_id: str,
    match_id: str,
    payload: tournament_schemas.LinkGamePayload,
    service: TournamentService = Depends(get_tournament_service),
    current_user: user_model.User = Depends(require_admin),
):
    return service.link_match_game(tournament_id, match_id, payload.game_id)
