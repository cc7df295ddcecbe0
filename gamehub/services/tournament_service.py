"""
Application service around the pure tournament engine.

Each mutating call loads the tournament document, runs one engine function
on it, and saves the result with a version compare-and-set, all while
holding the per-tournament lock. The engine's events are delivered only
after the commit: notifications are best-effort, prize intents update the
winners' stats under their own per-user locks.
"""

import logging
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gamehub.core.errors import ConcurrentUpdate, GameHubError, InvalidInput, TournamentNotFound
from gamehub.core.locks import KeyedLocks
from gamehub.models.tournament import Tournament
from gamehub.models.tournament_model import (
    PrizeTier,
    TournamentEvent,
    TournamentEventKind,
    TournamentModel,
    TournamentStatus,
)
from gamehub.schemas.tournament_schemas import TournamentCreate, TournamentLeaderboardEntry
from gamehub.services import bracket_service, lifecycle, notification_service, stats_service
from gamehub.services.user_service import UserService

logger = logging.getLogger(__name__)

_tournament_locks = KeyedLocks()

Operation = Callable[[TournamentModel], Tuple[TournamentModel, List[TournamentEvent]]]


def _rank_participants(tournament: TournamentModel) -> List[TournamentLeaderboardEntry]:
    ranked = sorted(tournament.participants, key=lambda p: (-p.points, -p.wins, p.seed))
    return [
        TournamentLeaderboardEntry(
            rank=rank,
            user_id=p.user_id,
            username=p.username,
            seed=p.seed,
            wins=p.wins,
            losses=p.losses,
            points=p.points,
            is_eliminated=p.is_eliminated,
        )
        for rank, p in enumerate(ranked, start=1)
    ]


class TournamentService:
    def __init__(self, db: Session, user_service: Optional[UserService] = None):
        self.db = db
        self.user_service = user_service or UserService(db)

    # --- Persistence ---

    def _load(self, tournament_id: str) -> TournamentModel:
        row = self.db.query(Tournament).filter(Tournament.id == tournament_id).populate_existing().first()
        if row is None:
            raise TournamentNotFound(f"Tournament {tournament_id} not found.")
        tournament = TournamentModel.model_validate(row.document)
        tournament.version = row.version
        return tournament

    def _columns(self, tournament: TournamentModel) -> dict:
        return {
            "name": tournament.name,
            "game_type": tournament.game_type,
            "status": TournamentStatus(tournament.status).value,
            "start_date": tournament.start_date,
            "created_by": tournament.created_by,
            "version": tournament.version,
            "document": tournament.model_dump(mode="json"),
            "updated_at": tournament.updated_at,
        }

    def _save(self, tournament: TournamentModel, expected_version: int) -> TournamentModel:
        tournament.version = expected_version + 1
        updated_rows = self.db.query(Tournament)\
            .filter(Tournament.id == tournament.id, Tournament.version == expected_version)\
            .update(self._columns(tournament), synchronize_session=False)
        if updated_rows != 1:
            self.db.rollback()
            logger.warning(f"Lost update on tournament {tournament.id} at version {expected_version}")
            raise ConcurrentUpdate(f"Tournament {tournament.id} was modified concurrently.")
        self.db.commit()
        return tournament

    def _apply(self, tournament_id: str, operation: Operation) -> TournamentModel:
        with _tournament_locks.hold(tournament_id):
            current = self._load(tournament_id)
            updated, events = operation(current)
            saved = self._save(updated, current.version)
        self._dispatch(saved, events)
        return saved

    # --- Event delivery ---

    def _dispatch(self, tournament: TournamentModel, events: List[TournamentEvent]) -> None:
        if not events:
            return
        for event in events:
            logger.info(f"Tournament {tournament.id}: {event.kind} {event.match_id or ''}".rstrip())
            if event.kind == TournamentEventKind.PRIZE_AWARDED:
                self._award_prize(event)
        notification_service.notify_tournament_events(self.db, events, tournament.name)

    def _award_prize(self, event: TournamentEvent) -> None:
        tier = PrizeTier(
            coins=event.data.get("coins", 0),
            points=event.data.get("points", 0),
            badge=event.data.get("badge"),
        )
        for user_id in event.user_ids:
            try:
                self.user_service.update_stats(user_id, lambda stats: stats_service.apply_prize(stats, tier))
            except (GameHubError, SQLAlchemyError) as e:
                self.db.rollback()
                logger.error(f"Could not award prize for place {event.data.get('place')} to {user_id}: {e}")

    # --- Queries ---

    def create_tournament(self, tournament_in: TournamentCreate, creator_id: Optional[str] = None) -> TournamentModel:
        try:
            tournament = TournamentModel(**tournament_in.model_dump(), created_by=creator_id)
        except ValidationError as e:
            raise InvalidInput(str(e))

        self.db.add(Tournament(id=tournament.id, **self._columns(tournament)))
        self.db.commit()
        logger.info(f"Tournament {tournament.id} '{tournament.name}' created by {creator_id}")
        return tournament

    def get_tournament(self, tournament_id: str) -> TournamentModel:
        return self._load(tournament_id)

    def list_tournaments(
        self,
        status: Optional[str] = None,
        game_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> List[TournamentModel]:
        query = self.db.query(Tournament)
        if status:
            query = query.filter(Tournament.status == status)
        if game_type:
            query = query.filter(Tournament.game_type == game_type)
        rows = query.order_by(Tournament.start_date.asc()).offset(skip).limit(limit).all()
        tournaments = []
        for row in rows:
            tournament = TournamentModel.model_validate(row.document)
            tournament.version = row.version
            tournaments.append(tournament)
        return tournaments

    def leaderboard(self, tournament_id: str) -> List[TournamentLeaderboardEntry]:
        return _rank_participants(self._load(tournament_id))

    def current_tournament(self) -> Optional[TournamentModel]:
        """The tournament being played now, otherwise the next one to start."""
        row = self.db.query(Tournament)\
            .filter(Tournament.status == TournamentStatus.IN_PROGRESS.value)\
            .order_by(Tournament.start_date.desc())\
            .first()
        if row is None:
            row = self.db.query(Tournament)\
                .filter(Tournament.status.in_([s.value for s in lifecycle.OPEN_STATUSES]))\
                .order_by(Tournament.start_date.asc())\
                .first()
        if row is None:
            return None
        tournament = TournamentModel.model_validate(row.document)
        tournament.version = row.version
        return tournament

    def current_leaderboard(self) -> Tuple[Optional[TournamentModel], List[TournamentLeaderboardEntry]]:
        tournament = self.current_tournament()
        if tournament is None:
            return None, []
        return tournament, _rank_participants(tournament)

    # --- Lifecycle ---

    def register(self, tournament_id: str, user_id: str) -> TournamentModel:
        profile = self.user_service.get_profile(user_id)
        tournament = self._apply(tournament_id, lambda t: lifecycle.register(t, profile))
        logger.info(f"User {user_id} registered for tournament {tournament_id}")
        return tournament

    def leave(self, tournament_id: str, user_id: str) -> TournamentModel:
        return self._apply(tournament_id, lambda t: lifecycle.leave(t, user_id))

    def open_registration(self, tournament_id: str) -> TournamentModel:
        return self._apply(tournament_id, lifecycle.open_registration)

    def start(self, tournament_id: str) -> TournamentModel:
        return self._apply(tournament_id, lifecycle.start)

    def cancel(self, tournament_id: str) -> TournamentModel:
        tournament = self._apply(tournament_id, lifecycle.cancel)
        logger.info(f"Tournament {tournament_id} cancelled")
        return tournament

    # --- Matches ---

    def report_match_result(self, tournament_id: str, match_id: str, winner_id: str) -> TournamentModel:
        return self._apply(
            tournament_id,
            lambda t: bracket_service.report_match_result(t, match_id, winner_id),
        )

    def link_match_game(self, tournament_id: str, match_id: str, game_id: str) -> TournamentModel:
        return self._apply(
            tournament_id,
            lambda t: bracket_service.link_match_game(t, match_id, game_id),
        )

    def unlink_match_game(self, tournament_id: str, match_id: str, game_id: str) -> TournamentModel:
        return self._apply(
            tournament_id,
            lambda t: bracket_service.unlink_match_game(t, match_id, game_id),
        )

