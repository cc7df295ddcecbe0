import logging
import math
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gamehub.core.errors import (
    AlreadyInRoom,
    ConcurrentUpdate,
    Forbidden,
    GameHubError,
    InsufficientParticipants,
    InvalidTransition,
    InvalidWinner,
    MatchAlreadyCompleted,
    RoomFull,
    RoomNotFound,
    UserBanned,
)
from gamehub.core.locks import KeyedLocks
from gamehub.models.game import GameRoom, GameRoomPlayer
from gamehub.models.game_model import ChatMessage, GameResult, GameRoomModel, Move, RoomPlayer, RoomStatus
from gamehub.models.user_model import GameOutcome, UserProfile
from gamehub.services import notification_service, stats_service
from gamehub.services.tournament_service import TournamentService
from gamehub.services.user_service import UserService

logger = logging.getLogger(__name__)

_room_locks = KeyedLocks()

ACTIVE_ROOMS_LIMIT = 50


class GameService:
    def __init__(
        self,
        db: Session,
        user_service: Optional[UserService] = None,
        tournament_service: Optional[TournamentService] = None,
    ):
        self.db = db
        self.user_service = user_service or UserService(db)
        self.tournament_service = tournament_service or TournamentService(db, self.user_service)

    def _load(self, room_id: str) -> GameRoomModel:
        row = self.db.query(GameRoom).filter(GameRoom.room_id == room_id).populate_existing().first()
        if row is None:
            raise RoomNotFound(f"Game {room_id} not found.")
        room = GameRoomModel.model_validate(row.document)
        room.version = row.version
        return room

    def _columns(self, room: GameRoomModel) -> dict:
        return {
            "game_type": room.game_type,
            "status": RoomStatus(room.status).value,
            "tournament_id": room.tournament_id,
            "version": room.version,
            "document": room.model_dump(mode="json"),
            "ended_at": room.ended_at,
        }

    def _save(self, room: GameRoomModel, expected_version: int) -> GameRoomModel:
        room.version = expected_version + 1
        updated_rows = self.db.query(GameRoom)\
            .filter(GameRoom.room_id == room.room_id, GameRoom.version == expected_version)\
            .update(self._columns(room), synchronize_session=False)
        if updated_rows != 1:
            self.db.rollback()
            raise ConcurrentUpdate(f"Game {room.room_id} was modified concurrently.")
        self.db.commit()
        return room

    def _apply(self, room_id: str, change: Callable[[GameRoomModel], None]) -> GameRoomModel:
        with _room_locks.hold(room_id):
            room = self._load(room_id)
            expected = room.version
            change(room)
            return self._save(room, expected)

    def _match_players(self, room: GameRoomModel) -> Optional[List[str]]:
        """User ids allowed to play a tournament room, None for a casual room."""
        if not room.tournament_id:
            return None
        match = self.tournament_service.get_tournament(room.tournament_id).find_match(room.match_id)
        return match.players if match is not None else []

    # --- Lobby ---

    def create_room(
        self,
        user: UserProfile,
        game_type: str,
        bet_amount: int = 0,
        tournament_id: Optional[str] = None,
        match_id: Optional[str] = None,
    ) -> GameRoomModel:
        if user.ban_active():
            raise UserBanned(f"User {user.username} is banned.")

        room = GameRoomModel(
            game_type=game_type,
            bet_amount=bet_amount,
            players=[RoomPlayer(user_id=user.id, username=user.username, is_host=True)],
        )

        if tournament_id:
            tournament = self.tournament_service.get_tournament(tournament_id)
            match = tournament.find_match(match_id)
            if match is not None and user.id not in match.players:
                raise Forbidden("Only the match participants can open its game.")
            self.tournament_service.link_match_game(tournament_id, match_id, room.room_id)
            room.tournament_id = tournament_id
            room.match_id = match_id
            room.bet_amount = 0

        self.db.add(GameRoom(room_id=room.room_id, created_at=room.created_at, **self._columns(room)))
        self.db.commit()
        logger.info(f"Game {room.room_id} ({room.game_type}) created by {user.id}")
        return room

    def get_room(self, room_id: str) -> GameRoomModel:
        return self._load(room_id)

    def join_room(self, room_id: str, user: UserProfile) -> GameRoomModel:
        if user.ban_active():
            raise UserBanned(f"User {user.username} is banned.")
        match_players = self._match_players(self._load(room_id))

        def join(room: GameRoomModel) -> None:
            if room.status != RoomStatus.WAITING:
                raise InvalidTransition("Game already started.")
            if room.find_player(user.id) is not None:
                raise AlreadyInRoom()
            if match_players is not None and user.id not in match_players:
                raise Forbidden("Only the match participants can join its game.")
            if len(room.players) >= room.max_players:
                raise RoomFull()
            room.players.append(RoomPlayer(user_id=user.id, username=user.username))

        return self._apply(room_id, join)

    def leave_room(self, room_id: str, user_id: str) -> GameRoomModel:
        def leave(room: GameRoomModel) -> None:
            if room.status in (RoomStatus.COMPLETED, RoomStatus.CANCELLED):
                raise InvalidTransition(f"Game is already {room.status}.")
            room.players = [p for p in room.players if p.user_id != user_id]
            if room.status == RoomStatus.IN_PROGRESS:
                room.status = RoomStatus.CANCELLED
                room.result = GameResult.ABANDONED
                room.ended_at = datetime.utcnow()
                room.duration = _duration(room)
                return
            if room.players and not any(p.is_host for p in room.players):
                room.players[0].is_host = True
            if not room.players:
                room.status = RoomStatus.CANCELLED

        room = self._apply(room_id, leave)
        logger.info(f"User {user_id} left game {room_id} (status {RoomStatus(room.status).value})")
        if room.tournament_id and room.status == RoomStatus.CANCELLED:
            self._release_match(room)
        return room

    def set_ready(self, room_id: str, user_id: str, ready: bool = True) -> GameRoomModel:
        def mark(room: GameRoomModel) -> None:
            if room.status != RoomStatus.WAITING:
                raise InvalidTransition("Game already started.")
            player = room.find_player(user_id)
            if player is None:
                raise Forbidden("Not a player in this game.")
            player.is_ready = ready

        return self._apply(room_id, mark)

    def start_room(self, room_id: str, user_id: str) -> GameRoomModel:
        def begin(room: GameRoomModel) -> None:
            player = room.find_player(user_id)
            if player is None or not player.is_host:
                raise Forbidden("Only the host can start the game.")
            if room.status != RoomStatus.WAITING:
                raise InvalidTransition("Game already started.")
            if len(room.players) < 2:
                raise InsufficientParticipants("A game needs at least 2 players.")
            room.status = RoomStatus.IN_PROGRESS
            room.started_at = datetime.utcnow()

        return self._apply(room_id, begin)

    def record_move(self, room_id: str, user_id: str, move: Any) -> GameRoomModel:
        def add(room: GameRoomModel) -> None:
            if room.status != RoomStatus.IN_PROGRESS:
                raise InvalidTransition("Game is not in progress.")
            if room.find_player(user_id) is None:
                raise Forbidden("Not a player in this game.")
            room.moves.append(Move(player=user_id, move=move))

        return self._apply(room_id, add)

    def add_chat_message(self, room_id: str, user: UserProfile, message: str) -> GameRoomModel:
        def add(room: GameRoomModel) -> None:
            if room.find_player(user.id) is None:
                raise Forbidden("Not a player in this game.")
            room.chat.append(ChatMessage(user_id=user.id, username=user.username, message=message))

        return self._apply(room_id, add)

    # --- Results ---

    def report_game_result(self, room_id: str, winner_id: Optional[str], game_data: Any = None) -> GameRoomModel:
        """Complete the room and propagate the outcome.

        Each player's stats change exactly once: a second report for the same
        room fails with InvalidTransition before anything is written. Rooms
        opened for a tournament match forward the winner to the bracket first,
        so a rejected bracket update leaves the room untouched. When the bracket
        already holds the same winner, because an earlier report lost the room
        save, the room is completed without touching the bracket again.
        """
        with _room_locks.hold(room_id):
            room = self._load(room_id)
            expected = room.version
            if room.status != RoomStatus.IN_PROGRESS:
                raise InvalidTransition(f"Cannot report a result for a game that is {room.status}.")
            if winner_id is not None and room.find_player(winner_id) is None:
                raise InvalidWinner(f"{winner_id} is not a player in game {room_id}.")
            if room.tournament_id:
                if winner_id is None:
                    raise InvalidWinner("Tournament games cannot end in a draw.")
                self._forward_match_winner(room, winner_id)

            room.status = RoomStatus.COMPLETED
            room.winner_id = winner_id
            room.result = GameResult.WIN if winner_id else GameResult.DRAW
            room.game_data = game_data
            room.ended_at = datetime.utcnow()
            room.duration = _duration(room)
            self.db.add_all([GameRoomPlayer(room_id=room.room_id, user_id=p.user_id) for p in room.players])
            room = self._save(room, expected)

        for player in room.players:
            outcome = _outcome_for(player.user_id, winner_id)
            try:
                self.user_service.update_stats(
                    player.user_id,
                    lambda stats: stats_service.apply_game_result(stats, room.game_type, outcome, room.bet_amount),
                )
            except (GameHubError, SQLAlchemyError) as e:
                self.db.rollback()
                logger.error(f"Could not apply the result of game {room_id} to {player.user_id}: {e}")

        message = "Game ended in a draw." if winner_id is None else f"Game won by {_username(room, winner_id)}."
        notification_service.notify_game_result(
            self.db,
            [p.user_id for p in room.players],
            message,
            {"room_id": room.room_id, "game_type": room.game_type, "winner_id": winner_id},
        )
        logger.info(f"Game {room_id} completed, winner {winner_id or 'none (draw)'}")
        return room

    def _forward_match_winner(self, room: GameRoomModel, winner_id: str) -> None:
        match_players = self._match_players(room)
        if any(room.find_player(p) is None for p in match_players):
            raise InvalidTransition("Both match participants must be in the game to decide it.")
        try:
            self.tournament_service.report_match_result(room.tournament_id, room.match_id, winner_id)
        except MatchAlreadyCompleted:
            # An earlier report reached the bracket but lost the room save.
            match = self.tournament_service.get_tournament(room.tournament_id).find_match(room.match_id)
            if match.winner != winner_id:
                raise
            logger.info(f"Match {room.match_id} already holds the result of game {room.room_id}")

    def _release_match(self, room: GameRoomModel) -> None:
        try:
            self.tournament_service.unlink_match_game(room.tournament_id, room.match_id, room.room_id)
        except GameHubError as e:
            self.db.rollback()
            logger.error(f"Could not release match {room.match_id} from abandoned game {room.room_id}: {e}")

    # --- Listings ---

    def list_active_rooms(self, game_type: Optional[str] = None, limit: int = ACTIVE_ROOMS_LIMIT) -> List[GameRoomModel]:
        query = self.db.query(GameRoom).filter(GameRoom.status == RoomStatus.WAITING.value)
        if game_type and game_type != "all":
            query = query.filter(GameRoom.game_type == game_type)
        rows = query.order_by(GameRoom.created_at.desc()).limit(limit).all()
        return [GameRoomModel.model_validate(row.document) for row in rows]

    def game_history(self, user_id: str, page: int = 1, limit: int = 20) -> Tuple[List[GameRoomModel], int]:
        """Completed games the user played in, most recent first, and the total count."""
        query = self.db.query(GameRoom)\
            .join(GameRoomPlayer, GameRoomPlayer.room_id == GameRoom.room_id)\
            .filter(GameRoomPlayer.user_id == user_id, GameRoom.status == RoomStatus.COMPLETED.value)
        total = query.count()
        rows = query.order_by(GameRoom.ended_at.desc()).offset((page - 1) * limit).limit(limit).all()
        return [GameRoomModel.model_validate(row.document) for row in rows], total


def _outcome_for(user_id: str, winner_id: Optional[str]) -> GameOutcome:
    if winner_id is None:
        return GameOutcome.DRAW
    return GameOutcome.WIN if user_id == winner_id else GameOutcome.LOSE


def _duration(room: GameRoomModel) -> int:
    if room.started_at is None or room.ended_at is None:
        return 0
    return int((room.ended_at - room.started_at).total_seconds())


def _username(room: GameRoomModel, user_id: str) -> str:
    player = room.find_player(user_id)
    return player.username if player else user_id


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
