from datetime import datetime
from unittest.mock import patch

import pytest

from gamehub.core.errors import (
    AlreadyInRoom,
    ConcurrentUpdate,
    Forbidden,
    InsufficientParticipants,
    InvalidTransition,
    InvalidWinner,
    MatchAlreadyCompleted,
    RoomFull,
    RoomNotFound,
    UserNotFound,
)
from gamehub.models.game import GameRoom
from gamehub.models.game_model import GameResult, RoomPlayer, RoomStatus
from gamehub.models.tournament_model import MatchStatus, TournamentStatus
from gamehub.models.user_model import UserProfile
from gamehub.schemas.tournament_schemas import TournamentCreate
from gamehub.services import notification_service
from gamehub.services.game_service import GameService
from gamehub.services.tournament_service import TournamentService


@pytest.fixture
def game_service(db_session, user_service):
    return GameService(db_session, user_service)


@pytest.fixture
def profiles(make_user):
    return [UserProfile.model_validate(make_user()) for _ in range(3)]


def running_room(service, host, guest, game_type="tictactoe", bet=0):
    room = service.create_room(host, game_type, bet_amount=bet)
    service.join_room(room.room_id, guest)
    return service.start_room(room.room_id, host.id)


class TestLobby:

    def test_create_room_makes_host(self, game_service: GameService, profiles):
        host = profiles[0]

        room = game_service.create_room(host, "ludo", bet_amount=10)

        loaded = game_service.get_room(room.room_id)
        assert loaded.status == RoomStatus.WAITING
        assert [(p.user_id, p.is_host) for p in loaded.players] == [(host.id, True)]
        assert loaded.max_players == 4

    def test_unknown_room(self, game_service: GameService):
        with pytest.raises(RoomNotFound):
            game_service.get_room("missing")

    def test_join_rules(self, game_service: GameService, profiles):
        host, guest, late = profiles
        room = game_service.create_room(host, "tictactoe")

        game_service.join_room(room.room_id, guest)

        with pytest.raises(AlreadyInRoom):
            game_service.join_room(room.room_id, guest)
        with pytest.raises(RoomFull):
            game_service.join_room(room.room_id, late)

    def test_cannot_join_started_game(self, game_service: GameService, profiles):
        host, guest, late = profiles
        room = running_room(game_service, host, guest, game_type="ludo")

        with pytest.raises(InvalidTransition):
            game_service.join_room(room.room_id, late)

    def test_host_leaving_hands_over(self, game_service: GameService, profiles):
        host, guest, _ = profiles
        room = game_service.create_room(host, "uno")
        game_service.join_room(room.room_id, guest)

        room = game_service.leave_room(room.room_id, host.id)

        assert [(p.user_id, p.is_host) for p in room.players] == [(guest.id, True)]
        assert room.status == RoomStatus.WAITING

    def test_last_player_leaving_cancels(self, game_service: GameService, profiles):
        room = game_service.create_room(profiles[0], "uno")

        room = game_service.leave_room(room.room_id, profiles[0].id)

        assert room.status == RoomStatus.CANCELLED
        assert game_service.list_active_rooms() == []

    def test_leaving_mid_game_abandons(self, game_service: GameService, profiles):
        host, guest, _ = profiles
        room = running_room(game_service, host, guest)

        room = game_service.leave_room(room.room_id, guest.id)

        assert room.status == RoomStatus.CANCELLED
        assert room.result == GameResult.ABANDONED

    def test_only_host_starts_with_two_players(self, game_service: GameService, profiles):
        host, guest, _ = profiles
        room = game_service.create_room(host, "tictactoe")

        with pytest.raises(InsufficientParticipants):
            game_service.start_room(room.room_id, host.id)

        game_service.join_room(room.room_id, guest)
        with pytest.raises(Forbidden):
            game_service.start_room(room.room_id, guest.id)

        started = game_service.start_room(room.room_id, host.id)
        assert started.status == RoomStatus.IN_PROGRESS
        assert started.started_at is not None

    def test_ready_moves_and_chat(self, game_service: GameService, profiles):
        host, guest, outsider = profiles
        room = game_service.create_room(host, "tictactoe")
        game_service.join_room(room.room_id, guest)
        room = game_service.set_ready(room.room_id, guest.id)
        assert room.find_player(guest.id).is_ready is True

        with pytest.raises(InvalidTransition):
            game_service.record_move(room.room_id, host.id, {"cell": 4})

        game_service.start_room(room.room_id, host.id)
        game_service.record_move(room.room_id, host.id, {"cell": 4})
        room = game_service.add_chat_message(room.room_id, guest, "gl hf")

        assert room.moves[0].move == {"cell": 4}
        assert room.moves[0].player == host.id
        assert room.chat[0].message == "gl hf"
        with pytest.raises(Forbidden):
            game_service.record_move(room.room_id, outsider.id, {"cell": 0})

    def test_active_rooms_filter(self, game_service: GameService, profiles):
        game_service.create_room(profiles[0], "bingo")
        game_service.create_room(profiles[1], "uno")

        assert [r.game_type for r in game_service.list_active_rooms(game_type="bingo")] == ["bingo"]
        assert len(game_service.list_active_rooms(game_type="all")) == 2


class TestGameResults:

    def test_win_updates_every_player_once(self, game_service: GameService, user_service, profiles):
        host, guest, _ = profiles
        room = running_room(game_service, host, guest, bet=25)

        room = game_service.report_game_result(room.room_id, host.id, {"board": "xox"})

        assert room.status == RoomStatus.COMPLETED
        assert room.result == GameResult.WIN
        assert room.game_data == {"board": "xox"}
        winner = user_service.get_stats(user_service.get_user(host.id))
        loser = user_service.get_stats(user_service.get_user(guest.id))
        assert (winner.games_won, winner.score, winner.coins) == (1, 100, 150)
        assert (loser.games_lost, loser.score, loser.coins) == (1, 10, 100)

        with pytest.raises(InvalidTransition):
            game_service.report_game_result(room.room_id, host.id)
        assert user_service.get_stats(user_service.get_user(host.id)).games_played == 1

    def test_draw(self, game_service: GameService, user_service, profiles):
        host, guest, _ = profiles
        room = running_room(game_service, host, guest)

        room = game_service.report_game_result(room.room_id, None)

        assert room.result == GameResult.DRAW
        assert room.winner_id is None
        for player in (host, guest):
            assert user_service.get_stats(user_service.get_user(player.id)).games_draw == 1

    def test_winner_must_be_in_room(self, game_service: GameService, user_service, profiles):
        host, guest, outsider = profiles
        room = running_room(game_service, host, guest)

        with pytest.raises(InvalidWinner):
            game_service.report_game_result(room.room_id, outsider.id)

        assert game_service.get_room(room.room_id).status == RoomStatus.IN_PROGRESS
        assert user_service.get_stats(user_service.get_user(host.id)).games_played == 0

    def test_history_is_paginated(self, game_service: GameService, profiles):
        host, guest, _ = profiles
        for _ in range(3):
            room = running_room(game_service, host, guest)
            game_service.report_game_result(room.room_id, guest.id)

        page, total = game_service.game_history(host.id, page=2, limit=2)

        assert total == 3
        assert len(page) == 1

    def test_history_only_lists_own_games(self, game_service: GameService, profiles):
        host, guest, other = profiles
        mine = running_room(game_service, host, guest)
        game_service.report_game_result(mine.room_id, host.id)
        theirs = running_room(game_service, guest, other)
        game_service.report_game_result(theirs.room_id, other.id)

        page, total = game_service.game_history(host.id)

        assert total == 1
        assert [g.room_id for g in page] == [mine.room_id]
        assert game_service.game_history(guest.id)[1] == 2

    def test_stats_failure_for_one_player_spares_the_rest(self, game_service: GameService, user_service, profiles, db_session):
        host, guest, _ = profiles
        room = running_room(game_service, host, guest)
        real_update = user_service.update_stats

        def flaky_update(user_id, change):
            if user_id == host.id:
                raise UserNotFound(f"User {user_id} not found.")
            return real_update(user_id, change)

        with patch.object(user_service, "update_stats", side_effect=flaky_update):
            room = game_service.report_game_result(room.room_id, guest.id)

        assert room.status == RoomStatus.COMPLETED
        assert user_service.get_stats(user_service.get_user(guest.id)).games_won == 1
        assert user_service.get_stats(user_service.get_user(host.id)).games_played == 0
        notes = notification_service.get_user_notifications(db_session, host.id)
        assert [n.type for n in notes] == ["game_result"]


class TestTournamentGames:

    @pytest.fixture
    def tournament(self, db_session, user_service, profiles):
        service = TournamentService(db_session, user_service)
        created = service.create_tournament(TournamentCreate(
            name="Lobby Cup",
            game_type="tictactoe",
            max_participants=4,
            start_date=datetime(2026, 7, 1),
        ))
        for profile in profiles[:2]:
            service.register(created.id, profile.id)
        return service.start(created.id)

    def test_room_links_match_and_forwards_winner(self, game_service: GameService, tournament, profiles):
        host, guest, _ = profiles
        room = game_service.create_room(host, "tictactoe", tournament_id=tournament.id, match_id="R1M1")

        linked = game_service.tournament_service.get_tournament(tournament.id).find_match("R1M1")
        assert linked.status == MatchStatus.IN_PROGRESS
        assert linked.game_id == room.room_id

        game_service.join_room(room.room_id, guest)
        game_service.start_room(room.room_id, host.id)
        game_service.report_game_result(room.room_id, guest.id)

        finished = game_service.tournament_service.get_tournament(tournament.id)
        assert finished.status == TournamentStatus.COMPLETED
        assert finished.standings.first == guest.id

    def test_tournament_game_cannot_be_drawn(self, game_service: GameService, tournament, profiles):
        host, guest, _ = profiles
        room = game_service.create_room(host, "tictactoe", tournament_id=tournament.id, match_id="R1M1")
        game_service.join_room(room.room_id, guest)
        game_service.start_room(room.room_id, host.id)

        with pytest.raises(InvalidWinner):
            game_service.report_game_result(room.room_id, None)

        assert game_service.get_room(room.room_id).status == RoomStatus.IN_PROGRESS

    def test_outsider_cannot_open_match_room(self, game_service: GameService, tournament, profiles):
        with pytest.raises(Forbidden):
            game_service.create_room(profiles[2], "tictactoe", tournament_id=tournament.id, match_id="R1M1")

    def test_outsider_cannot_join_match_room(self, game_service: GameService, tournament, profiles):
        host, guest, outsider = profiles
        room = game_service.create_room(host, "tictactoe", tournament_id=tournament.id, match_id="R1M1")

        with pytest.raises(Forbidden):
            game_service.join_room(room.room_id, outsider)

        game_service.join_room(room.room_id, guest)
        assert [p.user_id for p in game_service.get_room(room.room_id).players] == [host.id, guest.id]

    def test_match_needs_both_participants_in_room(self, game_service: GameService, tournament, profiles):
        host, guest, outsider = profiles
        room = game_service.create_room(host, "tictactoe", tournament_id=tournament.id, match_id="R1M1")
        # a room filled before participant checks existed
        game_service._apply(
            room.room_id,
            lambda r: r.players.append(RoomPlayer(user_id=outsider.id, username=outsider.username)),
        )
        game_service.start_room(room.room_id, host.id)

        with pytest.raises(InvalidTransition):
            game_service.report_game_result(room.room_id, host.id)

        match = game_service.tournament_service.get_tournament(tournament.id).find_match("R1M1")
        assert match.status == MatchStatus.IN_PROGRESS
        assert match.winner is None

    def test_abandoned_match_room_can_be_reopened(self, game_service: GameService, tournament, profiles):
        host, guest, _ = profiles
        first = game_service.create_room(host, "tictactoe", tournament_id=tournament.id, match_id="R1M1")
        game_service.join_room(first.room_id, guest)
        game_service.start_room(first.room_id, host.id)

        game_service.leave_room(first.room_id, guest.id)

        match = game_service.tournament_service.get_tournament(tournament.id).find_match("R1M1")
        assert (match.status, match.game_id) == (MatchStatus.PENDING, None)

        second = game_service.create_room(guest, "tictactoe", tournament_id=tournament.id, match_id="R1M1")
        relinked = game_service.tournament_service.get_tournament(tournament.id).find_match("R1M1")
        assert (relinked.status, relinked.game_id) == (MatchStatus.IN_PROGRESS, second.room_id)

    def test_empty_match_room_releases_match(self, game_service: GameService, tournament, profiles):
        room = game_service.create_room(profiles[0], "tictactoe", tournament_id=tournament.id, match_id="R1M1")

        room = game_service.leave_room(room.room_id, profiles[0].id)

        assert room.status == RoomStatus.CANCELLED
        assert game_service.tournament_service.get_tournament(tournament.id).find_match("R1M1").game_id is None

    def test_retry_after_lost_room_save(self, game_service: GameService, user_service, tournament, profiles, db_session):
        host, guest, _ = profiles
        room = game_service.create_room(host, "tictactoe", tournament_id=tournament.id, match_id="R1M1")
        game_service.join_room(room.room_id, guest)
        game_service.start_room(room.room_id, host.id)
        real_report = game_service.tournament_service.report_match_result

        def report_then_concurrent_write(*args):
            result = real_report(*args)
            db_session.query(GameRoom)\
                .filter(GameRoom.room_id == room.room_id)\
                .update({"version": GameRoom.version + 1}, synchronize_session=False)
            db_session.commit()
            return result

        with patch.object(game_service.tournament_service, "report_match_result", side_effect=report_then_concurrent_write):
            with pytest.raises(ConcurrentUpdate):
                game_service.report_game_result(room.room_id, host.id)
        assert game_service.get_room(room.room_id).status == RoomStatus.IN_PROGRESS

        done = game_service.report_game_result(room.room_id, host.id)

        assert done.status == RoomStatus.COMPLETED
        assert user_service.get_stats(user_service.get_user(host.id)).games_won == 1
        assert game_service.tournament_service.get_tournament(tournament.id).standings.first == host.id

    def test_retry_with_a_different_winner_is_rejected(self, game_service: GameService, tournament, profiles):
        host, guest, _ = profiles
        room = game_service.create_room(host, "tictactoe", tournament_id=tournament.id, match_id="R1M1")
        game_service.join_room(room.room_id, guest)
        game_service.start_room(room.room_id, host.id)
        game_service.tournament_service.report_match_result(tournament.id, "R1M1", guest.id)

        with pytest.raises(MatchAlreadyCompleted):
            game_service.report_game_result(room.room_id, host.id)

        assert game_service.get_room(room.room_id).status == RoomStatus.IN_PROGRESS
