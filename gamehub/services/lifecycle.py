"""Tournament registration and status transitions, as pure snapshot -> snapshot functions."""

import logging
from datetime import datetime
from typing import Dict, List, Set, Tuple

from gamehub.core.errors import (
    AlreadyRegistered,
    InsufficientParticipants,
    InvalidTransition,
    NotRegistered,
    TournamentFull,
    UserBanned,
)
from gamehub.models.tournament_model import (
    Participant,
    TournamentEvent,
    TournamentEventKind,
    TournamentModel,
    TournamentStatus,
)
from gamehub.models.user_model import UserProfile
from gamehub.services import bracket_service

logger = logging.getLogger(__name__)

# Forward-only. Completion is reached through match results, never requested directly.
ALLOWED_TRANSITIONS: Dict[TournamentStatus, Set[TournamentStatus]] = {
    TournamentStatus.UPCOMING: {TournamentStatus.REGISTRATION, TournamentStatus.IN_PROGRESS, TournamentStatus.CANCELLED},
    TournamentStatus.REGISTRATION: {TournamentStatus.IN_PROGRESS, TournamentStatus.CANCELLED},
    TournamentStatus.IN_PROGRESS: {TournamentStatus.COMPLETED, TournamentStatus.CANCELLED},
    TournamentStatus.COMPLETED: set(),
    TournamentStatus.CANCELLED: set(),
}

OPEN_STATUSES = (TournamentStatus.UPCOMING, TournamentStatus.REGISTRATION)

EngineResult = Tuple[TournamentModel, List[TournamentEvent]]


def check_transition(current: str, target: TournamentStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[TournamentStatus(current)]:
        raise InvalidTransition(f"Cannot move tournament from '{current}' to '{target.value}'.")


def register(tournament: TournamentModel, user: UserProfile) -> EngineResult:
    if tournament.status not in OPEN_STATUSES:
        raise InvalidTransition(f"Registration is closed (status is '{tournament.status}').")
    if user.ban_active():
        raise UserBanned(f"User {user.username} is banned and cannot register.")
    if len(tournament.participants) >= tournament.max_participants:
        raise TournamentFull()
    if tournament.find_participant(user.id) is not None:
        raise AlreadyRegistered()

    updated = tournament.model_copy(deep=True)
    # Highest seed + 1, not len + 1: after a leave, len + 1 can equal a seed still in use.
    # The two agree whenever nobody has left.
    next_seed = max((p.seed for p in updated.participants), default=0) + 1
    updated.participants.append(Participant(user_id=user.id, username=user.username, seed=next_seed))
    updated.updated_at = datetime.utcnow()
    return updated, []


def leave(tournament: TournamentModel, user_id: str) -> EngineResult:
    if tournament.status not in OPEN_STATUSES:
        raise InvalidTransition("Cannot leave a tournament after it has started.")
    if tournament.find_participant(user_id) is None:
        raise NotRegistered()

    updated = tournament.model_copy(deep=True)
    updated.participants = [p for p in updated.participants if p.user_id != user_id]
    updated.updated_at = datetime.utcnow()
    return updated, []


def open_registration(tournament: TournamentModel) -> EngineResult:
    check_transition(tournament.status, TournamentStatus.REGISTRATION)
    updated = tournament.model_copy(deep=True)
    updated.status = TournamentStatus.REGISTRATION
    updated.registration_start_date = updated.registration_start_date or datetime.utcnow()
    updated.updated_at = datetime.utcnow()
    return updated, []


def start(tournament: TournamentModel) -> EngineResult:
    check_transition(tournament.status, TournamentStatus.IN_PROGRESS)
    if len(tournament.participants) < tournament.min_participants:
        raise InsufficientParticipants(
            f"Tournament needs at least {tournament.min_participants} participants, "
            f"has {len(tournament.participants)}."
        )

    updated, events = bracket_service.generate_brackets(tournament)
    updated.status = TournamentStatus.IN_PROGRESS
    updated.registration_end_date = updated.registration_end_date or datetime.utcnow()
    updated.updated_at = datetime.utcnow()

    started = TournamentEvent(
        kind=TournamentEventKind.TOURNAMENT_STARTED,
        tournament_id=updated.id,
        round=1,
        user_ids=[p.user_id for p in updated.participants],
        data={"rounds": len(updated.brackets)},
    )
    logger.info(f"Tournament {updated.id} started with {len(updated.participants)} participants")
    return updated, [started] + events


def cancel(tournament: TournamentModel) -> EngineResult:
    check_transition(tournament.status, TournamentStatus.CANCELLED)
    updated = tournament.model_copy(deep=True)
    updated.status = TournamentStatus.CANCELLED
    updated.updated_at = datetime.utcnow()
    event = TournamentEvent(
        kind=TournamentEventKind.TOURNAMENT_CANCELLED,
        tournament_id=updated.id,
        user_ids=[p.user_id for p in updated.participants],
    )
    return updated, [event]
