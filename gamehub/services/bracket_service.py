"""
Single-elimination bracket generation and match-result propagation.

Every public function here is pure: it takes a TournamentModel snapshot,
never mutates it, and returns an updated deep copy together with the list of
TournamentEvent intents (notifications, prize awards) the caller should act
on. Persistence, locking and delivery live in TournamentService.

Bracket layout
--------------
Round 1 pairs participants by seed: (1 v 2), (3 v 4), ... A trailing
unpaired participant gets a walkover. Rounds 2..N are pre-created empty,
with 2^(N - r) matches each, and filled lazily: the winner of R{r}M{i} goes
into R{r+1}M{ceil(i/2)}, taking the first empty slot (player1 before
player2). Because of that rule, which slot a winner lands in depends on the
order results are reported.

When the field is not a power of two, some later-round matches have one or
no feeder match. Such matches are settled as walkovers once their live
feeders are done, so every bracket can reach its final.
"""

import logging
import math
from datetime import datetime
from typing import List, Optional, Tuple

from gamehub.core.errors import (
    InvalidParticipantCount,
    InvalidTransition,
    InvalidWinner,
    MatchAlreadyCompleted,
    MatchNotReady,
    UnknownMatch,
    UnsupportedFormat,
)
from gamehub.models.tournament_model import (
    BracketMatch,
    BracketRound,
    MatchStatus,
    Standings,
    TournamentEvent,
    TournamentEventKind,
    TournamentFormat,
    TournamentModel,
    TournamentStatus,
)

logger = logging.getLogger(__name__)

WIN_POINTS = 3

EngineResult = Tuple[TournamentModel, List[TournamentEvent]]


def match_id_for(round_number: int, index: int) -> str:
    return f"R{round_number}M{index}"


def round_count(participant_count: int) -> int:
    if participant_count < 2:
        raise InvalidParticipantCount(
            f"Bracket generation requires at least 2 participants, got {participant_count}."
        )
    return math.ceil(math.log2(participant_count))


def generate_brackets(tournament: TournamentModel) -> EngineResult:
    """Build the full single-elimination bracket from the seeded participant list."""
    if tournament.format != TournamentFormat.SINGLE_ELIMINATION:
        raise UnsupportedFormat(
            f"Bracket generation for {tournament.format} is not implemented."
        )

    seeded = tournament.seeded_participants()
    rounds = round_count(len(seeded))

    updated = tournament.model_copy(deep=True)
    first_round = BracketRound(round=1)
    for i in range(0, len(seeded), 2):
        index = i // 2 + 1
        pair = seeded[i:i + 2]
        first_round.matches.append(BracketMatch(
            match_id=match_id_for(1, index),
            round=1,
            index=index,
            player1=pair[0].user_id,
            player2=pair[1].user_id if len(pair) > 1 else None,
        ))
    brackets = [first_round]

    for round_number in range(2, rounds + 1):
        match_count = 2 ** (rounds - round_number)
        brackets.append(BracketRound(
            round=round_number,
            matches=[
                BracketMatch(match_id=match_id_for(round_number, index), round=round_number, index=index)
                for index in range(1, match_count + 1)
            ],
        ))
    updated.brackets = brackets

    events: List[TournamentEvent] = []
    for match in first_round.matches:
        if match.is_ready:
            events.append(_match_event(updated, TournamentEventKind.MATCH_READY, match))
    _settle_walkovers(updated, events)

    logger.debug(
        f"Generated {rounds} rounds for tournament {tournament.id} "
        f"({len(seeded)} participants, {len(first_round.matches)} first-round matches)"
    )
    return updated, events


def report_match_result(tournament: TournamentModel, match_id: str, winner_id: str) -> EngineResult:
    """Record the winner of a played match and propagate it through the bracket.

    Validation happens before anything is copied, so a rejected report leaves
    no trace. A duplicate report is rejected with MatchAlreadyCompleted rather
    than re-applied, which keeps win/loss tallies from being counted twice.
    """
    match = tournament.find_match(match_id)
    if match is None:
        raise UnknownMatch(f"Match {match_id} not found in tournament {tournament.id}.")
    if match.status == MatchStatus.COMPLETED:
        raise MatchAlreadyCompleted(f"Match {match_id} is already completed.")
    if tournament.status != TournamentStatus.IN_PROGRESS:
        raise InvalidTransition(
            f"Results can only be reported while the tournament is in progress (status is '{tournament.status}')."
        )
    if not match.is_ready:
        raise MatchNotReady(f"Match {match_id} does not have two participants assigned yet.")
    if winner_id not in (match.player1, match.player2):
        raise InvalidWinner(f"Winner {winner_id} is not a participant of match {match_id}.")

    completed_rounds_before = _completed_rounds(tournament)
    updated = tournament.model_copy(deep=True)
    match = updated.find_match(match_id)
    loser_id = match.player2 if winner_id == match.player1 else match.player1

    match.winner = winner_id
    match.status = MatchStatus.COMPLETED

    winner = updated.find_participant(winner_id)
    if winner:
        winner.wins += 1
        winner.points += WIN_POINTS
    loser = updated.find_participant(loser_id)
    if loser:
        loser.losses += 1
        loser.is_eliminated = True

    events = [_match_event(updated, TournamentEventKind.MATCH_COMPLETED, match, winner=winner_id, loser=loser_id)]
    _advance(updated, match, events)
    _settle_walkovers(updated, events)

    for bracket_round in updated.brackets:
        if bracket_round.round not in completed_rounds_before and _round_done(bracket_round):
            events.append(TournamentEvent(
                kind=TournamentEventKind.ROUND_COMPLETED,
                tournament_id=updated.id,
                round=bracket_round.round,
                user_ids=_active_user_ids(updated),
            ))

    _complete_if_final_done(updated, events)
    updated.updated_at = datetime.utcnow()
    return updated, events


def link_match_game(tournament: TournamentModel, match_id: str, game_id: str) -> EngineResult:
    """Attach an external game session to a ready match and mark it in progress."""
    match = tournament.find_match(match_id)
    if match is None:
        raise UnknownMatch(f"Match {match_id} not found in tournament {tournament.id}.")
    if match.status == MatchStatus.COMPLETED:
        raise MatchAlreadyCompleted(f"Match {match_id} is already completed.")
    if tournament.status != TournamentStatus.IN_PROGRESS:
        raise InvalidTransition("Games can only be linked while the tournament is in progress.")
    if not match.is_ready:
        raise MatchNotReady(f"Match {match_id} does not have two participants assigned yet.")
    if match.game_id and match.game_id != game_id:
        raise InvalidTransition(f"Match {match_id} is already being played in game {match.game_id}.")

    updated = tournament.model_copy(deep=True)
    match = updated.find_match(match_id)
    match.game_id = game_id
    match.status = MatchStatus.IN_PROGRESS
    updated.updated_at = datetime.utcnow()
    return updated, []


def unlink_match_game(tournament: TournamentModel, match_id: str, game_id: str) -> EngineResult:
    """Detach an abandoned game session so the match can be played in a new one."""
    match = tournament.find_match(match_id)
    if match is None:
        raise UnknownMatch(f"Match {match_id} not found in tournament {tournament.id}.")
    if match.status == MatchStatus.COMPLETED:
        raise MatchAlreadyCompleted(f"Match {match_id} is already completed.")
    if match.game_id != game_id:
        raise InvalidTransition(f"Match {match_id} is not being played in game {game_id}.")

    updated = tournament.model_copy(deep=True)
    match = updated.find_match(match_id)
    match.game_id = None
    match.status = MatchStatus.PENDING
    updated.updated_at = datetime.utcnow()
    return updated, [_match_event(updated, TournamentEventKind.MATCH_READY, match)]


def compute_standings(tournament: TournamentModel) -> Standings:
    """1st and 2nd come from the final. 3rd goes to the better semifinal loser:
    most points, then most wins, then the lower seed."""
    if not tournament.brackets:
        return Standings()
    final = tournament.brackets[-1].matches[0]
    standings = Standings(first=final.winner, second=final.loser)

    if len(tournament.brackets) >= 2:
        semifinal_losers = []
        for match in tournament.brackets[-2].matches:
            participant = tournament.find_participant(match.loser) if match.loser else None
            if participant:
                semifinal_losers.append(participant)
        if semifinal_losers:
            semifinal_losers.sort(key=lambda p: (-p.points, -p.wins, p.seed))
            standings.third = semifinal_losers[0].user_id
    return standings


def downstream_match(tournament: TournamentModel, match: BracketMatch) -> Optional[BracketMatch]:
    next_round = tournament.get_round(match.round + 1)
    if next_round is None:
        return None
    return next_round.matches[(match.index - 1) // 2]


def feeder_matches(tournament: TournamentModel, match: BracketMatch) -> List[BracketMatch]:
    previous_round = tournament.get_round(match.round - 1)
    if previous_round is None:
        return []
    feeders = []
    for index in (2 * match.index - 1, 2 * match.index):
        if index <= len(previous_round.matches):
            feeders.append(previous_round.matches[index - 1])
    return feeders


# --- internals: these mutate the working copy they are handed ---

def _advance(tournament: TournamentModel, match: BracketMatch, events: List[TournamentEvent]) -> None:
    target = downstream_match(tournament, match)
    if target is None or match.winner is None:
        return # final, or an empty walkover

    if target.player1 is None:
        target.player1 = match.winner
    elif target.player2 is None:
        target.player2 = match.winner
    else:
        raise RuntimeError(
            f"Consistency error: downstream match {target.match_id} already has two participants "
            f"in tournament {tournament.id}."
        )

    if target.is_ready:
        events.append(_match_event(tournament, TournamentEventKind.MATCH_READY, target))


def _settle_walkovers(tournament: TournamentModel, events: List[TournamentEvent]) -> None:
    # Rounds are visited in order and _advance only writes into round r+1,
    # so a single pass settles every cascade.
    for bracket_round in tournament.brackets:
        for match in bracket_round.matches:
            if match.status == MatchStatus.COMPLETED or match.is_ready:
                continue
            if any(f.status != MatchStatus.COMPLETED for f in feeder_matches(tournament, match)):
                continue

            match.status = MatchStatus.COMPLETED
            match.is_walkover = True
            occupants = match.players
            if occupants:
                match.winner = occupants[0]
                logger.debug(f"Walkover in {match.match_id} for {match.winner} (tournament {tournament.id})")
                _advance(tournament, match, events)


def _complete_if_final_done(tournament: TournamentModel, events: List[TournamentEvent]) -> None:
    if tournament.status == TournamentStatus.COMPLETED or not tournament.brackets:
        return
    final = tournament.brackets[-1].matches[0]
    if final.status != MatchStatus.COMPLETED:
        return

    tournament.status = TournamentStatus.COMPLETED
    tournament.end_date = tournament.end_date or datetime.utcnow()
    tournament.standings = compute_standings(tournament)
    events.append(TournamentEvent(
        kind=TournamentEventKind.TOURNAMENT_COMPLETED,
        tournament_id=tournament.id,
        round=final.round,
        match_id=final.match_id,
        user_ids=[p.user_id for p in tournament.participants],
        data=tournament.standings.model_dump(),
    ))

    placements = (
        ("first", tournament.standings.first, tournament.prizes.first),
        ("second", tournament.standings.second, tournament.prizes.second),
        ("third", tournament.standings.third, tournament.prizes.third),
    )
    for place, user_id, tier in placements:
        if user_id is None:
            continue
        events.append(TournamentEvent(
            kind=TournamentEventKind.PRIZE_AWARDED,
            tournament_id=tournament.id,
            user_ids=[user_id],
            data={"place": place, **tier.model_dump()},
        ))
    logger.info(f"Tournament {tournament.id} completed, winner {tournament.standings.first}")


def _completed_rounds(tournament: TournamentModel) -> set:
    return {r.round for r in tournament.brackets if _round_done(r)}


def _round_done(bracket_round: BracketRound) -> bool:
    return all(m.status == MatchStatus.COMPLETED for m in bracket_round.matches)


def _active_user_ids(tournament: TournamentModel) -> List[str]:
    return [p.user_id for p in tournament.participants if not p.is_eliminated]


def _match_event(tournament: TournamentModel, kind: TournamentEventKind, match: BracketMatch, **data) -> TournamentEvent:
    return TournamentEvent(
        kind=kind,
        tournament_id=tournament.id,
        round=match.round,
        match_id=match.match_id,
        user_ids=match.players,
        data=data,
    )
