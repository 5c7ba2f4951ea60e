"""
Winner recording and propagation through a generated bracket.

Every matchup knows the matchup its winner advances to (feeds_into) and the
two matchups feeding it (feeds_from), so the side a winner lands on is the
index of the finished matchup in the next matchup's feeds_from.
"""
import logging
from typing import Dict, List, Optional

from madness.elimination import group_by_round, parse_matchup_id, placeholder_name
from madness.errors import InvalidMatchupError, MatchupNotFoundError, MatchupStateError
from madness.models import Matchup, PlayerSlot

logger = logging.getLogger(__name__)


def find_matchup(bracket: List[Matchup], matchup_id: str) -> Matchup:
    parse_matchup_id(matchup_id)
    for matchup in bracket:
        if matchup.matchup_id == matchup_id:
            return matchup
    raise MatchupNotFoundError(f'Matchup {matchup_id} not found')


def is_playable(matchup: Matchup) -> bool:
    """Both participants known and no winner recorded yet."""
    return (matchup.player1.is_resolved and matchup.player2.is_resolved
            and matchup.winner_participant_id is None)


def refresh_flags(matchup: Matchup):
    player1, player2 = matchup.player1, matchup.player2
    matchup.is_placeholder = player1.is_pending or player2.is_pending
    matchup.is_bye = ((player1.is_bye and player2.is_resolved)
                      or (player2.is_bye and player1.is_resolved))


def _advancing_slot(matchup: Matchup) -> Optional[PlayerSlot]:
    if matchup.is_empty:
        return PlayerSlot.bye()
    if matchup.winner_participant_id is None:
        return None
    winner = matchup.slot_for(matchup.winner_participant_id)
    return PlayerSlot(winner.participant_id, winner.display_name)


def advance_winner(bracket: List[Matchup], matchup: Matchup) -> Optional[Matchup]:
    """
    Write the matchup's outcome into the next round.

    An undecided matchup puts the "Winner of ..." placeholder back, so this
    also undoes an earlier propagation. Returns the updated next matchup, or
    None for the final.
    """
    if matchup.feeds_into is None:
        return None

    target = find_matchup(bracket, matchup.feeds_into)
    side = target.feeds_from.index(matchup.matchup_id)

    slot = _advancing_slot(matchup)
    if slot is None:
        round_number, position = parse_matchup_id(matchup.matchup_id)
        slot = PlayerSlot(None, placeholder_name(round_number, position))

    if side == 0:
        target.player1 = slot
    else:
        target.player2 = slot
    refresh_flags(target)
    return target


def resolve_byes(bracket: List[Matchup]) -> List[Matchup]:
    """
    Decide every matchup that needs no contest and push the results forward.

    A participant drawn against a BYE wins with a score of 1; a BYE against
    a BYE sends a BYE on. Rounds are walked in order so a later matchup that
    ends up with a participant and a BYE is resolved in the same pass.
    Returns the matchups decided by this call.
    """
    resolved = []
    for matchups in group_by_round(bracket).values():
        for matchup in matchups:
            if matchup.is_bye and matchup.winner_participant_id is None:
                winner = matchup.player1 if matchup.player1.is_resolved else matchup.player2
                winner.score = 1
                matchup.winner_participant_id = winner.participant_id
                advance_winner(bracket, matchup)
                resolved.append(matchup)
            elif matchup.is_empty and matchup.feeds_into is not None:
                target = find_matchup(bracket, matchup.feeds_into)
                side = target.sides[target.feeds_from.index(matchup.matchup_id)]
                if side.is_pending:
                    advance_winner(bracket, matchup)
    if resolved:
        logger.debug('Resolved %d bye matchups', len(resolved))
    return resolved


def record_winner(bracket: List[Matchup], matchup_id: str,
                  winner_participant_id: Optional[str] = None) -> Matchup:
    """
    Record the winner of a matchup and advance them to the next round.

    Without an explicit winner the side with the higher score wins; a tie
    has to be settled by naming the winner. A result can be changed until
    the next matchup has a winner of its own.
    """
    matchup = find_matchup(bracket, matchup_id)

    if matchup.is_empty:
        raise MatchupStateError(f'Matchup {matchup_id} has no participants')
    if matchup.is_bye:
        raise MatchupStateError(f'Matchup {matchup_id} is a bye and advances automatically')
    if not (matchup.player1.is_resolved and matchup.player2.is_resolved):
        raise MatchupStateError(f'Participants for matchup {matchup_id} are not known yet')

    if winner_participant_id is None:
        if matchup.player1.score == matchup.player2.score:
            raise MatchupStateError(f'Matchup {matchup_id} is tied, a winner must be given')
        leader = matchup.player1 if matchup.player1.score > matchup.player2.score else matchup.player2
        winner_participant_id = leader.participant_id
    elif matchup.slot_for(winner_participant_id) is None:
        raise InvalidMatchupError(
            f'Participant {winner_participant_id} is not part of matchup {matchup_id}')

    if matchup.winner_participant_id == winner_participant_id:
        return matchup
    if matchup.feeds_into is not None:
        following = find_matchup(bracket, matchup.feeds_into)
        if following.winner_participant_id is not None:
            raise MatchupStateError(
                f'Cannot change {matchup_id}: {following.matchup_id} is already decided')

    matchup.winner_participant_id = winner_participant_id
    advance_winner(bracket, matchup)
    resolve_byes(bracket)
    return matchup


def record_vote(bracket: List[Matchup], matchup_id: str, participant_id: str) -> Matchup:
    """Add one vote to a side of a playable matchup."""
    matchup = find_matchup(bracket, matchup_id)
    if not is_playable(matchup):
        raise MatchupStateError(f'Matchup {matchup_id} is not open for voting')
    slot = matchup.slot_for(participant_id)
    if slot is None:
        raise InvalidMatchupError(f'Participant {participant_id} is not part of matchup {matchup_id}')
    slot.score += 1
    return matchup


def final_matchup(bracket: List[Matchup]) -> Optional[Matchup]:
    if not bracket:
        return None
    return max(bracket, key=lambda m: m.round_number)


def get_champion(bracket: List[Matchup]) -> Optional[str]:
    final = final_matchup(bracket)
    return final.winner_participant_id if final else None


def is_complete(bracket: List[Matchup]) -> bool:
    final = final_matchup(bracket)
    return final is not None and final.is_decided


def round_progress(bracket: List[Matchup]) -> Dict[int, Dict[str, int]]:
    """Decided and total matchup counts per round."""
    progress = {}
    for round_number, matchups in group_by_round(bracket).items():
        progress[round_number] = {
            'decided': sum(1 for m in matchups if m.is_decided),
            'total': len(matchups),
        }
    return progress
