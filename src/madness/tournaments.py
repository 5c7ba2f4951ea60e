"""
Tournament lifecycle: registration, the one-way begin transition, voting and
result recording.

These functions mutate an in-memory Tournament; the web layer loads and saves
the record around each call while holding the tournament's file lock, which
makes every check-then-write here atomic.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from madness.elimination import (
    MAX_BRACKET_SIZE, calculate_bracket_size, deserialize_bracket, generate_bracket,
    group_by_round, serialize_bracket, validate_bracket,
)
from madness.errors import (
    BracketSizeError, MatchupStateError, PermissionDeniedError, TournamentConflictError,
    TournamentStateError,
)
from madness.models import Matchup, Participant
from madness.progression import (
    find_matchup, get_champion, is_complete, is_playable, record_vote, record_winner,
)

logger = logging.getLogger(__name__)

STATUS_DRAFT = 'draft'
STATUS_UPCOMING = 'upcoming'
STATUS_ONGOING = 'ongoing'
STATUS_COMPLETED = 'completed'
STATUSES = (STATUS_DRAFT, STATUS_UPCOMING, STATUS_ONGOING, STATUS_COMPLETED)

MIN_PLAYERS = 2


class Tournament:
    def __init__(self, tournament_id: str, name: str, creator: str, max_players: int,
                 bracket_size: Optional[int] = None, status: str = STATUS_UPCOMING,
                 participants: Optional[List[Participant]] = None,
                 generated_bracket: Optional[List[Matchup]] = None,
                 votes: Optional[Dict[str, Dict[str, str]]] = None,
                 champion: Optional[str] = None, description: str = '',
                 created: Optional[str] = None, started: Optional[str] = None):
        self.tournament_id = tournament_id
        self.name = name
        self.creator = creator
        self.max_players = max_players
        self.bracket_size = bracket_size or calculate_bracket_size(max_players)
        self.status = status
        self.participants = participants if participants else []
        self.generated_bracket = generated_bracket
        self.votes = votes if votes else {}
        self.champion = champion
        self.description = description
        self.created = created
        self.started = started

    def is_participant(self, participant_id: str) -> bool:
        return any(p.participant_id == participant_id for p in self.participants)

    def to_dict(self) -> Dict:
        return {
            'id': self.tournament_id,
            'name': self.name,
            'description': self.description,
            'creator': self.creator,
            'status': self.status,
            'maxPlayers': self.max_players,
            'bracketSize': self.bracket_size,
            'participants': [p.to_dict() for p in self.participants],
            'generatedBracket': (serialize_bracket(self.generated_bracket)
                                 if self.generated_bracket is not None else None),
            'votes': self.votes,
            'champion': self.champion,
            'created': self.created,
            'started': self.started,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Tournament':
        bracket_data = data.get('generatedBracket')
        return cls(
            tournament_id=data['id'],
            name=data['name'],
            creator=data['creator'],
            max_players=int(data['maxPlayers']),
            bracket_size=data.get('bracketSize'),
            status=data.get('status', STATUS_UPCOMING),
            participants=[Participant.from_dict(p) for p in data.get('participants') or []],
            generated_bracket=deserialize_bracket(bracket_data) if bracket_data is not None else None,
            votes=data.get('votes') or {},
            champion=data.get('champion'),
            description=data.get('description') or '',
            created=data.get('created'),
            started=data.get('started'),
        )

    def __repr__(self):
        return f"Tournament(id={self.tournament_id}, name={self.name}, status={self.status})"


def create_tournament(tournament_id: str, name: str, creator: str, max_players: int,
                      description: str = '') -> Tournament:
    name = (name or '').strip()
    if not name:
        raise TournamentStateError('Tournament name is required.')
    if not isinstance(max_players, int) or not MIN_PLAYERS <= max_players <= MAX_BRACKET_SIZE:
        raise BracketSizeError(f'Max players must be between {MIN_PLAYERS} and {MAX_BRACKET_SIZE}.')
    return Tournament(
        tournament_id=tournament_id,
        name=name,
        creator=creator,
        max_players=max_players,
        description=description,
        created=datetime.now().isoformat(),
    )


def join_tournament(tournament: Tournament, participant: Participant):
    if tournament.status != STATUS_UPCOMING:
        raise TournamentConflictError('Registration is closed for this tournament.')
    if tournament.is_participant(participant.participant_id):
        raise TournamentConflictError('Already joined this tournament.')
    if len(tournament.participants) >= tournament.max_players:
        raise TournamentStateError('Tournament is full.')
    tournament.participants.append(participant)


def leave_tournament(tournament: Tournament, participant_id: str):
    if tournament.status != STATUS_UPCOMING:
        raise TournamentConflictError('Cannot leave a tournament that has started.')
    if not tournament.is_participant(participant_id):
        raise TournamentStateError('Not a participant of this tournament.')
    tournament.participants = [p for p in tournament.participants if p.participant_id != participant_id]


def _require_creator(tournament: Tournament, user: str, action: str):
    if tournament.creator != user:
        raise PermissionDeniedError(f'Only the tournament creator can {action}.')


def _finish_if_decided(tournament: Tournament):
    if is_complete(tournament.generated_bracket):
        tournament.status = STATUS_COMPLETED
        tournament.champion = get_champion(tournament.generated_bracket)


def begin_tournament(tournament: Tournament, user: str,
                     shuffle: Optional[Callable[[list], None]] = None,
                     min_participants: int = MIN_PLAYERS) -> List[Matchup]:
    """
    Seed the bracket and move the tournament from upcoming to ongoing.

    Runs once per tournament: a tournament that has already begun raises
    TournamentConflictError and keeps its bracket. Nothing is changed on
    the record unless every check passes and the bracket validates.
    """
    _require_creator(tournament, user, 'begin the tournament')
    if tournament.status != STATUS_UPCOMING:
        raise TournamentConflictError(
            f'Tournament is {tournament.status} and cannot be started again.')
    if len(tournament.participants) < min_participants:
        raise TournamentStateError(
            f'At least {min_participants} participants are required to begin the tournament.')

    bracket = generate_bracket(tournament.participants, tournament.bracket_size, shuffle)
    validate_bracket(bracket, tournament.bracket_size)

    tournament.generated_bracket = bracket
    tournament.status = STATUS_ONGOING
    tournament.started = datetime.now().isoformat()
    _finish_if_decided(tournament)

    logger.debug('Tournament %s began with %d participants in a bracket of %d',
                 tournament.tournament_id, len(tournament.participants), tournament.bracket_size)
    return bracket


def get_matchup(tournament: Tournament, matchup_id: str) -> Matchup:
    if tournament.generated_bracket is None:
        raise TournamentStateError('Tournament has not begun yet.')
    return find_matchup(tournament.generated_bracket, matchup_id)


def record_result(tournament: Tournament, user: str, matchup_id: str,
                  winner_participant_id: Optional[str] = None) -> Matchup:
    """
    Record a matchup result as the creator.

    Changing an earlier result replaces a participant in the next matchup,
    so that matchup's ballots and vote counts start over.
    """
    _require_creator(tournament, user, 'record results')
    if tournament.status != STATUS_ONGOING:
        raise TournamentConflictError(f'Tournament is {tournament.status}, results cannot be recorded.')
    previous_winner = get_matchup(tournament, matchup_id).winner_participant_id
    matchup = record_winner(tournament.generated_bracket, matchup_id, winner_participant_id)
    if previous_winner is not None and previous_winner != matchup.winner_participant_id:
        _reset_votes(tournament, matchup.feeds_into)
    _finish_if_decided(tournament)
    return matchup


def _reset_votes(tournament: Tournament, matchup_id: Optional[str]):
    if matchup_id is None:
        return
    tournament.votes.pop(matchup_id, None)
    for slot in find_matchup(tournament.generated_bracket, matchup_id).sides:
        slot.score = 0


def complete_round(tournament: Tournament, user: str, round_number: int) -> List[Matchup]:
    """
    Close every open matchup of a round on its vote count.

    Ties are reported for all tied matchups at once and nothing is decided;
    the creator settles them with record_result. Completing the final round
    completes the tournament.
    """
    _require_creator(tournament, user, 'complete a round')
    if tournament.status != STATUS_ONGOING:
        raise TournamentConflictError(f'Tournament is {tournament.status}, rounds cannot be completed.')

    matchups = group_by_round(tournament.generated_bracket).get(round_number)
    if not matchups:
        raise TournamentStateError(f'Round {round_number} does not exist.')
    playable = [m for m in matchups if is_playable(m)]
    if not playable:
        raise MatchupStateError(f'Round {round_number} has no matchups open for voting.')
    tied = [m.matchup_id for m in playable if m.player1.score == m.player2.score]
    if tied:
        raise MatchupStateError(f'Tied matchups need a winner: {", ".join(tied)}')

    for matchup in playable:
        record_winner(tournament.generated_bracket, matchup.matchup_id)
    _finish_if_decided(tournament)

    logger.debug('Tournament %s: round %d completed, %d matchups decided',
                 tournament.tournament_id, round_number, len(playable))
    return playable


def cast_vote(tournament: Tournament, user: str, matchup_id: str, participant_id: str) -> Matchup:
    """One vote per user per matchup."""
    if tournament.status != STATUS_ONGOING:
        raise TournamentConflictError(f'Tournament is {tournament.status}, voting is closed.')
    ballots = tournament.votes.get(matchup_id, {})
    if user in ballots:
        raise TournamentConflictError('You have already voted on this matchup.')
    matchup = record_vote(tournament.generated_bracket, matchup_id, participant_id)
    ballots[user] = participant_id
    tournament.votes[matchup_id] = ballots
    return matchup
