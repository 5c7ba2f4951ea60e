"""
Single elimination bracket generation.

A bracket of size S (a power of two) is built in three steps:

1. seed_slots: shuffle the participants onto S slots, padding with BYE.
2. pair_first_round: slot 2i plays slot 2i+1 in round 1.
3. generate_placeholder_rounds: rounds 2..log2(S) wait for the winners of
   the previous round; round r match i is fed by round r-1 matches 2i and 2i+1.

generate_bracket runs all three and returns the flat list of S-1 matchups,
ordered by round and then by position.
"""
import logging
import math
import random
import re
from typing import Callable, Dict, List, Optional, Tuple

from madness.errors import BracketIntegrityError, BracketSizeError, InvalidMatchupError
from madness.models import Matchup, Participant, PlayerSlot

logger = logging.getLogger(__name__)

MAX_BRACKET_SIZE = 64

_MATCHUP_ID_RE = re.compile(r'^R([1-9][0-9]*)M([1-9][0-9]*)$')


def get_round_name(players_in_round: int) -> str:
    """Get the name of a round based on the number of players entering it."""
    if players_in_round == 2:
        return "Final"
    elif players_in_round == 4:
        return "Semifinal"
    elif players_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {players_in_round}"


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def calculate_bracket_size(num_participants: int) -> int:
    """Calculate the bracket size (next power of 2, at least 2)."""
    if num_participants <= 2:
        return 2
    return 2 ** math.ceil(math.log2(num_participants))


def total_rounds(bracket_size: int) -> int:
    return bracket_size.bit_length() - 1


def matchup_id(round_number: int, position: int) -> str:
    """Stable id for a matchup; position is zero-based within its round."""
    return f"R{round_number}M{position + 1}"


def parse_matchup_id(value: str) -> Tuple[int, int]:
    """Return (round_number, zero-based position) for an id like 'R2M3'."""
    match = _MATCHUP_ID_RE.match(value or '')
    if not match:
        raise InvalidMatchupError(f'Invalid matchup id: {value!r}')
    return int(match.group(1)), int(match.group(2)) - 1


def feeder_ids(round_number: int, position: int) -> List[str]:
    """Ids of the two previous-round matchups whose winners meet here."""
    if round_number <= 1:
        return []
    return [matchup_id(round_number - 1, position * 2),
            matchup_id(round_number - 1, position * 2 + 1)]


def next_matchup_id(round_number: int, position: int, bracket_size: int) -> Optional[str]:
    """Id of the matchup the winner advances to, None for the final."""
    if round_number >= total_rounds(bracket_size):
        return None
    return matchup_id(round_number + 1, position // 2)


def placeholder_name(round_number: int, position: int) -> str:
    return f"Winner of Round {round_number}, Match {position + 1}"


def _check_bracket_size(bracket_size: int):
    if not is_power_of_two(bracket_size) or bracket_size < 2:
        raise BracketSizeError(f'Bracket size must be a power of two, got {bracket_size}')
    if bracket_size > MAX_BRACKET_SIZE:
        raise BracketSizeError(f'Bracket size cannot exceed {MAX_BRACKET_SIZE}')


def seed_slots(participants: List[Participant], bracket_size: int,
               shuffle: Optional[Callable[[list], None]] = None) -> List[PlayerSlot]:
    """
    Randomly assign participants to the bracket's first-round slots.

    The participant list is copied and shuffled in place with `shuffle`
    (random.shuffle, a Fisher-Yates shuffle, unless one is injected).
    Slots past the last participant are BYE.
    """
    _check_bracket_size(bracket_size)
    if len(participants) > bracket_size:
        raise BracketSizeError(
            f'{len(participants)} participants do not fit in a bracket of {bracket_size}')

    shuffled = list(participants)
    (shuffle or random.shuffle)(shuffled)

    slots = [PlayerSlot.for_participant(p) for p in shuffled]
    slots.extend(PlayerSlot.bye() for _ in range(bracket_size - len(shuffled)))
    return slots


def pair_first_round(slots: List[PlayerSlot]) -> List[Matchup]:
    """Pair slot 2i with slot 2i+1 into round 1 matchup i."""
    bracket_size = len(slots)
    _check_bracket_size(bracket_size)

    matchups = []
    for i in range(bracket_size // 2):
        player1 = slots[i * 2].copy()
        player2 = slots[i * 2 + 1].copy()
        matchups.append(Matchup(
            matchup_id=matchup_id(1, i),
            round_number=1,
            player1=player1,
            player2=player2,
            is_placeholder=False,
            is_bye=player1.is_bye != player2.is_bye,
            feeds_into=next_matchup_id(1, i, bracket_size),
        ))
    return matchups


def generate_placeholder_rounds(first_round_count: int) -> List[Matchup]:
    """Generate rounds 2 through the final with unresolved participants."""
    bracket_size = first_round_count * 2
    _check_bracket_size(bracket_size)

    matchups = []
    for round_number in range(2, total_rounds(bracket_size) + 1):
        for i in range(bracket_size >> round_number):
            matchups.append(Matchup(
                matchup_id=matchup_id(round_number, i),
                round_number=round_number,
                player1=PlayerSlot(None, placeholder_name(round_number - 1, i * 2)),
                player2=PlayerSlot(None, placeholder_name(round_number - 1, i * 2 + 1)),
                is_placeholder=True,
                is_bye=False,
                feeds_from=feeder_ids(round_number, i),
                feeds_into=next_matchup_id(round_number, i, bracket_size),
            ))
    return matchups


def generate_bracket(participants: List[Participant], bracket_size: int,
                     shuffle: Optional[Callable[[list], None]] = None,
                     resolve_byes: bool = True) -> List[Matchup]:
    """
    Build the complete bracket for a tournament.

    Args:
        participants: entrants, at most bracket_size of them
        bracket_size: power of two, at most MAX_BRACKET_SIZE
        shuffle: in-place shuffle used for seeding
        resolve_byes: advance participants drawn against a BYE straight away

    Returns:
        bracket_size - 1 matchups ordered by round, then position
    """
    slots = seed_slots(participants, bracket_size, shuffle)
    bracket = pair_first_round(slots) + generate_placeholder_rounds(bracket_size // 2)

    if resolve_byes:
        from madness.progression import resolve_byes as _resolve_byes
        _resolve_byes(bracket)

    logger.debug('Generated bracket of %d matchups for %d participants',
                 len(bracket), len(participants))
    return bracket


def group_by_round(bracket: List[Matchup]) -> Dict[int, List[Matchup]]:
    rounds = {}
    for matchup in bracket:
        rounds.setdefault(matchup.round_number, []).append(matchup)
    return dict(sorted(rounds.items()))


def validate_bracket(bracket: List[Matchup], bracket_size: int):
    """Raise BracketIntegrityError unless the bracket has the full tree shape."""
    if len(bracket) != bracket_size - 1:
        raise BracketIntegrityError(
            f'Expected {bracket_size - 1} matchups, found {len(bracket)}')

    rounds = group_by_round(bracket)
    if list(rounds.keys()) != list(range(1, total_rounds(bracket_size) + 1)):
        raise BracketIntegrityError(f'Unexpected rounds: {list(rounds.keys())}')

    for round_number, matchups in rounds.items():
        if len(matchups) != bracket_size >> round_number:
            raise BracketIntegrityError(
                f'Round {round_number} has {len(matchups)} matchups, '
                f'expected {bracket_size >> round_number}')
        for i, matchup in enumerate(matchups):
            if matchup.matchup_id != matchup_id(round_number, i):
                raise BracketIntegrityError(f'Matchup {matchup.matchup_id} is out of position')
            if matchup.feeds_into != next_matchup_id(round_number, i, bracket_size):
                raise BracketIntegrityError(f'Matchup {matchup.matchup_id} feeds the wrong matchup')
            if matchup.feeds_from != feeder_ids(round_number, i):
                raise BracketIntegrityError(f'Matchup {matchup.matchup_id} has wrong feeders')


def serialize_bracket(bracket: List[Matchup]) -> List[Dict]:
    return [m.to_dict() for m in bracket]


def deserialize_bracket(data: Optional[List[Dict]]) -> List[Matchup]:
    return [Matchup.from_dict(item) for item in (data or [])]


def bracket_summary(bracket: List[Matchup], bracket_size: int) -> Dict:
    """Statistics shown next to the bracket."""
    rounds = group_by_round(bracket)
    first_round = rounds.get(1, [])

    participants = set()
    for matchup in first_round:
        for slot in matchup.sides:
            if slot.is_resolved:
                participants.add(slot.participant_id)

    matches_per_round = {}
    for round_number, matchups in rounds.items():
        name = get_round_name(len(matchups) * 2)
        matches_per_round[name] = sum(1 for m in matchups if not m.is_bye and not m.is_empty)

    final = rounds[max(rounds)][0] if rounds else None
    return {
        'bracket_size': bracket_size,
        'total_rounds': total_rounds(bracket_size),
        'total_participants': len(participants),
        'byes': sum(1 for m in first_round if m.is_bye),
        'matches_per_round': matches_per_round,
        'champion': final.winner_participant_id if final else None,
    }
