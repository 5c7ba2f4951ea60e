"""
Grid layout for drawing a bracket of any size.

The bracket is drawn symmetrically: the first half of every round runs
left to right, the second half right to left, and the final sits in the
centre column. A bracket of 2**k slots therefore uses 2k-1 columns and
bracket_size/4 rows (one row per first-round matchup on each side).
"""
from typing import Dict, List

from madness.elimination import generate_bracket, get_round_name, group_by_round, total_rounds
from madness.models import Matchup, Participant


def is_navigable(matchup: Matchup) -> bool:
    """
    Whether a matchup can be opened from the bracket view.

    It needs a real id and at least one known participant; pure placeholders
    and BYE against BYE stay inert.
    """
    if not matchup.matchup_id:
        return False
    if not any(slot.is_resolved for slot in matchup.sides):
        return False
    return not all(slot.is_pending for slot in matchup.sides)


def cell_position(round_number: int, position: int, bracket_size: int) -> Dict:
    """Column, rows and side for the matchup at (round_number, position)."""
    rounds = total_rounds(bracket_size)
    rows = max(bracket_size // 4, 1)

    if round_number == rounds:
        return {'column': rounds - 1, 'rowStart': 0, 'rowSpan': rows, 'side': 'center'}

    per_side = (bracket_size >> round_number) // 2
    if position < per_side:
        side, column, index = 'left', round_number - 1, position
    else:
        side, column, index = 'right', 2 * rounds - 1 - round_number, position - per_side

    span = 2 ** (round_number - 1)
    return {'column': column, 'rowStart': index * span, 'rowSpan': span, 'side': side}


def _column_headers(bracket_size: int) -> List[Dict]:
    rounds = total_rounds(bracket_size)
    headers = []
    for column in range(2 * rounds - 1):
        round_number = column + 1 if column < rounds else 2 * rounds - 1 - column
        headers.append({
            'index': column,
            'roundNumber': round_number,
            'label': get_round_name(bracket_size >> (round_number - 1)),
        })
    return headers


def compute_layout(bracket: List[Matchup], bracket_size: int, preview: bool = False) -> Dict:
    cells = []
    for round_number, matchups in group_by_round(bracket).items():
        for position, matchup in enumerate(matchups):
            cell = cell_position(round_number, position, bracket_size)
            cell.update({
                'matchupId': None if preview else matchup.matchup_id,
                'roundNumber': round_number,
                'position': position,
                'player1': matchup.player1.to_dict(),
                'player2': matchup.player2.to_dict(),
                'winnerParticipantId': matchup.winner_participant_id,
                'isBye': matchup.is_bye,
                'isPlaceholder': matchup.is_placeholder,
                'interactive': False if preview else is_navigable(matchup),
            })
            cells.append(cell)

    return {
        'bracketSize': bracket_size,
        'preview': preview,
        'rows': max(bracket_size // 4, 1),
        'columns': _column_headers(bracket_size),
        'cells': cells,
    }


def _keep_order(items: list):
    """Shuffle stand-in: the preview shows participants in join order."""


def preview_layout(participants: List[Participant], bracket_size: int) -> Dict:
    """Layout for a tournament that has not begun: join order, nothing clickable."""
    bracket = generate_bracket(participants, bracket_size, shuffle=_keep_order, resolve_byes=False)
    return compute_layout(bracket, bracket_size, preview=True)
