# Command line entry point: generate and print a bracket from a participants file

import argparse
import os
import random
import sys

import yaml

from madness.elimination import calculate_bracket_size, generate_bracket, get_round_name, group_by_round
from madness.errors import TournamentError
from madness.models import Participant


def load_participants(file_path):
    """
    Read participants from YAML.

    Accepts a plain list of names, or a list of mappings with 'id' and 'name'.
    """
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or []
    participants = []
    for entry in data:
        if isinstance(entry, dict):
            participants.append(Participant(str(entry['id']), entry.get('name', str(entry['id']))))
        else:
            participants.append(Participant(str(entry), str(entry)))
    return participants


def format_bracket(bracket):
    lines = []
    rounds = group_by_round(bracket)
    for round_number, matchups in rounds.items():
        if lines:
            lines.append('')
        lines.append(f"# Round {round_number} - {get_round_name(len(matchups) * 2)}")
        for matchup in matchups:
            line = f"{matchup.matchup_id}: {matchup.player1.display_name} vs {matchup.player2.display_name}"
            if matchup.winner_participant_id:
                line += f" (advances: {matchup.slot_for(matchup.winner_participant_id).display_name})"
            lines.append(line)
    return '\n'.join(lines)


def main(argv=None):
    base_dir = os.path.dirname(os.path.dirname(__file__))

    parser = argparse.ArgumentParser(description='Generate a single elimination bracket.')
    parser.add_argument('participants', nargs='?', default=os.path.join(base_dir, 'data', 'participants.yaml'),
                        help='YAML file listing the participants')
    parser.add_argument('--size', type=int, default=None,
                        help='bracket size (power of two); defaults to the smallest that fits')
    parser.add_argument('--seed', type=int, default=None, help='random seed for a reproducible draw')
    args = parser.parse_args(argv)

    participants = load_participants(args.participants)
    bracket_size = args.size or calculate_bracket_size(len(participants))
    shuffle = random.Random(args.seed).shuffle if args.seed is not None else None

    try:
        bracket = generate_bracket(participants, bracket_size, shuffle)
    except TournamentError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print(format_bracket(bracket))
    return 0


if __name__ == '__main__':
    sys.exit(main())
