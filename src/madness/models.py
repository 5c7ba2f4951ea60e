from typing import Dict, List, Optional

BYE_NAME = 'BYE'


class Participant:
    def __init__(self, participant_id, display_name):
        self.participant_id = participant_id
        self.display_name = display_name

    def to_dict(self) -> Dict:
        return {'participantId': self.participant_id, 'displayName': self.display_name}

    @classmethod
    def from_dict(cls, data: Dict) -> 'Participant':
        return cls(data['participantId'], data.get('displayName') or data['participantId'])

    def __eq__(self, other):
        if not isinstance(other, Participant):
            return NotImplemented
        return self.participant_id == other.participant_id

    def __hash__(self):
        return hash(self.participant_id)

    def __repr__(self):
        return f"Participant(participant_id={self.participant_id}, display_name={self.display_name})"


class PlayerSlot:
    """One side of a matchup: a participant, the BYE sentinel or a pending winner."""

    def __init__(self, participant_id: Optional[str], display_name: str, score: int = 0):
        self.participant_id = participant_id
        self.display_name = display_name
        self.score = score

    @classmethod
    def bye(cls) -> 'PlayerSlot':
        return cls(None, BYE_NAME)

    @classmethod
    def for_participant(cls, participant: Participant) -> 'PlayerSlot':
        return cls(participant.participant_id, participant.display_name)

    @property
    def is_bye(self) -> bool:
        return self.participant_id is None and self.display_name == BYE_NAME

    @property
    def is_resolved(self) -> bool:
        """True when the slot holds a real participant."""
        return self.participant_id is not None

    @property
    def is_pending(self) -> bool:
        """True while the slot waits for a previous round's winner."""
        return self.participant_id is None and not self.is_bye

    def copy(self) -> 'PlayerSlot':
        return PlayerSlot(self.participant_id, self.display_name, self.score)

    def to_dict(self) -> Dict:
        return {
            'participantId': self.participant_id,
            'displayName': self.display_name,
            'score': self.score,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'PlayerSlot':
        return cls(data.get('participantId'), data['displayName'], int(data.get('score', 0)))

    def __repr__(self):
        return f"PlayerSlot(participant_id={self.participant_id}, display_name={self.display_name}, score={self.score})"


class Matchup:
    def __init__(self, matchup_id: str, round_number: int, player1: PlayerSlot, player2: PlayerSlot,
                 winner_participant_id: Optional[str] = None, is_placeholder: bool = False,
                 is_bye: bool = False, feeds_from: Optional[List[str]] = None,
                 feeds_into: Optional[str] = None):
        self.matchup_id = matchup_id
        self.round_number = round_number
        self.player1 = player1
        self.player2 = player2
        self.winner_participant_id = winner_participant_id
        self.is_placeholder = is_placeholder
        self.is_bye = is_bye
        self.feeds_from = feeds_from if feeds_from else []
        self.feeds_into = feeds_into

    @property
    def sides(self) -> List[PlayerSlot]:
        return [self.player1, self.player2]

    @property
    def is_empty(self) -> bool:
        """BYE against BYE: nobody plays and a BYE advances."""
        return self.player1.is_bye and self.player2.is_bye

    @property
    def is_decided(self) -> bool:
        return self.winner_participant_id is not None or self.is_empty

    def slot_for(self, participant_id: str) -> Optional[PlayerSlot]:
        for slot in self.sides:
            if slot.participant_id is not None and slot.participant_id == participant_id:
                return slot
        return None

    def to_dict(self) -> Dict:
        return {
            'matchupId': self.matchup_id,
            'roundNumber': self.round_number,
            'player1': self.player1.to_dict(),
            'player2': self.player2.to_dict(),
            'winnerParticipantId': self.winner_participant_id,
            'isPlaceholder': self.is_placeholder,
            'isBye': self.is_bye,
            'feedsFrom': list(self.feeds_from),
            'feedsInto': self.feeds_into,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Matchup':
        return cls(
            matchup_id=data['matchupId'],
            round_number=int(data['roundNumber']),
            player1=PlayerSlot.from_dict(data['player1']),
            player2=PlayerSlot.from_dict(data['player2']),
            winner_participant_id=data.get('winnerParticipantId'),
            is_placeholder=bool(data.get('isPlaceholder', False)),
            is_bye=bool(data.get('isBye', False)),
            feeds_from=data.get('feedsFrom'),
            feeds_into=data.get('feedsInto'),
        )

    def __repr__(self):
        return (f"Matchup(matchup_id={self.matchup_id}, player1={self.player1.display_name}, "
                f"player2={self.player2.display_name}, winner={self.winner_participant_id})")
