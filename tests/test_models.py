"""
Unit tests for the data models (Participant, PlayerSlot, Matchup).
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from madness.models import BYE_NAME, Matchup, Participant, PlayerSlot


class TestParticipant:
    """Tests for the Participant model."""

    def test_participant_creation(self):
        participant = Participant('u1', 'DJ Test')
        assert participant.participant_id == 'u1'
        assert participant.display_name == 'DJ Test'

    def test_participants_compare_by_id(self):
        assert Participant('u1', 'One') == Participant('u1', 'Renamed')
        assert Participant('u1', 'One') != Participant('u2', 'One')
        assert len({Participant('u1', 'a'), Participant('u1', 'b')}) == 1

    def test_from_dict_defaults_display_name_to_id(self):
        participant = Participant.from_dict({'participantId': 'u7'})
        assert participant.display_name == 'u7'

    def test_participant_repr(self):
        assert 'DJ Test' in repr(Participant('u1', 'DJ Test'))


class TestPlayerSlot:
    """Tests for the three kinds of slot."""

    def test_bye_slot(self):
        slot = PlayerSlot.bye()
        assert slot.participant_id is None
        assert slot.display_name == BYE_NAME
        assert slot.is_bye
        assert not slot.is_resolved
        assert not slot.is_pending

    def test_participant_slot(self):
        slot = PlayerSlot.for_participant(Participant('u1', 'DJ Test'))
        assert slot.is_resolved
        assert not slot.is_bye
        assert not slot.is_pending
        assert slot.score == 0

    def test_pending_slot(self):
        slot = PlayerSlot(None, 'Winner of Round 1, Match 1')
        assert slot.is_pending
        assert not slot.is_bye
        assert not slot.is_resolved

    def test_copy_is_independent(self):
        slot = PlayerSlot('u1', 'DJ Test', 3)
        copied = slot.copy()
        copied.score += 1
        assert slot.score == 3
        assert copied.score == 4


class TestMatchup:
    """Tests for the Matchup model and its serialized shape."""

    def test_to_dict_shape(self):
        matchup = Matchup('R1M1', 1, PlayerSlot('u1', 'One'), PlayerSlot.bye(),
                          is_bye=True, feeds_into='R2M1')
        data = matchup.to_dict()
        assert data == {
            'matchupId': 'R1M1',
            'roundNumber': 1,
            'player1': {'participantId': 'u1', 'displayName': 'One', 'score': 0},
            'player2': {'participantId': None, 'displayName': 'BYE', 'score': 0},
            'winnerParticipantId': None,
            'isPlaceholder': False,
            'isBye': True,
            'feedsFrom': [],
            'feedsInto': 'R2M1',
        }

    def test_from_dict_reads_snapshot(self):
        data = {
            'matchupId': 'R2M1',
            'roundNumber': 2,
            'player1': {'participantId': 'u1', 'displayName': 'One', 'score': 4},
            'player2': {'participantId': None, 'displayName': 'Winner of Round 1, Match 2', 'score': 0},
            'winnerParticipantId': None,
            'isPlaceholder': True,
            'isBye': False,
            'feedsFrom': ['R1M1', 'R1M2'],
            'feedsInto': None,
        }
        matchup = Matchup.from_dict(data)
        assert matchup.matchup_id == 'R2M1'
        assert matchup.player1.score == 4
        assert matchup.player2.is_pending
        assert matchup.feeds_from == ['R1M1', 'R1M2']
        assert matchup.to_dict() == data

    def test_empty_matchup(self):
        matchup = Matchup('R1M4', 1, PlayerSlot.bye(), PlayerSlot.bye())
        assert matchup.is_empty
        assert matchup.is_decided
        assert matchup.winner_participant_id is None

    def test_slot_for(self):
        matchup = Matchup('R1M1', 1, PlayerSlot('u1', 'One'), PlayerSlot('u2', 'Two'))
        assert matchup.slot_for('u2') is matchup.player2
        assert matchup.slot_for('u3') is None
        assert matchup.slot_for(None) is None

    def test_matchup_repr(self):
        matchup = Matchup('R1M1', 1, PlayerSlot('u1', 'One'), PlayerSlot('u2', 'Two'))
        assert 'R1M1' in repr(matchup)
        assert 'One' in repr(matchup)
