"""
Exceptions raised by the bracket engine and tournament lifecycle.

Each error carries the HTTP status the web layer should answer with.
"""


class TournamentError(Exception):
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TournamentNotFoundError(TournamentError):
    http_status = 404


class PermissionDeniedError(TournamentError):
    http_status = 403


class TournamentConflictError(TournamentError):
    """The tournament is not in the status the action requires."""
    http_status = 409


class TournamentStateError(TournamentError):
    http_status = 400


class BracketSizeError(TournamentError):
    http_status = 400


class InvalidMatchupError(TournamentError):
    http_status = 400


class MatchupNotFoundError(TournamentError):
    http_status = 404


class MatchupStateError(TournamentError):
    """The matchup cannot take a vote or result in its current state."""
    http_status = 409


class BracketIntegrityError(TournamentError):
    http_status = 500


class RegistrationError(TournamentError):
    http_status = 400
