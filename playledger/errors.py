"""
Error taxonomy for ledger operations.

Every rejection is a precondition failure raised before the transaction
commits, so a raised LedgerError always means "nothing changed".
"""


class LedgerError(Exception):
    """Base class for all rejected operations."""

    code = "ledger_error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class AuthorizationError(LedgerError):
    code = "not_owner"
    status_code = 403


class InvalidIdentity(LedgerError):
    code = "invalid_identity"


class NotRegistered(LedgerError):
    code = "not_registered"
    status_code = 404


class PlayerInactive(LedgerError):
    code = "player_inactive"
    status_code = 403


class PlatformInactive(LedgerError):
    code = "platform_inactive"
    status_code = 503


class InvalidInput(LedgerError):
    code = "invalid_input"
    status_code = 422


class InvalidUsername(InvalidInput):
    code = "invalid_username"


class EmptyName(InvalidInput):
    code = "empty_name"


class InvalidDuration(InvalidInput):
    code = "invalid_duration"


class GameTooShort(InvalidInput):
    code = "game_too_short"


class InvalidScore(InvalidInput):
    code = "invalid_score"


class AlreadyRegistered(LedgerError):
    code = "already_registered"
    status_code = 409


class AlreadyJoined(LedgerError):
    code = "already_joined"
    status_code = 409


class InsufficientBalance(LedgerError):
    code = "insufficient_balance"
    status_code = 402


class DailyLimitReached(LedgerError):
    code = "daily_limit_reached"
    status_code = 429


class TournamentNotActive(LedgerError):
    code = "tournament_not_active"
    status_code = 409


class TournamentNotFound(TournamentNotActive):
    code = "tournament_not_found"
    status_code = 404


class TournamentCompleted(LedgerError):
    code = "tournament_completed"
    status_code = 409


class AlreadyCompleted(LedgerError):
    code = "already_completed"
    status_code = 409


class RegistrationClosed(LedgerError):
    code = "registration_closed"
    status_code = 409


class NotAParticipant(LedgerError):
    code = "not_a_participant"
    status_code = 422
