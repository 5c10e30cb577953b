"""Game error taxonomy.

Every outcome the engine rejects is one of these. Most of them are
expected, user-facing results (a double click, a late answer) rather than
failures; the HTTP layer renders them as ``{'error': ..., 'code': ...}``
with the attached status.
"""


class GameError(Exception):
    """Base exception for all engine errors."""
    status_code = 400
    code = 'game_error'

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class NotFound(GameError):
    """Unknown room code or player."""
    status_code = 404
    code = 'not_found'


class InvalidTransition(GameError):
    """Operation is not valid in the session's current status."""
    status_code = 409
    code = 'invalid_transition'

    def __init__(self, operation, status):
        self.operation = operation
        self.status = status
        super().__init__(f"Cannot {operation} while session is {status}")


class AlreadyAnswered(GameError):
    """You have already answered this question."""
    status_code = 409
    code = 'already_answered'


class TimeExpired(GameError):
    """Time expired - you can no longer answer this question."""
    status_code = 409
    code = 'time_expired'


class QuestionIndexOutOfRange(GameError):
    """Question index is outside the question bank."""
    status_code = 400
    code = 'question_index_out_of_range'

    def __init__(self, index, total):
        self.index = index
        self.total = total
        super().__init__(f"Question {index} is outside 1..{total}")


class StoreConflict(GameError):
    """Session was changed concurrently; retry or treat as already applied."""
    status_code = 409
    code = 'store_conflict'


class ValidationError(GameError):
    """Malformed request."""
    status_code = 400
    code = 'validation_error'
