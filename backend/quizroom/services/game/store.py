"""Store access shared by the game services.

Lookups that translate a missing row into ``NotFound``, strict integer
parsing of request fields, and the single-row compare-and-set used to guard
every session status transition.
"""
from typing import Optional

from quizroom import db
from quizroom.errors import NotFound, StoreConflict, ValidationError
from quizroom.models import GameSession, Player


def get_session(room_code: str) -> GameSession:
    if not room_code:
        raise NotFound("Room code is required")
    session = GameSession.query.filter_by(room_code=room_code.upper()).first()
    if not session:
        raise NotFound(f"Session {room_code.upper()} not found")
    return session


def parse_int(value, field: str) -> int:
    """Accept an int or a string of ASCII digits; never truncate a float."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    raise ValidationError(f"{field} must be an integer")


def get_player(player_id, session: Optional[GameSession] = None) -> Player:
    try:
        player_id = parse_int(player_id, 'player_id')
    except ValidationError:
        raise NotFound(f"Player {player_id} not found")
    query = Player.query.filter_by(id=player_id)
    if session is not None:
        query = query.filter_by(session_id=session.id)
    player = query.first()
    if not player:
        raise NotFound(f"Player {player_id} not found")
    return player


def compare_and_set(session: GameSession, expected_status: str, expected_index: int, **values) -> None:
    """Apply ``values`` to the session row only if it is still where we read it.

    The row must still hold ``expected_status`` and ``expected_index`` (the
    question the caller observed). Does not commit; raises StoreConflict
    when another caller got there first.
    """
    updated = (
        GameSession.query
        .filter(
            GameSession.id == session.id,
            GameSession.status == expected_status,
            GameSession.current_question_index == expected_index,
        )
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        raise StoreConflict(
            f"Session {session.room_code} left {expected_status}/{expected_index} concurrently"
        )
    db.session.expire(session)
