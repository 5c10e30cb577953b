"""Session state machine.

    waiting -> answering -> revealing -> answering (next) -> ... -> finished

``reset`` is the only way back to ``waiting``. Every transition is written
with a compare-and-set on (status, current_question_index), so two hosts
(or a double click) cannot both apply it. A lost compare-and-set on
``start``/``advance``/``force_reveal`` means someone else already made the
same move; it is logged and treated as applied.
"""
from datetime import datetime
from typing import Dict, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from quizroom import db
from quizroom.errors import InvalidTransition, StoreConflict, ValidationError
from quizroom.models import (
    ANSWERING,
    FINISHED,
    REVEALING,
    WAITING,
    GameSession,
    Player,
    generate_room_code,
)
from quizroom.question_bank import get_question, get_question_set, next_set_index
from . import leaderboard, ledger, timer
from .store import compare_and_set, get_player, get_session

ROOM_CODE_ATTEMPTS = 5


def create_session() -> GameSession:
    """Create a session in ``waiting`` with a fresh room code.

    The question set rotates per session: it follows the set of the most
    recently created session, so the rotation lives in the store.
    """
    length = int(current_app.config.get('ROOM_CODE_LENGTH', 6))
    for _ in range(ROOM_CODE_ATTEMPTS):
        last = GameSession.query.order_by(GameSession.id.desc()).first()
        set_index = next_set_index(last.question_set_index if last else None)
        session = GameSession(
            room_code=generate_room_code(length),
            status=WAITING,
            current_question_index=1,
            question_set_index=set_index,
        )
        db.session.add(session)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            continue
        current_app.logger.info(
            f"[create] session={session.room_code} set={get_question_set(set_index).name}"
        )
        return session
    raise StoreConflict("Could not allocate a unique room code")


def join_session(room_code: str, name: str, email: Optional[str] = None) -> Player:
    session = get_session(room_code)
    name = (name or '').strip()
    if not name:
        raise ValidationError("Player name is required")
    if len(name) > 64:
        raise ValidationError("Player name must be at most 64 characters")
    if session.status == FINISHED:
        raise InvalidTransition('join', session.status)
    max_players = int(current_app.config.get('MAX_PLAYERS', 50))
    if Player.query.filter_by(session_id=session.id).count() >= max_players:
        raise ValidationError(f"Session is full ({max_players} players max)")

    player = Player(session_id=session.id, name=name, email=email or None, score=0)
    db.session.add(player)
    db.session.commit()
    current_app.logger.info(
        f"[join] session={session.room_code} player={player.id} status={session.status}"
    )
    return player


def start(room_code: str, now: Optional[datetime] = None) -> GameSession:
    session = get_session(room_code)
    if session.status != WAITING:
        raise InvalidTransition('start', session.status)
    try:
        compare_and_set(
            session, WAITING, session.current_question_index,
            status=ANSWERING, current_question_index=1, timer_started_at=timer.arm(now),
        )
        db.session.commit()
    except StoreConflict as exc:
        db.session.rollback()
        current_app.logger.warning(f"[conflict] start session={room_code}: {exc}")
        return get_session(room_code)
    current_app.logger.info(f"[start] session={session.room_code} duration={timer.round_duration()}s")
    return session


def advance(room_code: str, now: Optional[datetime] = None) -> bool:
    """Open the next question, or finish the game.

    Returns False once the bank is exhausted ("game over"); the question
    index then stays on the last question.
    """
    session = get_session(room_code)
    if session.status != REVEALING:
        raise InvalidTransition('advance', session.status)
    index = session.current_question_index
    total = len(get_question_set(session.question_set_index))
    try:
        if index + 1 > total:
            compare_and_set(session, REVEALING, index, status=FINISHED, timer_started_at=None)
            has_next = False
        else:
            compare_and_set(
                session, REVEALING, index,
                status=ANSWERING, current_question_index=index + 1, timer_started_at=timer.arm(now),
            )
            has_next = True
        db.session.commit()
    except StoreConflict as exc:
        db.session.rollback()
        current_app.logger.warning(f"[conflict] advance session={room_code}: {exc}")
        return get_session(room_code).status != FINISHED

    if has_next:
        current_app.logger.info(f"[next_question] session={room_code} question {index} -> {index + 1}")
    else:
        current_app.logger.info(f"[finish] session={room_code} finished at question={index}")
    return has_next


def force_reveal(room_code: str) -> GameSession:
    """Close the current round: sweep non-respondents, then reveal.

    The timed-out sentinels and the status change commit together; if the
    compare-and-set is lost (another reveal, or a reset) they are rolled
    back with it. The status change is attempted even if the sweep fails,
    so a round can never be left stuck in ``answering``.
    """
    session = get_session(room_code)
    if session.status != ANSWERING:
        raise InvalidTransition('force-reveal', session.status)
    index = session.current_question_index

    swept = []
    try:
        swept = ledger.sweep_timeouts(session, index)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"[sweep-failed] session={room_code} question={index}")

    try:
        compare_and_set(session, ANSWERING, index, status=REVEALING)
        db.session.commit()
    except StoreConflict as exc:
        db.session.rollback()
        current_app.logger.warning(
            f"[conflict] force-reveal session={room_code}: {exc}; discarded {len(swept)} timeouts"
        )
        return get_session(room_code)
    current_app.logger.info(f"[reveal] session={room_code} question={index} timed_out={len(swept)}")
    return session


def reset(room_code: str) -> GameSession:
    """Back to ``waiting``: no responses, every score zero, question 1, no timer."""
    session = get_session(room_code)
    status, index = session.status, session.current_question_index
    try:
        compare_and_set(
            session, status, index,
            status=WAITING, current_question_index=1, timer_started_at=None,
        )
        deleted = ledger.clear(session)
        db.session.commit()
    except StoreConflict:
        db.session.rollback()
        raise
    current_app.logger.info(f"[reset] session={room_code} from={status} responses_deleted={deleted}")
    return session


def poll_interval_ms(status: str) -> int:
    """Fallback poll cadence for clients without a live subscription."""
    if status in (ANSWERING, REVEALING):
        return int(current_app.config.get('POLL_ACTIVE_MS', 1000))
    return int(current_app.config.get('POLL_IDLE_MS', 5000))


def _session_summary(session: GameSession, now: Optional[datetime] = None) -> Dict:
    summary = session.to_dict()
    summary['total_questions'] = len(get_question_set(session.question_set_index))
    summary['question_set'] = get_question_set(session.question_set_index).name
    summary['duration'] = timer.round_duration()
    summary['remaining_seconds'] = timer.remaining_seconds(session, now)
    summary['expired'] = timer.is_expired(session, now)
    return summary


def _current_question(session: GameSession) -> Optional[Dict]:
    if session.status == WAITING:
        return None
    question = get_question(session.question_set_index, session.current_question_index)
    return question.to_dict(reveal=session.status in (REVEALING, FINISHED))


def get_state(room_code: str, now: Optional[datetime] = None) -> Dict:
    session = get_session(room_code)
    board = leaderboard.project(session)
    state = {
        'session': _session_summary(session, now),
        'players': board['players'],
        'total_players': board['total_players'],
        'current_question': _current_question(session),
        'answer_stats': ledger.answer_stats(session),
        'poll_after_ms': poll_interval_ms(session.status),
    }
    if session.status in (REVEALING, FINISHED):
        state['responses'] = [
            r.to_dict() for r in ledger.responses_for(session, session.current_question_index)
        ]
    return state


def get_player_view(room_code: str, player_id, now: Optional[datetime] = None) -> Dict:
    session = get_session(room_code)
    player = get_player(player_id, session)
    response = None
    if session.status != WAITING:
        response = ledger.get_response(player.id, session.current_question_index)
    board = leaderboard.project(session)
    position = next((p['position'] for p in board['players'] if p['id'] == player.id), 0)
    return {
        'player': player.to_dict(),
        'position': position,
        'total_players': board['total_players'],
        'session': _session_summary(session, now),
        'current_question': _current_question(session),
        'response': response.to_dict() if response else None,
        'can_answer': session.status == ANSWERING and response is None,
        'poll_after_ms': poll_interval_ms(session.status),
    }
