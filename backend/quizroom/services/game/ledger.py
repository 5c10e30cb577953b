"""Answer ledger: one Response per (player, question), scored exactly once.

The unique constraint on ``response(player_id, question_index)`` is the
arbiter between a player's submission and the host's timeout sweep. Whichever
insert reaches the store first wins; the submission that loses is rejected
(``AlreadyAnswered``/``TimeExpired``) and the sweep that loses skips the
player. Scores are only ever raised with a single ``score = score + n``
UPDATE committed together with the Response that earned them.
"""
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from quizroom import db
from quizroom.errors import AlreadyAnswered, TimeExpired, ValidationError
from quizroom.models import (
    ANSWERED,
    ANSWERING,
    OPTION_COUNT,
    TIMED_OUT,
    GameSession,
    Player,
    Response,
)
from quizroom.question_bank import get_question
from .store import get_player, parse_int


def get_response(player_id, question_index: int) -> Optional[Response]:
    return Response.query.filter_by(player_id=player_id, question_index=question_index).first()


def _raise_for_existing(response: Response) -> None:
    if response.timed_out:
        raise TimeExpired()
    raise AlreadyAnswered()


def _insert_response(session_id: int, player_id: int, question_index: int, kind: str,
                     selected_option: Optional[int], is_correct: bool) -> Response:
    response = Response(
        session_id=session_id,
        player_id=player_id,
        question_index=question_index,
        kind=kind,
        selected_option=selected_option,
        is_correct=is_correct,
    )
    db.session.add(response)
    db.session.flush()
    return response


def _round_open(session_id: int, question_index: int) -> bool:
    """Lock the session row if it is still answering ``question_index``."""
    row = (
        db.session.query(GameSession.id)
        .filter(
            GameSession.id == session_id,
            GameSession.status == ANSWERING,
            GameSession.current_question_index == question_index,
        )
        .with_for_update()
        .first()
    )
    return row is not None


def submit_answer(player_id, question_index, selected_option) -> Dict:
    """Record a player's answer and score it.

    Returns ``{'is_correct', 'points_earned', 'correct_option_index'}`` so the
    caller can reveal to that player straight away.
    """
    player = get_player(player_id)
    session = player.session
    question_index = parse_int(question_index, 'question_index')
    selected_option = parse_int(selected_option, 'selected_option')
    question = get_question(session.question_set_index, question_index)
    if not 0 <= selected_option < OPTION_COUNT:
        raise ValidationError(f"selected_option must be between 0 and {OPTION_COUNT - 1}")

    existing = get_response(player.id, question_index)
    if existing:
        _raise_for_existing(existing)

    if session.status != ANSWERING or session.current_question_index != question_index:
        raise TimeExpired(f"Question {question_index} is not open for answers")

    is_correct = selected_option == question.correct_option_index
    points = question.point_value if is_correct else 0
    player_pk, session_pk, room_code = player.id, session.id, session.room_code

    try:
        with db.session.begin_nested():
            _insert_response(session_pk, player_pk, question_index, ANSWERED, selected_option, is_correct)
    except IntegrityError:
        # Lost the race against a duplicate submit or the timeout sweep
        existing = get_response(player_pk, question_index)
        db.session.rollback()
        if existing is None:
            raise
        current_app.logger.info(
            f"[answer-race] session={room_code} player={player_pk} question={question_index} kind={existing.kind}"
        )
        _raise_for_existing(existing)

    # Re-check under the row lock; a reveal or reset may have committed since
    if not _round_open(session_pk, question_index):
        db.session.rollback()
        current_app.logger.info(
            f"[answer-closed] session={room_code} player={player_pk} question={question_index}"
        )
        raise TimeExpired(f"Question {question_index} is not open for answers")

    if is_correct:
        (
            Player.query
            .filter_by(id=player_pk)
            .update({Player.score: Player.score + points}, synchronize_session=False)
        )
    db.session.commit()

    current_app.logger.info(
        f"[answer] session={room_code} player={player_pk} question={question_index} "
        f"option={selected_option} correct={is_correct} points={points}"
    )
    return {
        'is_correct': is_correct,
        'points_earned': points,
        'correct_option_index': question.correct_option_index,
    }


def _players_without_response(session: GameSession, question_index: int) -> List[int]:
    answered = {
        pid for (pid,) in db.session.query(Response.player_id)
        .filter_by(session_id=session.id, question_index=question_index)
    }
    players = Player.query.filter_by(session_id=session.id).order_by(Player.id).all()
    return [p.id for p in players if p.id not in answered]


def sweep_timeouts(session: GameSession, question_index: int) -> List[int]:
    """Insert a timed-out Response for every player who has not answered.

    Each insert runs in its own savepoint and nothing is committed here: the
    caller commits the sentinels together with its transition to
    ``revealing``, or rolls them back with it. A unique violation means the
    player's answer landed first, so they are skipped; any other store
    failure is logged and skipped so the caller can still close the round.
    Returns the ids of the players that were swept.
    """
    session_pk = session.id
    room_code = session.room_code
    swept = []
    for player_pk in _players_without_response(session, question_index):
        try:
            with db.session.begin_nested():
                _insert_response(session_pk, player_pk, question_index, TIMED_OUT, None, False)
        except IntegrityError:
            current_app.logger.info(
                f"[sweep-skip] session={room_code} player={player_pk} question={question_index} answered first"
            )
            continue
        except SQLAlchemyError:
            current_app.logger.exception(
                f"[sweep-error] session={room_code} player={player_pk} question={question_index}"
            )
            continue
        swept.append(player_pk)

    current_app.logger.info(
        f"[sweep] session={room_code} question={question_index} timed_out={len(swept)}"
    )
    return swept


def answer_stats(session: GameSession) -> Dict:
    total_players = Player.query.filter_by(session_id=session.id).count()
    players_answered = Response.query.filter_by(
        session_id=session.id, question_index=session.current_question_index
    ).count()
    return {
        'total_players': total_players,
        'players_answered': players_answered,
        'all_answered': total_players > 0 and players_answered >= total_players,
    }


def responses_for(session: GameSession, question_index: int) -> List[Response]:
    return (
        Response.query
        .filter_by(session_id=session.id, question_index=question_index)
        .order_by(Response.id)
        .all()
    )


def clear(session: GameSession) -> int:
    """Delete every Response and zero every score; does not commit."""
    deleted = Response.query.filter_by(session_id=session.id).delete(synchronize_session=False)
    Player.query.filter_by(session_id=session.id).update({Player.score: 0}, synchronize_session=False)
    return deleted
