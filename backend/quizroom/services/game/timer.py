"""Round timer coordination.

A round's clock is a single stored instant (``timer_started_at``, UTC) plus
the configured duration. Every observer derives the remaining time from the
same formula, so a client that attaches mid-round (or refreshes) recovers
the countdown from the row alone. Nothing ticks in the background: whoever
first reads ``remaining <= 0`` is responsible for calling ``force_reveal``.
"""
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from quizroom import db
from quizroom.errors import InvalidTransition, StoreConflict, ValidationError
from quizroom.models import ANSWERING, WAITING, GameSession, as_utc, utcnow
from .store import compare_and_set, get_session, parse_int


def round_duration() -> int:
    return int(current_app.config.get('QUESTION_DURATION_SEC', 45))


def arm(now: Optional[datetime] = None) -> datetime:
    """Start instant for a fresh round; the caller writes it with its transition."""
    return as_utc(now) if now else utcnow()


def remaining_seconds(session: GameSession, now: Optional[datetime] = None) -> int:
    duration = round_duration()
    if session.status == WAITING:
        return duration
    if session.status != ANSWERING:
        return 0
    started = as_utc(session.timer_started_at)
    if started is None:
        return duration
    elapsed = int(((as_utc(now) if now else utcnow()) - started).total_seconds())
    return min(duration, max(0, duration - elapsed))


def is_expired(session: GameSession, now: Optional[datetime] = None) -> bool:
    return session.status == ANSWERING and remaining_seconds(session, now) <= 0


def fast_forward(room_code: str, remaining: int, now: Optional[datetime] = None) -> GameSession:
    """Rewrite the start instant so that ``remaining`` seconds are left.

    Only shortens a round: asking for more time than is left is a no-op.
    The round duration itself never changes.
    """
    remaining = parse_int(remaining, 'remaining_seconds')
    if remaining < 0:
        raise ValidationError("remaining_seconds must not be negative")

    session = get_session(room_code)
    if session.status != ANSWERING:
        raise InvalidTransition('fast-forward', session.status)
    question_index = session.current_question_index

    now = as_utc(now) if now else utcnow()
    current = remaining_seconds(session, now)
    if remaining >= current:
        current_app.logger.info(
            f"[fast-forward-skip] session={session.room_code} requested={remaining}s remaining={current}s"
        )
        return session

    duration = round_duration()
    new_start = now - timedelta(seconds=duration - remaining)
    try:
        compare_and_set(session, ANSWERING, question_index, timer_started_at=new_start)
        db.session.commit()
    except StoreConflict as exc:
        db.session.rollback()
        current_app.logger.warning(f"[conflict] fast-forward session={session.room_code}: {exc}")
        return get_session(room_code)
    current_app.logger.info(
        f"[fast-forward] session={session.room_code} question={question_index} "
        f"remaining {current}s -> {remaining}s"
    )
    return session
