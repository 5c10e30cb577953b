from quizroom import db
from datetime import datetime, timezone
import string
import random

WAITING = 'waiting'
ANSWERING = 'answering'
REVEALING = 'revealing'
FINISHED = 'finished'
SESSION_STATUSES = (WAITING, ANSWERING, REVEALING, FINISHED)

# Response kinds: a real selection, or the sentinel written by the timeout sweep
ANSWERED = 'answered'
TIMED_OUT = 'timed_out'

OPTION_COUNT = 4


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def generate_room_code(length=6):
    """Generate a unique, short room code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not GameSession.query.filter_by(room_code=code).first():
            return code


class GameSession(db.Model):
    __tablename__ = 'game_session'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(12), unique=True, index=True, nullable=False)
    status = db.Column(db.String(16), default=WAITING, nullable=False)  # waiting, answering, revealing, finished
    current_question_index = db.Column(db.Integer, default=1, nullable=False)  # 1-based
    timer_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    question_set_index = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint('current_question_index >= 1', name='ck_session_question_index'),
    )

    def __init__(self, **kwargs):
        super(GameSession, self).__init__(**kwargs)
        if not self.room_code:
            self.room_code = generate_room_code()

    def to_dict(self):
        started = as_utc(self.timer_started_at)
        return {
            'id': self.id,
            'room_code': self.room_code,
            'status': self.status,
            'current_question_index': self.current_question_index,
            'timer_started_at': started.isoformat() if started else None,
            'question_set_index': self.question_set_index,
        }


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('game_session.id'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    score = db.Column(db.Integer, default=0, nullable=False)
    joined_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    session = db.relationship('GameSession')

    __table_args__ = (
        db.CheckConstraint('score >= 0', name='ck_player_score_non_negative'),
    )

    def to_dict(self):
        joined = as_utc(self.joined_at)
        return {
            'id': self.id,
            'name': self.name,
            'session_id': self.session_id,
            'score': self.score,
            'joined_at': joined.isoformat() if joined else None,
        }


class Response(db.Model):
    __tablename__ = 'response'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('game_session.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    question_index = db.Column(db.Integer, nullable=False)
    kind = db.Column(db.String(16), nullable=False)  # answered, timed_out
    selected_option = db.Column(db.Integer, nullable=True)  # NULL when timed out
    is_correct = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('player_id', 'question_index', name='uq_response_player_question'),
        db.CheckConstraint(
            "(kind = 'answered' AND selected_option BETWEEN 0 AND 3) "
            "OR (kind = 'timed_out' AND selected_option IS NULL AND is_correct = false)",
            name='ck_response_kind_option',
        ),
        db.Index('ix_response_session_question', 'session_id', 'question_index'),
    )

    @property
    def timed_out(self):
        return self.kind == TIMED_OUT

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'question_index': self.question_index,
            'kind': self.kind,
            'selected_option': self.selected_option,
            'is_correct': self.is_correct,
        }
