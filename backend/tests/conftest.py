import os
import sys
from datetime import datetime, timezone

import pytest

# Ensure the backend root (containing the `quizroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from quizroom import create_app, db, socketio
from quizroom import question_bank
from quizroom.question_bank import Question, QuestionSet


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    QUESTION_DURATION_SEC = 45
    FAST_FORWARD_REMAINING_SEC = 5
    AUTO_FAST_FORWARD = True
    POLL_ACTIVE_MS = 1000
    POLL_IDLE_MS = 5000
    MAX_PLAYERS = 50
    ROOM_CODE_LENGTH = 6


T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import quizroom.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


def _question(index, correct, value, prompt=None):
    return Question(
        index=index,
        prompt=prompt or f"Question {index}?",
        answer_options=('A', 'B', 'C', 'D'),
        correct_option_index=correct,
        point_value=value,
        explanation=f"Option {correct} is right.",
    )


@pytest.fixture()
def one_question_bank(monkeypatch):
    """A bank with a single question: correct option 1, worth 100."""
    bank = (QuestionSet(name='ONE', questions=(_question(1, 1, 100),)),)
    monkeypatch.setattr(question_bank, 'QUESTION_SETS', bank)
    return bank


@pytest.fixture()
def five_question_bank(monkeypatch):
    bank = (QuestionSet(name='FIVE', questions=tuple(_question(i, i % 4, 10 * i) for i in range(1, 6))),)
    monkeypatch.setattr(question_bank, 'QUESTION_SETS', bank)
    return bank


@pytest.fixture()
def new_session(flask_app):
    """Factory: a waiting session with the named players joined, in order."""
    from quizroom.services.game import state_machine

    def _make(*names):
        session = state_machine.create_session()
        players = [state_machine.join_session(session.room_code, name) for name in names]
        return session.room_code, [p.id for p in players]

    return _make
