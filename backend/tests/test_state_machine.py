import pytest

from quizroom import db
from quizroom.errors import InvalidTransition, NotFound, StoreConflict, ValidationError
from quizroom.models import (
    ANSWERING,
    FINISHED,
    REVEALING,
    WAITING,
    GameSession,
    Player,
    Response,
)
from quizroom.services.game import ledger, state_machine
from quizroom.services.game.store import get_session


def play_round(code, answers=()):
    """Submit ``(player_id, option)`` pairs for the open question, then reveal."""
    index = get_session(code).current_question_index
    for pid, option in answers:
        ledger.submit_answer(pid, index, option)
    state_machine.force_reveal(code)


def test_create_session_starts_waiting(flask_app):
    session = state_machine.create_session()
    assert session.status == WAITING
    assert session.current_question_index == 1
    assert session.timer_started_at is None
    assert len(session.room_code) == 6
    assert session.room_code.isalnum() and session.room_code == session.room_code.upper()


def test_question_sets_rotate_per_session(flask_app):
    first = state_machine.create_session()
    second = state_machine.create_session()
    assert first.question_set_index == 0
    assert second.question_set_index == 1
    assert get_session(first.room_code).question_set_index == 0


def test_room_codes_are_case_insensitive(new_session):
    code, _ = new_session('Alice')
    assert get_session(code.lower()).room_code == code


def test_unknown_room_code(flask_app):
    with pytest.raises(NotFound):
        state_machine.start('NOPE42')
    with pytest.raises(NotFound):
        state_machine.join_session('NOPE42', 'Alice')


def test_start_only_from_waiting(new_session):
    code, _ = new_session('Alice')
    session = state_machine.start(code)
    assert session.status == ANSWERING
    assert session.current_question_index == 1
    assert session.timer_started_at is not None
    with pytest.raises(InvalidTransition):
        state_machine.start(code)


def test_advance_only_from_revealing(new_session):
    code, _ = new_session('Alice')
    with pytest.raises(InvalidTransition):
        state_machine.advance(code)
    state_machine.start(code)
    with pytest.raises(InvalidTransition):
        state_machine.advance(code)


def test_force_reveal_only_from_answering(new_session):
    code, _ = new_session('Alice')
    with pytest.raises(InvalidTransition):
        state_machine.force_reveal(code)
    state_machine.start(code)
    state_machine.force_reveal(code)
    assert get_session(code).status == REVEALING


def test_force_reveal_twice_keeps_response_set(one_question_bank, new_session):
    code, (alice, bob) = new_session('Alice', 'Bob')
    state_machine.start(code)
    ledger.submit_answer(alice, 1, 1)
    state_machine.force_reveal(code)
    before = sorted((r.player_id, r.kind, r.selected_option) for r in Response.query.all())

    with pytest.raises(InvalidTransition):
        state_machine.force_reveal(code)
    after = sorted((r.player_id, r.kind, r.selected_option) for r in Response.query.all())
    assert before == after
    assert len(after) == 2


def test_last_advance_finishes_without_moving_past_bank(five_question_bank, new_session):
    code, (alice,) = new_session('Alice')
    state_machine.start(code)
    seen = [get_session(code).current_question_index]
    for _ in range(4):
        play_round(code, [(alice, 0)])
        assert state_machine.advance(code) is True
        seen.append(get_session(code).current_question_index)
    play_round(code, [(alice, 0)])

    assert state_machine.advance(code) is False
    session = get_session(code)
    assert session.status == FINISHED
    assert session.current_question_index == 5
    assert session.timer_started_at is None
    assert seen == [1, 2, 3, 4, 5]

    with pytest.raises(InvalidTransition):
        state_machine.advance(code)


def test_reset_mid_game(five_question_bank, new_session):
    code, (alice, bob) = new_session('Alice', 'Bob')
    state_machine.start(code)
    play_round(code, [(alice, 1), (bob, 1)])
    state_machine.advance(code)
    ledger.submit_answer(alice, 2, 2)
    assert Response.query.count() == 3

    session = state_machine.reset(code)

    assert session.status == WAITING
    assert session.current_question_index == 1
    assert session.timer_started_at is None
    assert Response.query.count() == 0
    assert [p.score for p in Player.query.order_by(Player.id)] == [0, 0]
    # Players stay attached and can play again
    state_machine.start(code)
    assert ledger.submit_answer(alice, 1, 1)['points_earned'] == 10


def test_reset_from_finished(one_question_bank, new_session):
    code, (alice,) = new_session('Alice')
    state_machine.start(code)
    play_round(code, [(alice, 1)])
    assert state_machine.advance(code) is False
    state_machine.reset(code)
    assert get_session(code).status == WAITING


def test_join_rules(one_question_bank, new_session):
    code, _ = new_session()
    with pytest.raises(ValidationError):
        state_machine.join_session(code, '   ')
    with pytest.raises(ValidationError):
        state_machine.join_session(code, 'x' * 65)

    state_machine.start(code)
    late = state_machine.join_session(code, 'Late', email='late@example.com')
    assert late.score == 0 and late.email == 'late@example.com'

    state_machine.force_reveal(code)
    state_machine.advance(code)
    with pytest.raises(InvalidTransition):
        state_machine.join_session(code, 'Too Late')


def test_session_full(flask_app, new_session):
    flask_app.config['MAX_PLAYERS'] = 2
    code, _ = new_session('Alice', 'Bob')
    with pytest.raises(ValidationError):
        state_machine.join_session(code, 'Cara')


def test_question_index_never_decreases_without_reset(five_question_bank, new_session):
    code, (alice,) = new_session('Alice')
    state_machine.start(code)
    history = []
    while True:
        history.append(get_session(code).current_question_index)
        play_round(code)
        if not state_machine.advance(code):
            break
    history.append(get_session(code).current_question_index)
    assert history == sorted(history)
    assert all(1 <= i <= 5 for i in history)


def _racing_update(monkeypatch, values, commit):
    """Another host changes the row right before our compare-and-set."""
    real = state_machine.compare_and_set

    def racing(session, expected_status, expected_index, **kwargs):
        GameSession.query.filter_by(id=session.id).update(values, synchronize_session=False)
        if commit:
            db.session.commit()
        return real(session, expected_status, expected_index, **kwargs)

    monkeypatch.setattr(state_machine, 'compare_and_set', racing)


def test_lost_advance_race_is_treated_as_applied(new_session, monkeypatch):
    code, _ = new_session('Alice')
    state_machine.start(code)
    state_machine.force_reveal(code)
    _racing_update(monkeypatch, {'status': ANSWERING, 'current_question_index': 2}, commit=True)

    assert state_machine.advance(code) is True
    session = get_session(code)
    assert session.status == ANSWERING
    assert session.current_question_index == 2


def test_lost_start_race_is_treated_as_applied(new_session, monkeypatch):
    code, _ = new_session('Alice')
    _racing_update(monkeypatch, {'status': ANSWERING}, commit=True)
    session = state_machine.start(code)
    assert session.status == ANSWERING
    assert session.current_question_index == 1


def test_lost_force_reveal_race_keeps_other_hosts_result(new_session, monkeypatch):
    code, (alice,) = new_session('Alice')
    state_machine.start(code)
    _racing_update(monkeypatch, {'status': REVEALING}, commit=True)
    session = state_machine.force_reveal(code)
    assert session.status == REVEALING
    assert ledger.get_response(alice, 1).timed_out


def test_lost_reset_race_is_surfaced_and_rolled_back(one_question_bank, new_session, monkeypatch):
    code, (alice,) = new_session('Alice')
    state_machine.start(code)
    ledger.submit_answer(alice, 1, 1)
    _racing_update(monkeypatch, {'status': REVEALING}, commit=False)

    with pytest.raises(StoreConflict):
        state_machine.reset(code)
    assert Response.query.count() == 1
    assert db.session.get(Player, alice).score == 100
    assert get_session(code).status == ANSWERING


def test_get_state_hides_answer_until_reveal(one_question_bank, new_session):
    code, (alice,) = new_session('Alice')
    state = state_machine.get_state(code)
    assert state['current_question'] is None
    assert state['poll_after_ms'] == 5000

    state_machine.start(code)
    state = state_machine.get_state(code)
    assert state['session']['status'] == ANSWERING
    assert 'correct_option_index' not in state['current_question']
    assert state['poll_after_ms'] == 1000
    assert 'responses' not in state

    ledger.submit_answer(alice, 1, 3)
    state_machine.force_reveal(code)
    state = state_machine.get_state(code)
    assert state['current_question']['correct_option_index'] == 1
    assert state['responses'] == [
        {'player_id': alice, 'question_index': 1, 'kind': 'answered', 'selected_option': 3, 'is_correct': False}
    ]
    assert state['answer_stats']['all_answered'] is True


def test_player_view(one_question_bank, new_session):
    code, (alice, bob) = new_session('Alice', 'Bob')
    state_machine.start(code)
    view = state_machine.get_player_view(code, bob)
    assert view['can_answer'] is True
    assert view['response'] is None

    ledger.submit_answer(bob, 1, 1)
    view = state_machine.get_player_view(code, bob)
    assert view['can_answer'] is False
    assert view['response']['is_correct'] is True
    assert view['position'] == 1
    assert view['player']['score'] == 100

    with pytest.raises(NotFound):
        state_machine.get_player_view(code, 9999)


def test_reset_during_sweep_discards_timeouts(new_session, monkeypatch):
    code, (alice, bob) = new_session('Alice', 'Bob')
    state_machine.start(code)
    real_read = ledger._players_without_response

    def read_then_reset(session, question_index):
        pending = real_read(session, question_index)
        # A second host resets after the sweep has picked its players
        state_machine.reset(code)
        return pending

    monkeypatch.setattr(ledger, '_players_without_response', read_then_reset)
    session = state_machine.force_reveal(code)

    assert session.status == WAITING
    assert session.current_question_index == 1
    assert Response.query.count() == 0
    monkeypatch.undo()
    # The next game starts clean: nobody is locked out of question 1
    state_machine.start(code)
    assert ledger.submit_answer(alice, 1, 0)['is_correct'] is False
    assert ledger.submit_answer(bob, 1, 0)['is_correct'] is False


def test_reveal_commits_timeouts_with_status(new_session, monkeypatch):
    code, (alice,) = new_session('Alice')
    state_machine.start(code)
    _racing_update(monkeypatch, {'status': REVEALING}, commit=False)

    state_machine.force_reveal(code)

    # The lost compare-and-set rolled back the sentinel along with the racing write
    assert get_session(code).status == ANSWERING
    assert ledger.get_response(alice, 1) is None
