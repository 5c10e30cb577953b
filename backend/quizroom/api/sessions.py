from flask import Blueprint, jsonify, request, current_app
from quizroom import socketio
from quizroom.errors import GameError, InvalidTransition, StoreConflict
from quizroom.services.game import leaderboard, ledger, state_machine, timer
from quizroom.services.game.store import get_player, get_session


sessions = Blueprint('sessions', __name__)


def notify_state_change(room_code: str, player_id=None) -> None:
    """Tell subscribed observers to re-read state; the payload carries no state."""
    code = room_code.upper()
    socketio.emit('state_update', {'room_code': code}, to=f"session:{code}", namespace='/ws')
    if player_id is not None:
        socketio.emit('state_update', {'room_code': code, 'player_id': player_id},
                      to=f"player:{player_id}", namespace='/ws')


@sessions.errorhandler(GameError)
def handle_game_error(exc: GameError):
    if isinstance(exc, (InvalidTransition, StoreConflict)):
        current_app.logger.warning(f"[rejected] {request.method} {request.path} code={exc.code}: {exc.message}")
    else:
        current_app.logger.info(f"[rejected] {request.method} {request.path} code={exc.code}: {exc.message}")
    return jsonify(exc.to_dict()), exc.status_code


@sessions.route('/create', methods=['POST'])
def create_session():
    session = state_machine.create_session()
    return jsonify({
        'message': 'New session created!',
        'room_code': session.room_code,
        'session': session.to_dict(),
    }), 201


@sessions.route('/<string:room_code>/join', methods=['POST'])
def join_session(room_code):
    data = request.get_json(silent=True) or {}
    player = state_machine.join_session(room_code, data.get('name'), data.get('email'))
    notify_state_change(room_code)
    return jsonify(player.to_dict()), 201


@sessions.route('/<string:room_code>/state', methods=['GET'])
def get_state(room_code):
    return jsonify(state_machine.get_state(room_code))


@sessions.route('/<string:room_code>/leaderboard', methods=['GET'])
def get_leaderboard(room_code):
    return jsonify(leaderboard.project(get_session(room_code)))


@sessions.route('/<string:room_code>/stats', methods=['GET'])
def get_answer_stats(room_code):
    return jsonify(ledger.answer_stats(get_session(room_code)))


@sessions.route('/<string:room_code>/players/<int:player_id>', methods=['GET'])
def get_player_view(room_code, player_id):
    return jsonify(state_machine.get_player_view(room_code, player_id))


@sessions.route('/<string:room_code>/start', methods=['POST'])
def start_session(room_code):
    state_machine.start(room_code)
    notify_state_change(room_code)
    return jsonify(state_machine.get_state(room_code))


@sessions.route('/<string:room_code>/advance', methods=['POST'])
def advance_session(room_code):
    has_next = state_machine.advance(room_code)
    notify_state_change(room_code)
    return jsonify({'has_next': has_next, 'state': state_machine.get_state(room_code)})


@sessions.route('/<string:room_code>/force-reveal', methods=['POST'])
def force_reveal(room_code):
    state_machine.force_reveal(room_code)
    notify_state_change(room_code)
    return jsonify(state_machine.get_state(room_code))


@sessions.route('/<string:room_code>/fast-forward', methods=['POST'])
def fast_forward(room_code):
    data = request.get_json(silent=True) or {}
    remaining = data.get('remaining_seconds', current_app.config.get('FAST_FORWARD_REMAINING_SEC', 5))
    timer.fast_forward(room_code, remaining)
    notify_state_change(room_code)
    return jsonify(state_machine.get_state(room_code))


@sessions.route('/<string:room_code>/reset', methods=['POST'])
def reset_session(room_code):
    state_machine.reset(room_code)
    notify_state_change(room_code)
    return jsonify(state_machine.get_state(room_code))


@sessions.route('/<string:room_code>/answers', methods=['POST'])
def submit_answer(room_code):
    data = request.get_json(silent=True) or {}
    session = get_session(room_code)
    player = get_player(data.get('player_id'), session)
    player_id = player.id
    result = ledger.submit_answer(player_id, data.get('question_index'), data.get('selected_option'))

    # Shorten the round once the last player is in
    if current_app.config.get('AUTO_FAST_FORWARD', True):
        session = get_session(room_code)
        stats = ledger.answer_stats(session)
        if stats['all_answered']:
            try:
                timer.fast_forward(room_code, current_app.config.get('FAST_FORWARD_REMAINING_SEC', 5))
            except InvalidTransition as exc:
                # Round already closed by the host in the meantime
                current_app.logger.info(f"[fast-forward-skip] session={room_code}: {exc.message}")

    notify_state_change(room_code, player_id)
    return jsonify(result), 201
