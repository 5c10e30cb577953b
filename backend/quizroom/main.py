from flask import Blueprint, jsonify
from quizroom.question_bank import QUESTION_SETS

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({
        'message': 'Welcome to the Quizroom game server!',
        'question_sets': [qs.name for qs in QUESTION_SETS],
    })
