from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from arena import get_arena
from arena.models import MATCH_IN_PROGRESS
from arena.services.errors import ArenaError
from arena.services.games import get_engine

matches = Blueprint('matches', __name__)


@matches.errorhandler(ArenaError)
def handle_arena_error(exc):
    return jsonify({'error': str(exc)}), 400


def _match_or_404(match_id):
    match = get_arena().repo.get_match(match_id)
    if match is None:
        return None, (jsonify({'error': 'Match not found'}), 404)
    return match, None


@matches.route('', methods=['POST'])
@login_required
def find_or_create_match():
    """Join the first waiting match for (gameType, stake), or open a new one."""
    data = request.get_json(silent=True) or {}
    game_type = data.get('gameType')
    stake = data.get('stake')
    if not all([game_type, stake]):
        return jsonify({'error': 'gameType and stake are required'}), 400

    arena = get_arena()
    match, paired = arena.matchmake(game_type, stake, current_user.id)
    return jsonify(arena.public_match(match)), 200 if paired else 201


@matches.route('/<string:match_id>', methods=['GET'])
def get_match(match_id):
    match, missing = _match_or_404(match_id)
    if missing:
        return missing
    return jsonify(get_arena().public_match(match))


@matches.route('/<string:match_id>/moves', methods=['GET'])
def get_moves(match_id):
    match, missing = _match_or_404(match_id)
    if missing:
        return missing
    moves = [m.to_dict() for m in get_arena().repo.get_match_moves(match.id)]
    if match.state == MATCH_IN_PROGRESS and not get_engine(match.game_type).alternating:
        # Simultaneous hands stay sealed until the reveal
        for move in moves:
            move.pop('move', None)
    return jsonify(moves)


@matches.route('/<string:match_id>/moves', methods=['POST'])
@login_required
def submit_move(match_id):
    data = request.get_json(silent=True) or {}
    move = data.get('move')
    if move is None:
        return jsonify({'error': 'move is required'}), 400
    match, missing = _match_or_404(match_id)
    if missing:
        return missing
    result = get_arena().submit_move(match.id, current_user.id, move)
    return jsonify(result.to_dict())
