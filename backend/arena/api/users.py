from flask import Blueprint, jsonify, request, current_app
from flask_login import login_user, logout_user, login_required, current_user
from decimal import Decimal, InvalidOperation
from arena import get_arena
from arena.models import TX_DEPOSIT, TX_WITHDRAW
from arena.services.errors import ArenaError, InvalidTransaction
import uuid

users = Blueprint('users', __name__)


@users.errorhandler(ArenaError)
def handle_arena_error(exc):
    return jsonify({'error': str(exc)}), 400


def _user_or_404(user_id):
    user = get_arena().repo.get_user(user_id)
    if user is None:
        return None, (jsonify({'error': 'User not found'}), 404)
    return user, None


@users.route('/users', methods=['POST'])
def register_user():
    data = request.get_json(silent=True) or {}
    repo = get_arena().repo
    username = (data.get('username') or '').strip() or f"player_{uuid.uuid4().hex[:12]}"
    nickname = (data.get('nickname') or '').strip() or username
    if repo.get_user_by_username(username):
        return jsonify({'error': 'Username already exists'}), 400
    user = repo.create_user(username=username, nickname=nickname,
                            email=data.get('email'), auth_provider='registered')
    repo.commit()
    login_user(user)
    return jsonify(user.to_dict()), 201


@users.route('/session', methods=['POST'])
def open_session():
    """Mint a throwaway identity for this browser, or return the one it already has."""
    if current_user.is_authenticated:
        return jsonify({'user': current_user.to_dict()})
    repo = get_arena().repo
    user = repo.create_session_user()
    repo.commit()
    login_user(user)
    current_app.logger.info(f"[session] player={user.id}")
    return jsonify({'user': user.to_dict()}), 201


@users.route('/session', methods=['DELETE'])
@login_required
def close_session():
    logout_user()
    return jsonify({'success': True})


@users.route('/users', methods=['GET'])
@users.route('/users/<string:user_id>', methods=['GET'])
def get_user(user_id=None):
    repo = get_arena().repo
    if user_id is None:
        user = repo.get_or_create_guest()
        repo.commit()
    else:
        user, missing = _user_or_404(user_id)
        if missing:
            return missing
    stats = repo.get_stats(user.id)
    return jsonify({'user': user.to_dict(), 'stats': stats.to_dict() if stats else None})


@users.route('/users/<string:user_id>/transactions', methods=['GET'])
@login_required
def get_transactions(user_id):
    if user_id != current_user.id:
        return jsonify({'error': 'You can only view your own transactions'}), 403
    return jsonify([tx.to_dict() for tx in get_arena().repo.get_user_transactions(current_user.id)])


@users.route('/transactions', methods=['POST'])
@login_required
def create_transaction():
    """Mock deposit / withdraw against the logged-in player's balance."""
    data = request.get_json(silent=True) or {}
    repo = get_arena().repo
    user = current_user._get_current_object()

    tx_type = data.get('type')
    if tx_type not in (TX_DEPOSIT, TX_WITHDRAW):
        raise InvalidTransaction(f"type must be '{TX_DEPOSIT}' or '{TX_WITHDRAW}'")
    try:
        amount = Decimal(str(data.get('amount')))
    except (InvalidOperation, ValueError):
        raise InvalidTransaction('amount must be a number') from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidTransaction('amount must be positive')

    signed = amount if tx_type == TX_DEPOSIT else -amount
    # Stakes riding on open matches cannot be withdrawn
    floor = repo.committed_stake(user.id) if tx_type == TX_WITHDRAW else None
    if not repo.adjust_balance(user.id, signed, minimum=floor):
        raise InvalidTransaction('Insufficient balance')
    tx = repo.create_transaction(user.id, tx_type, signed,
                                 description=data.get('description') or tx_type.capitalize())
    repo.commit()
    current_app.logger.info(f"[{tx_type}] player={user.id} amount={amount}")
    return jsonify({'transaction': tx.to_dict(), 'user': user.to_dict()}), 201
