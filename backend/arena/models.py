from flask_login import UserMixin
from arena import db
from datetime import datetime, timezone
from decimal import Decimal
import json
import uuid


MATCH_WAITING = 'waiting'
MATCH_IN_PROGRESS = 'in_progress'
MATCH_FINISHED = 'finished'

TX_DEPOSIT = 'deposit'
TX_WITHDRAW = 'withdraw'
TX_STAKE_WIN = 'stake_win'
TX_STAKE_LOSS = 'stake_loss'

MONEY = db.Numeric(18, 8, asdecimal=True)


def _uuid():
    return str(uuid.uuid4())

def _now():
    return datetime.now(timezone.utc)

def _money(value):
    """Render a Decimal as a plain string with two decimals, the way clients show it."""
    if value is None:
        return None
    return str(Decimal(value).quantize(Decimal('0.01')))

def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    nickname = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(120), nullable=True)
    auth_provider = db.Column(db.String(16), nullable=False, default='guest')  # guest, session, registered
    balance = db.Column(MONEY, nullable=False, default=Decimal('0'))
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    stats = db.relationship('UserStats', back_populates='user', uselist=False)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'nickname': self.nickname,
            'email': self.email,
            'auth_provider': self.auth_provider,
            'balance': _money(self.balance),
            'created_at': _iso(self.created_at),
        }


class UserStats(db.Model):
    __tablename__ = 'user_stats'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), unique=True, nullable=False)
    total_games = db.Column(db.Integer, nullable=False, default=0)
    total_wins = db.Column(db.Integer, nullable=False, default=0)
    total_losses = db.Column(db.Integer, nullable=False, default=0)
    total_earned = db.Column(MONEY, nullable=False, default=Decimal('0'))
    games_played = db.Column(db.Text, nullable=False, default='{}')  # JSON: game_type -> count
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)
    user = db.relationship('User', back_populates='stats')

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'total_games': self.total_games,
            'total_wins': self.total_wins,
            'total_losses': self.total_losses,
            'total_earned': _money(self.total_earned),
            'games_played': json.loads(self.games_played or '{}'),
            'updated_at': _iso(self.updated_at),
        }


class GameMatch(db.Model):
    __tablename__ = 'game_matches'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    game_type = db.Column(db.String(16), nullable=False, index=True)  # rps, tictactoe, sticks, hangman
    stake = db.Column(MONEY, nullable=False)
    player1_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    player2_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    winner_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    state = db.Column(db.String(16), nullable=False, default=MATCH_WAITING, index=True)
    setup = db.Column(db.Text, nullable=True)  # JSON: engine metadata fixed at pairing
    game_data = db.Column(db.Text, nullable=True)  # JSON: latest state snapshot
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    finished_at = db.Column(db.DateTime(timezone=True), nullable=True)
    moves = db.relationship('GameMove', back_populates='match', lazy='dynamic',
                            order_by='GameMove.move_number')

    __table_args__ = (
        db.CheckConstraint('player2_id IS NULL OR player2_id != player1_id', name='ck_match_distinct_players'),
    )

    @property
    def participants(self):
        return [pid for pid in (self.player1_id, self.player2_id) if pid]

    def opponent_of(self, player_id):
        if player_id == self.player1_id:
            return self.player2_id
        if player_id == self.player2_id:
            return self.player1_id
        return None

    def setup_dict(self):
        return json.loads(self.setup) if self.setup else {}

    def state_dict(self):
        return json.loads(self.game_data) if self.game_data else None

    def to_dict(self, game_state=None):
        return {
            'id': self.id,
            'game_type': self.game_type,
            'stake': _money(self.stake),
            'player1_id': self.player1_id,
            'player2_id': self.player2_id,
            'winner_id': self.winner_id,
            'state': self.state,
            'game_state': game_state,
            'created_at': _iso(self.created_at),
            'started_at': _iso(self.started_at),
            'finished_at': _iso(self.finished_at),
        }


class GameMove(db.Model):
    __tablename__ = 'game_moves'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    match_id = db.Column(db.String(36), db.ForeignKey('game_matches.id'), nullable=False, index=True)
    player_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    move_number = db.Column(db.Integer, nullable=False)
    move_data = db.Column(db.Text, nullable=False)  # JSON payload, shape depends on game_type
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    match = db.relationship('GameMatch', back_populates='moves')

    __table_args__ = (
        db.UniqueConstraint('match_id', 'move_number', name='uq_move_match_number'),
    )

    @property
    def payload(self):
        return json.loads(self.move_data)

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'player_id': self.player_id,
            'move_number': self.move_number,
            'move': self.payload,
            'created_at': _iso(self.created_at),
        }


class Transaction(db.Model):
    __tablename__ = 'transactions'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    match_id = db.Column(db.String(36), db.ForeignKey('game_matches.id'), nullable=True)
    type = db.Column(db.String(16), nullable=False)  # deposit, withdraw, stake_win, stake_loss
    amount = db.Column(MONEY, nullable=False)  # signed: credits positive, debits negative
    status = db.Column(db.String(16), nullable=False, default='completed')
    description = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'match_id': self.match_id,
            'type': self.type,
            'amount': _money(self.amount),
            'status': self.status,
            'description': self.description,
            'created_at': _iso(self.created_at),
        }
