"""SQLAlchemy-backed storage collaborator.

The engine never touches ``db.session`` directly for reads and writes of
domain rows; it goes through a ``Repository`` it was handed at construction.
Methods only ``add``/``flush``; committing is left to the caller so that a
whole adjudication cycle lands in one transaction.
"""

from decimal import Decimal
import json
import random
import time
import uuid

from sqlalchemy import and_

from arena import db
from arena.models import (
    User, UserStats, GameMatch, GameMove, Transaction,
    MATCH_WAITING, MATCH_IN_PROGRESS, MATCH_FINISHED, _now,
)


GUEST_USERNAME = 'guest'


class Repository:
    def __init__(self, starting_balance=None):
        self.starting_balance = Decimal(starting_balance if starting_balance is not None else '1337.50')

    # ---- Unit of work ----
    def commit(self) -> None:
        db.session.commit()

    def rollback(self) -> None:
        db.session.rollback()

    # ---- Players ----
    def get_user(self, user_id):
        if not user_id:
            return None
        return db.session.get(User, user_id)

    def get_user_by_username(self, username):
        return User.query.filter_by(username=username).first()

    def create_user(self, username, nickname, email=None, auth_provider='guest'):
        user = User(
            username=username,
            nickname=nickname,
            email=email,
            auth_provider=auth_provider,
            balance=self.starting_balance,
        )
        db.session.add(user)
        db.session.flush()
        # Every player has exactly one stats row from birth
        db.session.add(UserStats(user_id=user.id))
        db.session.flush()
        return user

    def create_session_user(self):
        """Mint a throwaway identity for a fresh connection."""
        session_id = f"player_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
        return self.create_user(
            username=session_id,
            nickname=f"Player{random.randint(0, 9999)}",
            email=f"{session_id}@arena.local",
            auth_provider='session',
        )

    def get_or_create_guest(self):
        guest = self.get_user_by_username(GUEST_USERNAME)
        if guest:
            return guest
        return self.create_user(
            username=GUEST_USERNAME,
            nickname='Retro-Player',
            email='guest@arena.local',
            auth_provider='guest',
        )

    def set_balance(self, user, balance) -> None:
        user.balance = Decimal(balance)
        db.session.add(user)

    def adjust_balance(self, user_id, delta, minimum=None) -> bool:
        """Atomic ``balance += delta`` in SQL.

        With ``minimum`` set, the update only applies while the new balance
        stays at or above it. Returns False when no row was changed.
        """
        query = User.query.filter(User.id == user_id)
        if minimum is not None:
            query = query.filter(User.balance + Decimal(delta) >= Decimal(minimum))
        updated = query.update(
            {User.balance: User.balance + Decimal(delta)},
            synchronize_session=False,
        )
        return updated == 1

    def get_stats(self, user_id, for_update=False):
        query = UserStats.query.filter_by(user_id=user_id)
        if for_update:
            query = query.populate_existing().with_for_update()
        return query.first()

    def save_stats(self, stats) -> None:
        db.session.add(stats)

    # ---- Matches ----
    def create_match(self, game_type, stake, player1_id):
        match = GameMatch(
            game_type=game_type,
            stake=Decimal(stake),
            player1_id=player1_id,
            player2_id=None,
            state=MATCH_WAITING,
        )
        db.session.add(match)
        db.session.flush()
        return match

    def get_match(self, match_id):
        if not match_id:
            return None
        return db.session.get(GameMatch, match_id)

    def get_waiting_matches(self, game_type, stake):
        return (
            GameMatch.query
            .filter(
                GameMatch.game_type == game_type,
                GameMatch.stake == Decimal(stake),
                GameMatch.state == MATCH_WAITING,
                GameMatch.player2_id.is_(None),
            )
            .order_by(GameMatch.created_at)
            .all()
        )

    def get_waiting_matches_created_by(self, player_id):
        return GameMatch.query.filter_by(player1_id=player_id, state=MATCH_WAITING).all()

    def get_active_matches_for(self, player_id):
        return (
            GameMatch.query
            .filter(
                GameMatch.state == MATCH_IN_PROGRESS,
                (GameMatch.player1_id == player_id) | (GameMatch.player2_id == player_id),
            )
            .all()
        )

    def committed_stake(self, player_id) -> Decimal:
        """Sum of stakes the player has riding on waiting or running matches."""
        total = (
            db.session.query(db.func.coalesce(db.func.sum(GameMatch.stake), 0))
            .filter(
                GameMatch.state.in_([MATCH_WAITING, MATCH_IN_PROGRESS]),
                (GameMatch.player1_id == player_id) | (GameMatch.player2_id == player_id),
            )
            .scalar()
        )
        return Decimal(str(total or 0))

    def claim_waiting_match(self, match_id, joiner_id, setup, game_data) -> bool:
        """Compare-and-set waiting -> in_progress. True only for the one caller that wins."""
        updated = (
            GameMatch.query
            .filter(and_(
                GameMatch.id == match_id,
                GameMatch.state == MATCH_WAITING,
                GameMatch.player2_id.is_(None),
                GameMatch.player1_id != joiner_id,
            ))
            .update({
                GameMatch.player2_id: joiner_id,
                GameMatch.state: MATCH_IN_PROGRESS,
                GameMatch.setup: json.dumps(setup, sort_keys=True),
                GameMatch.game_data: game_data,
                GameMatch.started_at: _now(),
            }, synchronize_session=False)
        )
        return updated == 1

    def close_match(self, match_id, from_state, winner_id, game_data) -> bool:
        """Compare-and-set from_state -> finished."""
        updated = (
            GameMatch.query
            .filter(GameMatch.id == match_id, GameMatch.state == from_state)
            .update({
                GameMatch.state: MATCH_FINISHED,
                GameMatch.winner_id: winner_id,
                GameMatch.game_data: game_data,
                GameMatch.finished_at: _now(),
            }, synchronize_session=False)
        )
        return updated == 1

    def save_match_state(self, match, game_data) -> None:
        match.game_data = game_data
        db.session.add(match)

    def refresh(self, obj) -> None:
        db.session.refresh(obj)

    # ---- Moves ----
    def get_match_moves(self, match_id):
        return (
            GameMove.query
            .filter_by(match_id=match_id)
            .order_by(GameMove.move_number)
            .all()
        )

    def create_move(self, match_id, player_id, payload, move_number):
        move = GameMove(
            match_id=match_id,
            player_id=player_id,
            move_data=json.dumps(payload, sort_keys=True),
            move_number=move_number,
        )
        db.session.add(move)
        db.session.flush()
        return move

    # ---- Ledger ----
    def create_transaction(self, user_id, tx_type, amount, description=None, match_id=None):
        tx = Transaction(
            user_id=user_id,
            type=tx_type,
            amount=Decimal(amount),
            description=description,
            match_id=match_id,
        )
        db.session.add(tx)
        db.session.flush()
        return tx

    def get_user_transactions(self, user_id):
        return (
            Transaction.query
            .filter_by(user_id=user_id)
            .order_by(Transaction.created_at.desc())
            .all()
        )

    def get_match_transactions(self, match_id):
        return Transaction.query.filter_by(match_id=match_id).all()
