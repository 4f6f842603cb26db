"""Adjudication: the single path every move of a match goes through.

One cycle, under that match's lock:
fetch -> validate turn -> dry-run legality -> append -> recompute from the
whole log -> persist -> (finish + settle) -> commit -> notify.

Nothing is sent until the commit succeeded; any failure rolls the whole
cycle back and is only logged.
"""

from dataclasses import dataclass
from threading import Lock
from weakref import WeakValueDictionary
from typing import List, Optional

from flask import current_app

from arena.models import MATCH_IN_PROGRESS
from arena.services.games import (
    get_engine, meta_for, records_for, MoveRecord, serialize_state,
)
from arena.services.validator import validate


class MatchLocks:
    """One mutex per match id; different matches never wait on each other.

    Entries are weak: a lock lives only while some thread holds or waits on
    it, so ids that never turn into a running match leave nothing behind.
    """

    def __init__(self):
        self._guard = Lock()
        self._locks: "WeakValueDictionary[str, Lock]" = WeakValueDictionary()

    def for_match(self, match_id: str) -> Lock:
        with self._guard:
            lock = self._locks.get(match_id)
            if lock is None:
                lock = self._locks[match_id] = Lock()
            return lock

    def __len__(self):
        with self._guard:
            return len(self._locks)


@dataclass
class MoveResult:
    accepted: bool
    reason: Optional[str] = None
    move_number: Optional[int] = None
    finished: bool = False
    winner_id: Optional[str] = None

    def to_dict(self):
        return {
            'accepted': self.accepted,
            'reason': self.reason,
            'moveNumber': self.move_number,
            'finished': self.finished,
            'winnerId': self.winner_id,
        }


@dataclass
class Notice:
    player_id: str
    event: str
    payload: dict


def result_for(player_id, winner_id) -> str:
    if winner_id is None:
        return 'draw'
    return 'win' if winner_id == player_id else 'lose'


class Adjudicator:
    def __init__(self, repo, registry, settlement, presence, locks=None):
        self.repo = repo
        self.registry = registry
        self.settlement = settlement
        self.presence = presence
        self.locks = locks if locks is not None else MatchLocks()

    # ---- Matchmaking ----
    def matchmake(self, game_type, stake, player_id):
        """Find-or-create for ``player_id``; announces the pairing when one happens."""
        match, paired = self.registry.find_or_create(game_type, stake, player_id)
        self.presence.join_match(player_id, match.id)
        if paired:
            self.announce_pairing(match)
        return match, paired

    def announce_pairing(self, match) -> int:
        engine = get_engine(match.game_type)
        payload = {
            'type': 'match_found',
            'matchId': match.id,
            'gameType': match.game_type,
            'stake': match.to_dict()['stake'],
            'players': [match.player1_id, match.player2_id],
            'gameState': engine.public_state(match.state_dict(), False),
        }
        return self.presence.broadcast_to_match(match, 'match_found', payload)

    def public_match(self, match):
        state = match.state_dict()
        if state is not None:
            state = get_engine(match.game_type).public_state(state, match.state != MATCH_IN_PROGRESS)
        return match.to_dict(game_state=state)

    # ---- Moves ----
    def submit_move(self, match_id, author_id, payload) -> MoveResult:
        with self.locks.for_match(match_id):
            try:
                result, notices = self._adjudicate(match_id, author_id, payload)
            except Exception:
                self.repo.rollback()
                current_app.logger.exception(f"[move-error] match={match_id} player={author_id}")
                return MoveResult(False, 'internal_error')
            self._deliver(match_id, notices)
        return result

    def _adjudicate(self, match_id, author_id, payload):
        match = self.repo.get_match(match_id)
        if match is None or match.state != MATCH_IN_PROGRESS:
            reason = 'match_not_found' if match is None else 'match_not_in_progress'
            current_app.logger.info(f"[move-reject] match={match_id} player={author_id} reason={reason}")
            return MoveResult(False, reason), []

        engine = get_engine(match.game_type)
        meta = meta_for(match)
        history = records_for(self.repo.get_match_moves(match.id))

        verdict = validate(match, history, author_id, engine)
        if not verdict:
            current_app.logger.info(f"[move-reject] match={match_id} player={author_id} reason={verdict.reason}")
            return MoveResult(False, verdict.reason), []

        move_number = len(history) + 1
        candidate = MoveRecord(move_number, author_id, payload)
        if move_number in engine.compute_state(meta, history + [candidate]).ignored:
            current_app.logger.info(
                f"[move-reject] match={match_id} player={author_id} reason=illegal_move payload={payload!r}"
            )
            return MoveResult(False, 'illegal_move'), []

        self.repo.create_move(match.id, author_id, payload, move_number)
        log = records_for(self.repo.get_match_moves(match.id))
        outcome = engine.compute_state(meta, log)
        snapshot = outcome.serialized()
        self.repo.save_match_state(match, snapshot)

        notices = self._update_notices(match, engine, outcome, log)
        if outcome.is_terminal:
            if not self.registry.finish(match, outcome.winner_id, snapshot):
                raise RuntimeError(f"Match {match.id} left in_progress under our lock")
            self.settlement.settle(match, outcome.winner_id)
            notices += self._result_notices(match, engine, outcome.state, outcome.winner_id)

        self.repo.commit()
        current_app.logger.info(
            f"[move-accepted] match={match_id} player={author_id} move={move_number} terminal={outcome.is_terminal}"
        )
        if outcome.is_terminal:
            current_app.logger.info(f"[settle] match={match_id} winner={outcome.winner_id}")
        return MoveResult(True, None, move_number, outcome.is_terminal, outcome.winner_id), notices

    # ---- Leaving ----
    def forfeit(self, match_id, leaver_id) -> bool:
        """Finish an in-progress match in the opponent's favour and settle it."""
        with self.locks.for_match(match_id):
            try:
                match = self.repo.get_match(match_id)
                if match is None or match.state != MATCH_IN_PROGRESS or leaver_id not in match.participants:
                    return False
                engine = get_engine(match.game_type)
                winner_id = match.opponent_of(leaver_id)
                state = dict(match.state_dict() or {}, forfeited_by=leaver_id, current_player=None)
                if not self.registry.finish(match, winner_id, serialize_state(state)):
                    return False
                self.settlement.settle(match, winner_id)
                notices = self._result_notices(match, engine, state, winner_id)
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                current_app.logger.exception(f"[forfeit-error] match={match_id} player={leaver_id}")
                return False
            current_app.logger.info(f"[forfeit] match={match_id} leaver={leaver_id} winner={winner_id}")
            self._deliver(match_id, notices)
        return True

    def handle_disconnect(self, connection_id, forfeit=True):
        """Drop the connection; close what the player left behind."""
        gone = self.presence.disconnect(connection_id)
        if not gone:
            return None
        player_id = gone['player_id']
        self.registry.abandon_waiting(player_id)
        forfeited = []
        if forfeit:
            for match in self.repo.get_active_matches_for(player_id):
                if self.forfeit(match.id, player_id):
                    forfeited.append(match.id)
        return {'player_id': player_id, 'forfeited': forfeited}

    # ---- Notifications ----
    def _update_notices(self, match, engine, outcome, log) -> List[Notice]:
        game_state = engine.public_state(outcome.state, outcome.is_terminal)
        current = outcome.state.get('current_player')
        finalized = engine.finalized_players(log)
        notices = []
        for player_id in match.participants:
            if outcome.is_terminal:
                your_turn = False
            elif engine.alternating:
                your_turn = current == player_id
            else:
                your_turn = player_id not in finalized
            notices.append(Notice(player_id, 'game_update', {
                'type': 'game_update',
                'matchId': match.id,
                'gameState': game_state,
                'currentPlayer': current,
                'moveNumber': len(log),
                'isYourTurn': your_turn,
            }))
        return notices

    def _result_notices(self, match, engine, state, winner_id) -> List[Notice]:
        game_state = engine.public_state(state, True)
        return [
            Notice(player_id, 'game_result', {
                'type': 'game_result',
                'matchId': match.id,
                'result': result_for(player_id, winner_id),
                'gameState': game_state,
                'winnerId': winner_id,
            })
            for player_id in match.participants
        ]

    def _deliver(self, match_id, notices) -> None:
        for notice in notices:
            if self.presence.current_match(notice.player_id) != match_id:
                continue
            self.presence.send_to_player(notice.player_id, notice.event, notice.payload)
