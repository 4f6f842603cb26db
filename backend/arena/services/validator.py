from dataclasses import dataclass
from typing import Optional

from arena.models import MATCH_IN_PROGRESS


@dataclass(frozen=True)
class Verdict:
    accepted: bool
    reason: Optional[str] = None

    def __bool__(self):
        return self.accepted


ACCEPT = Verdict(True)


def reject(reason: str) -> Verdict:
    return Verdict(False, reason)


def validate(match, history, author_id, engine) -> Verdict:
    """Turn-order gate run before a move is appended.

    Only who may move is decided here; whether the payload itself is legal
    is the rule engine's business.
    """
    if match is None:
        return reject('match_not_found')
    if match.state != MATCH_IN_PROGRESS:
        return reject('match_not_in_progress')
    if author_id not in (match.player1_id, match.player2_id):
        return reject('not_a_participant')

    if engine.alternating:
        expected = match.player2_id if len(history) % 2 == 0 else match.player1_id
        if author_id != expected:
            return reject('not_your_turn')
        return ACCEPT

    finalized = engine.finalized_players(history)
    if {match.player1_id, match.player2_id} <= finalized:
        return reject('both_moves_final')
    return ACCEPT
