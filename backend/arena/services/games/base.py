from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import json


@dataclass(frozen=True)
class MatchMeta:
    """What an engine may know about a match besides its moves."""
    player1_id: str
    player2_id: str
    setup: Dict[str, Any] = field(default_factory=dict)

    @property
    def first_mover(self) -> str:
        # The joiner opens every game
        return self.player2_id

    @property
    def second_mover(self) -> str:
        return self.player1_id

    def other(self, player_id: str) -> str:
        return self.player1_id if player_id == self.player2_id else self.player2_id


@dataclass(frozen=True)
class MoveRecord:
    move_number: int
    player_id: str
    payload: Dict[str, Any]


@dataclass
class Outcome:
    state: Dict[str, Any]
    is_terminal: bool = False
    winner_id: Optional[str] = None
    ignored: List[int] = field(default_factory=list)

    def serialized(self) -> str:
        return serialize_state(self.state)


def serialize_state(state) -> str:
    return json.dumps(state, sort_keys=True, separators=(',', ':'))


class RuleEngine:
    """Pure reducer from (meta, ordered moves) to an Outcome.

    Subclasses set ``game_type`` and ``alternating`` and implement
    ``compute_state``. Illegal payloads are never raised on; their move
    number goes into ``Outcome.ignored`` and they change nothing.
    """

    game_type = ''
    alternating = True

    def initial_setup(self, rng) -> Dict[str, Any]:
        return {}

    def initial_state(self, meta: MatchMeta) -> Outcome:
        return self.compute_state(meta, [])

    def compute_state(self, meta: MatchMeta, moves: List[MoveRecord]) -> Outcome:
        raise NotImplementedError

    def expected_mover(self, meta: MatchMeta, move_count: int) -> Optional[str]:
        if not self.alternating:
            return None
        return meta.first_mover if move_count % 2 == 0 else meta.second_mover

    def finalized_players(self, moves: List[MoveRecord]) -> set:
        """Players whose contribution can no longer change (simultaneous games only)."""
        return set()

    def public_state(self, state: Dict[str, Any], is_terminal: bool) -> Dict[str, Any]:
        return state
