"""Game rule engines.

Every engine is a pure reducer: given the match participants, the setup
fixed at pairing time and the ordered move log, it rebuilds the whole game
state from scratch. Nothing here touches the database or the sockets.
"""

from .base import MatchMeta, MoveRecord, Outcome, RuleEngine, serialize_state
from .rps import RockPaperScissors
from .tictactoe import TicTacToe
from .sticks import Sticks
from .hangman import Hangman

ENGINES = {
    engine.game_type: engine
    for engine in (RockPaperScissors(), TicTacToe(), Sticks(), Hangman())
}

GAME_TYPES = tuple(ENGINES)


def get_engine(game_type: str) -> RuleEngine:
    try:
        return ENGINES[game_type]
    except KeyError:
        raise ValueError(f"Unknown game type: {game_type!r}") from None


def meta_for(match) -> MatchMeta:
    return MatchMeta(
        player1_id=match.player1_id,
        player2_id=match.player2_id,
        setup=match.setup_dict(),
    )


def records_for(moves) -> list:
    return [MoveRecord(m.move_number, m.player_id, m.payload) for m in moves]


__all__ = [
    'ENGINES', 'GAME_TYPES', 'get_engine', 'meta_for', 'records_for',
    'MatchMeta', 'MoveRecord', 'Outcome', 'RuleEngine', 'serialize_state',
]
