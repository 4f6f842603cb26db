from .base import RuleEngine, Outcome

STARTING_STICKS = 21
MAX_TAKE = 3


def _take(payload):
    value = payload.get('take') if isinstance(payload, dict) else None
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if 1 <= value <= MAX_TAKE else None


class Sticks(RuleEngine):
    """Shared pile of 21. Whoever takes the last stick loses."""

    game_type = 'sticks'

    def compute_state(self, meta, moves):
        sticks = STARTING_STICKS
        ignored = []
        loser = None

        for move in moves:
            take = _take(move.payload)
            if loser or take is None or take > sticks:
                ignored.append(move.move_number)
                continue
            sticks -= take
            if sticks == 0:
                loser = move.player_id

        terminal = loser is not None
        state = {
            'sticks': sticks,
            'current_player': None if terminal else self.expected_mover(meta, len(moves)),
        }
        return Outcome(
            state=state,
            is_terminal=terminal,
            winner_id=meta.other(loser) if terminal else None,
            ignored=ignored,
        )
