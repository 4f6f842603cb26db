from .base import RuleEngine, Outcome

BEATS = {
    'rock': 'scissors',
    'paper': 'rock',
    'scissors': 'paper',
}


def _choice(payload):
    value = payload.get('move') if isinstance(payload, dict) else None
    if isinstance(value, str) and value.lower() in BEATS:
        return value.lower()
    return None


class RockPaperScissors(RuleEngine):
    """Simultaneous choice. Each side's latest valid hand is the one that counts."""

    game_type = 'rps'
    alternating = False

    def finalized_players(self, moves):
        return {m.player_id for m in moves if _choice(m.payload) is not None}

    def compute_state(self, meta, moves):
        choices = {meta.player1_id: None, meta.player2_id: None}
        ignored = []
        for move in moves:
            hand = _choice(move.payload)
            if hand is None or move.player_id not in choices:
                ignored.append(move.move_number)
                continue
            choices[move.player_id] = hand

        a, b = choices[meta.player1_id], choices[meta.player2_id]
        if a is None or b is None:
            state = {'choices': choices, 'result': None, 'current_player': None}
            return Outcome(state=state, ignored=ignored)

        if a == b:
            winner, result = None, 'draw'
        elif BEATS[a] == b:
            winner, result = meta.player1_id, 'decided'
        else:
            winner, result = meta.player2_id, 'decided'
        state = {'choices': choices, 'result': result, 'current_player': None}
        return Outcome(state=state, is_terminal=True, winner_id=winner, ignored=ignored)

    def public_state(self, state, is_terminal):
        if is_terminal:
            return state
        # Never reveal a committed hand before both are in
        choices = state.get('choices', {})
        return {
            'committed': sorted(pid for pid, hand in choices.items() if hand),
            'result': None,
            'current_player': None,
        }
