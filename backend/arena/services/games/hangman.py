from .base import RuleEngine, Outcome
import string

WORDS = ('BLOCKCHAIN', 'CRYPTOCURRENCY', 'GAMING', 'RETRO', 'ARCADE')
MAX_WRONG = 6


def _letter(payload):
    value = payload.get('letter') if isinstance(payload, dict) else None
    if not isinstance(value, str) or len(value) != 1:
        return None
    value = value.upper()
    return value if value in string.ascii_uppercase else None


def mask(word, guessed):
    return ''.join(ch if ch in guessed else '_' for ch in word)


class Hangman(RuleEngine):
    """Alternating letter guesses against one secret word.

    Each side owns its wrong-guess counter. A repeated letter costs the turn
    but nothing else.
    """

    game_type = 'hangman'

    def initial_setup(self, rng):
        return {'word': rng.choice(WORDS)}

    def compute_state(self, meta, moves):
        word = meta.setup['word']
        guessed = []
        wrong = {meta.player1_id: 0, meta.player2_id: 0}
        ignored = []
        winner = None
        terminal = False

        for move in moves:
            letter = _letter(move.payload)
            if terminal or letter is None or move.player_id not in wrong:
                ignored.append(move.move_number)
                continue
            if letter in guessed:
                continue
            guessed.append(letter)
            if letter not in word:
                wrong[move.player_id] += 1
                if wrong[move.player_id] >= MAX_WRONG:
                    terminal, winner = True, meta.other(move.player_id)
            elif all(ch in guessed for ch in word):
                terminal, winner = True, move.player_id

        state = {
            'word': word,
            'masked_word': mask(word, guessed),
            'guessed_letters': guessed,
            'wrong_guesses': wrong,
            'max_wrong': MAX_WRONG,
            'current_player': None if terminal else self.expected_mover(meta, len(moves)),
        }
        return Outcome(state=state, is_terminal=terminal, winner_id=winner, ignored=ignored)

    def public_state(self, state, is_terminal):
        if is_terminal:
            return state
        hidden = dict(state)
        hidden.pop('word', None)
        return hidden
