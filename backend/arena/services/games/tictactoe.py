from .base import RuleEngine, Outcome

LINES = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),  # rows
    (0, 3, 6), (1, 4, 7), (2, 5, 8),  # columns
    (0, 4, 8), (2, 4, 6),             # diagonals
)


def winning_mark(board):
    for a, b, c in LINES:
        if board[a] and board[a] == board[b] == board[c]:
            return board[a]
    return None


def _position(payload):
    value = payload.get('position') if isinstance(payload, dict) else None
    # bool is an int subclass; True is not a cell
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if 0 <= value <= 8 else None


class TicTacToe(RuleEngine):
    game_type = 'tictactoe'

    def compute_state(self, meta, moves):
        marks = {meta.first_mover: 'X', meta.second_mover: 'O'}
        owners = {'X': meta.first_mover, 'O': meta.second_mover}
        board = [None] * 9
        ignored = []
        winner = None

        for move in moves:
            cell = _position(move.payload)
            mark = marks.get(move.player_id)
            if winner or cell is None or mark is None or board[cell] is not None:
                ignored.append(move.move_number)
                continue
            board[cell] = mark
            winner = winning_mark(board)

        terminal = winner is not None or all(board)
        state = {
            'board': board,
            'marks': marks,
            'current_player': None if terminal else self.expected_mover(meta, len(moves)),
        }
        return Outcome(
            state=state,
            is_terminal=terminal,
            winner_id=owners[winner] if winner else None,
            ignored=ignored,
        )
