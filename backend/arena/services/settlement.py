from decimal import Decimal
import json

from arena.models import TX_STAKE_WIN, TX_STAKE_LOSS


def payout_for(stake, fee_rate) -> Decimal:
    """Winner's credit: their own stake back plus the loser's, less the house cut."""
    return Decimal(stake) * (Decimal(2) - Decimal(fee_rate))


class SettlementEngine:
    """Moves money and bumps stats once a match is over.

    Both participants are written into the current unit of work; the caller
    commits (or rolls back) them together.
    """

    def __init__(self, repo, fee_rate=None):
        self.repo = repo
        self.fee_rate = Decimal(fee_rate if fee_rate is not None else '0.10')

    def settle(self, match, winner_id):
        """Apply the result for both sides. Returns {player_id: signed balance delta}."""
        deltas = {}
        for player_id in match.participants:
            deltas[player_id] = self._settle_one(match, player_id, winner_id)
        return deltas

    def _settle_one(self, match, player_id, winner_id) -> Decimal:
        # Row lock so a player's other matches settling concurrently queue up here
        stats = self.repo.get_stats(player_id, for_update=True)
        if stats is None:
            raise LookupError(f"Player {player_id} vanished before settlement")
        stake = Decimal(match.stake)
        won = winner_id is not None and winner_id == player_id
        lost = winner_id is not None and winner_id != player_id

        delta = Decimal('0')
        if won:
            delta = payout_for(stake, self.fee_rate)
            self.repo.create_transaction(
                player_id, TX_STAKE_WIN, delta,
                description=f"{match.game_type} victory reward", match_id=match.id,
            )
        elif lost:
            delta = -stake
            self.repo.create_transaction(
                player_id, TX_STAKE_LOSS, delta,
                description=f"{match.game_type} stake lost", match_id=match.id,
            )
        if delta and not self.repo.adjust_balance(player_id, delta):
            raise LookupError(f"Player {player_id} vanished before settlement")

        stats.total_games += 1
        if won:
            stats.total_wins += 1
            stats.total_earned = Decimal(stats.total_earned or 0) + delta
        elif lost:
            stats.total_losses += 1
        per_game = json.loads(stats.games_played or '{}')
        per_game[match.game_type] = per_game.get(match.game_type, 0) + 1
        stats.games_played = json.dumps(per_game, sort_keys=True)
        self.repo.save_stats(stats)
        return delta
