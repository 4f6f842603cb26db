from decimal import Decimal, InvalidOperation
import logging
import random

from arena.models import MATCH_WAITING, MATCH_IN_PROGRESS
from arena.services.games import get_engine, GAME_TYPES, MatchMeta
from arena.services.errors import InvalidMatchRequest, InsufficientBalance

logger = logging.getLogger(__name__)

STAKE_QUANTUM = Decimal('0.00000001')


def parse_stake(value) -> Decimal:
    try:
        stake = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidMatchRequest(f"Invalid stake: {value!r}") from None
    if not stake.is_finite() or stake <= 0:
        raise InvalidMatchRequest(f"Stake must be positive, got {value!r}")
    return stake.quantize(STAKE_QUANTUM)


class MatchRegistry:
    """Creates, pairs and closes matches.

    Pairing is a compare-and-set on the row (waiting -> in_progress), so two
    joiners racing for the same waiting match cannot both win it.
    """

    def __init__(self, repo, rng=None):
        self.repo = repo
        self.rng = rng or random.Random()

    def create_waiting_match(self, game_type, stake, creator_id):
        match = self.repo.create_match(game_type, stake, creator_id)
        self.repo.commit()
        logger.info("[match-created] match=%s game=%s stake=%s creator=%s",
                    match.id, game_type, stake, creator_id)
        return match

    def find_waiting_match(self, game_type, stake, exclude_player_id=None):
        for match in self.repo.get_waiting_matches(game_type, stake):
            if match.player1_id != exclude_player_id:
                return match
        return None

    def pair_into(self, match, joiner_id):
        """Claim ``match`` for ``joiner_id``. Returns the paired match, or None if it was taken."""
        if match.player1_id == joiner_id:
            return None
        engine = get_engine(match.game_type)
        setup = engine.initial_setup(self.rng)
        meta = MatchMeta(player1_id=match.player1_id, player2_id=joiner_id, setup=setup)
        initial = engine.initial_state(meta)

        if not self.repo.claim_waiting_match(match.id, joiner_id, setup, initial.serialized()):
            self.repo.rollback()
            logger.info("[pairing-lost] match=%s joiner=%s", match.id, joiner_id)
            return None
        self.repo.commit()
        self.repo.refresh(match)
        logger.info("[pairing] match=%s player1=%s player2=%s", match.id, match.player1_id, joiner_id)
        return match

    def find_or_create(self, game_type, stake, player_id):
        """Join the first waiting match someone else opened, else open one.

        Returns (match, paired).
        """
        if game_type not in GAME_TYPES:
            raise InvalidMatchRequest(f"Unknown game type: {game_type!r}")
        stake = parse_stake(stake)
        user = self.repo.get_user(player_id)
        if user is None:
            raise InvalidMatchRequest(f"Unknown player: {player_id!r}")
        # Stakes on open matches are spoken for until those matches settle
        available = Decimal(user.balance) - self.repo.committed_stake(player_id)
        if available < stake:
            raise InsufficientBalance(player_id, stake, available)

        for candidate in self.repo.get_waiting_matches(game_type, stake):
            if candidate.player1_id == player_id:
                continue
            paired = self.pair_into(candidate, player_id)
            if paired is not None:
                return paired, True
        return self.create_waiting_match(game_type, stake, player_id), False

    def finish(self, match, winner_id, final_state) -> bool:
        """in_progress -> finished. Left uncommitted for the caller's unit of work."""
        if not self.repo.close_match(match.id, MATCH_IN_PROGRESS, winner_id, final_state):
            return False
        self.repo.refresh(match)
        return True

    def abandon_waiting(self, player_id):
        """Close every waiting match the player opened. Returns their ids."""
        closed = []
        for match in self.repo.get_waiting_matches_created_by(player_id):
            if self.repo.close_match(match.id, MATCH_WAITING, None, match.game_data):
                closed.append(match.id)
        if closed:
            self.repo.commit()
            logger.info("[match-abandoned] player=%s matches=%s", player_id, closed)
        return closed
