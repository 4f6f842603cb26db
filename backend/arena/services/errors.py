"""Domain errors raised by arena services and mapped to HTTP 400s by the API."""


class ArenaError(Exception):
    """Base class for every expected arena failure."""


class InvalidMatchRequest(ArenaError):
    """Unknown game type, bad stake or unknown player."""


class InsufficientBalance(ArenaError):
    def __init__(self, user_id, needed, available):
        self.user_id = user_id
        self.needed = needed
        self.available = available
        super().__init__(f"Balance {available} is below the required {needed}")


class InvalidTransaction(ArenaError):
    """Deposit/withdraw request that fails validation."""
