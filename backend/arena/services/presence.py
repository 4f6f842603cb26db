"""Who is connected, over which channel, and watching which match."""

from threading import Lock
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class PresenceDirectory:
    """Live player <-> connection <-> channel table.

    A channel is anything with ``send(event, payload)`` and an optional
    ``closed`` attribute. Delivery is best effort: a gone or closed channel
    is skipped without complaint.
    """

    def __init__(self):
        self._lock = Lock()
        self._player_to_conn: Dict[str, str] = {}
        self._conn_to_player: Dict[str, str] = {}
        self._channels: Dict[str, Any] = {}
        self._player_to_match: Dict[str, str] = {}

    def connect(self, connection_id: str, player_id: str, channel) -> None:
        with self._lock:
            self._channels[connection_id] = channel
            self._conn_to_player[connection_id] = player_id
            self._player_to_conn[player_id] = connection_id

    def disconnect(self, connection_id: str) -> Optional[Dict[str, Optional[str]]]:
        """Purge every mapping of the connection. Returns what was removed."""
        with self._lock:
            channel = self._channels.pop(connection_id, None)
            player_id = self._conn_to_player.pop(connection_id, None)
            if channel is not None and hasattr(channel, 'closed'):
                channel.closed = True
            if player_id is None:
                return None
            if self._player_to_conn.get(player_id) == connection_id:
                del self._player_to_conn[player_id]
            match_id = self._player_to_match.pop(player_id, None)
            return {'player_id': player_id, 'match_id': match_id}

    def player_for(self, connection_id: str) -> Optional[str]:
        with self._lock:
            return self._conn_to_player.get(connection_id)

    def connection_for(self, player_id: str) -> Optional[str]:
        with self._lock:
            return self._player_to_conn.get(player_id)

    def channel_for(self, player_id: str):
        with self._lock:
            conn = self._player_to_conn.get(player_id)
            return self._channels.get(conn) if conn else None

    def join_match(self, player_id: str, match_id: str) -> None:
        with self._lock:
            self._player_to_match[player_id] = match_id

    def leave_match(self, player_id: str) -> Optional[str]:
        with self._lock:
            return self._player_to_match.pop(player_id, None)

    def current_match(self, player_id: str) -> Optional[str]:
        with self._lock:
            return self._player_to_match.get(player_id)

    def send_to_player(self, player_id: str, event: str, payload: dict) -> bool:
        channel = self.channel_for(player_id)
        if channel is None or getattr(channel, 'closed', False):
            return False
        try:
            channel.send(event, payload)
        except Exception:
            logger.warning("[deliver-failed] player=%s event=%s", player_id, event, exc_info=True)
            return False
        return True

    def broadcast_to_match(self, match, event: str, payload: dict) -> int:
        """Send to each participant currently routed to this match. Returns deliveries."""
        delivered = 0
        for player_id in match.participants:
            if self.current_match(player_id) != match.id:
                continue
            if self.send_to_player(player_id, event, payload):
                delivered += 1
        return delivered
