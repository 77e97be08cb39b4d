"""Redis key patterns.

All room and translation state is stored in SQL. Redis is used only for:
- Translation pass claims (TTL-based, one per room and sender)
- Socket.IO pub/sub adapter
"""


class RedisKey:
    """Redis key patterns - avoids magic strings."""

    @staticmethod
    def translation_pass_inflight(room_id: str, client_id: str) -> str:
        """Claim preventing overlapping translation passes for one sender."""
        return f"translation-pass-inflight:room:{room_id}:client:{client_id}"
