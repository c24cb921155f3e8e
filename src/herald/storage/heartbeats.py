"""Heartbeat storage operations for HeraldStorage."""

from __future__ import annotations

from typing import Any

from herald.models import Heartbeat

from .retry import store_retry


class HeartbeatMixin:
    """Mixin providing heartbeat operations for HeraldStorage.

    One point per source; saving replaces the previous record.
    """

    _upsert: Any
    _retrieve: Any
    _model_to_payload: Any
    _payload_to_model: Any

    @staticmethod
    def _heartbeat_key(source: str) -> str:
        return f"heartbeat/{source}"

    @store_retry
    async def get_last_heartbeat(self, source: str) -> Heartbeat | None:
        """Get the latest heartbeat for a source."""
        payload = await self._retrieve("heartbeats", self._heartbeat_key(source))
        if payload is None:
            return None
        heartbeat: Heartbeat = self._payload_to_model(payload, Heartbeat)
        return heartbeat

    @store_retry
    async def save_heartbeat(self, heartbeat: Heartbeat) -> None:
        """Replace the heartbeat record for heartbeat.source."""
        await self._upsert(
            "heartbeats",
            self._heartbeat_key(heartbeat.source),
            self._model_to_payload(heartbeat),
        )
