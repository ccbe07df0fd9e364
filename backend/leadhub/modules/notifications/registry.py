from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol


class Channel(Protocol):
    """A live, per-connection transport (e.g. one WebSocket)."""

    def send(self, payload: dict[str, Any]) -> None: ...


@dataclass(eq=False, slots=True)
class ChannelHandle:
    actor_id: str
    channel: Channel
    role: str | None = None
    handle_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    connected_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )


class ConnectionRegistry:
    """
    In-memory map of actor id -> open channels.

    Created once per process (app lifespan) and injected where needed; tests
    construct their own. All methods are safe to call from any thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_actor: dict[str, list[ChannelHandle]] = {}

    def register(self, actor_id: str, channel: Channel, *, role: str | None = None) -> ChannelHandle:
        aid = str(actor_id or "").strip()
        if not aid:
            raise ValueError("actor_id is required")
        handle = ChannelHandle(actor_id=aid, channel=channel, role=role)
        with self._lock:
            self._by_actor.setdefault(aid, []).append(handle)
        return handle

    def unregister(self, handle: ChannelHandle) -> bool:
        """Remove a handle; returns False if it was already gone."""
        with self._lock:
            handles = self._by_actor.get(handle.actor_id)
            if not handles or handle not in handles:
                return False
            handles.remove(handle)
            if not handles:
                del self._by_actor[handle.actor_id]
            return True

    def channels_for(self, actor_id: str) -> list[ChannelHandle]:
        # Snapshot; callers iterate without holding the lock.
        with self._lock:
            return list(self._by_actor.get(str(actor_id or ""), ()))

    def active_count(self) -> int:
        with self._lock:
            return sum(len(hs) for hs in self._by_actor.values())

    def connection_info(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {
                aid: {
                    "connectionCount": len(hs),
                    "userTypes": [h.role for h in hs],
                }
                for aid, hs in self._by_actor.items()
            }

    def clear(self) -> list[ChannelHandle]:
        with self._lock:
            handles = [h for hs in self._by_actor.values() for h in hs]
            self._by_actor.clear()
        return handles
