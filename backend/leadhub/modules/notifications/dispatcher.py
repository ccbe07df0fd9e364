from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout, as_completed
from dataclasses import dataclass, field
from typing import Any, Iterable

from ...observability.logging import get_logger
from .registry import ChannelHandle, ConnectionRegistry

log = get_logger("notifications")


@dataclass(slots=True)
class DeliveryReport:
    """What happened to one fan-out; informational only, never an error."""

    delivered: int = 0
    failed: int = 0
    timed_out: int = 0
    no_connection: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "delivered": self.delivered,
            "failed": self.failed,
            "timedOut": self.timed_out,
            "noConnection": list(self.no_connection),
        }


def notification_frame(event: dict[str, Any]) -> dict[str, Any]:
    return {"type": "notification", "notification": event}


class NotificationDispatcher:
    """
    Fire-and-forget fan-out over the connection registry.

    Each (recipient, channel) send runs on the pool; a failing channel is
    logged and unregistered without affecting the others, and the whole batch
    is bounded by `timeout_s`. Nothing is queued or retried.
    """

    def __init__(self, registry: ConnectionRegistry, *, max_workers: int = 8, timeout_s: float = 2.0):
        self.registry = registry
        self._timeout_s = max(0.05, float(timeout_s))
        self._pool = ThreadPoolExecutor(max_workers=max(1, int(max_workers)), thread_name_prefix="notify")

    def close(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)

    def _settle(self, fut: Any, handle: ChannelHandle, event_type: str, report: DeliveryReport) -> None:
        try:
            fut.result()
            report.delivered += 1
        except Exception as e:  # noqa: BLE001
            report.failed += 1
            log.warning(
                "notify_channel_failed",
                actor_id=handle.actor_id,
                handle_id=handle.handle_id,
                event_type=event_type,
                error=str(e),
            )
            self.registry.unregister(handle)

    def notify(self, actor_id: str, event: dict[str, Any]) -> DeliveryReport:
        return self.notify_many([(actor_id, event)])

    def notify_many(self, deliveries: Iterable[tuple[str, dict[str, Any]]]) -> DeliveryReport:
        report = DeliveryReport()
        fut_map: dict[Any, tuple[ChannelHandle, str]] = {}

        for actor_id, event in deliveries:
            handles = self.registry.channels_for(actor_id)
            if not handles:
                log.info("notify_no_connection", actor_id=actor_id, event_type=event.get("type"))
                report.no_connection.append(actor_id)
                continue
            frame = notification_frame(event)
            for h in handles:
                try:
                    fut = self._pool.submit(h.channel.send, frame)
                except RuntimeError as e:
                    # Pool already shut down (process stopping).
                    log.warning("notify_dispatch_closed", actor_id=actor_id, error=str(e))
                    report.failed += 1
                    continue
                fut_map[fut] = (h, str(event.get("type") or ""))

        if not fut_map:
            return report

        settled: set[Any] = set()
        try:
            for fut in as_completed(fut_map, timeout=self._timeout_s):
                settled.add(fut)
                self._settle(fut, *fut_map[fut], report)
        except FutureTimeout:
            for fut, (handle, event_type) in fut_map.items():
                if fut in settled:
                    continue
                if fut.done():
                    self._settle(fut, handle, event_type, report)
                    continue
                fut.cancel()
                report.timed_out += 1
                log.warning(
                    "notify_channel_timeout",
                    actor_id=handle.actor_id,
                    handle_id=handle.handle_id,
                    event_type=event_type,
                    timeout_s=self._timeout_s,
                )
        return report
