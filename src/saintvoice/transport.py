"""Contract of the real-time voice transport and its event subscription.

The transport itself (WebRTC audio, the agent's media server) lives outside
this package. The controller only issues start_call/stop_call and listens to
four events, emitted in order: ``started``, any number of ``update``, then
one terminal ``ended`` or ``error``.
"""

import logging
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

STARTED = "started"
ENDED = "ended"
ERROR = "error"
UPDATE = "update"

EVENTS = (STARTED, ENDED, ERROR, UPDATE)


class VoiceTransport(Protocol):
    def on(self, event: str, handler: Callable) -> None: ...

    def off(self, event: str, handler: Callable) -> None: ...

    async def start_call(
        self,
        *,
        access_token: str,
        call_id: str,
        sample_rate: int,
        enable_update: bool,
    ) -> None: ...

    async def stop_call(self) -> None: ...


class MicrophoneGate(Protocol):
    async def request_access(self) -> bool: ...


class TransportSubscription:
    """Scoped handle over a set of transport event handlers.

    attach() installs each handler once; release() removes exactly the
    handlers that were installed. Both are idempotent, so release() is safe
    after a failed or partial attach and on every teardown path.
    """

    def __init__(self, transport: VoiceTransport, handlers: dict[str, Callable]):
        unknown = set(handlers) - set(EVENTS)
        if unknown:
            raise ValueError(f"Unknown transport events: {sorted(unknown)}")
        self._transport = transport
        self._handlers = dict(handlers)
        self._installed: list[str] = []

    @property
    def active(self) -> bool:
        return bool(self._installed)

    def attach(self) -> "TransportSubscription":
        if self._installed:
            return self
        try:
            for event, handler in self._handlers.items():
                self._transport.on(event, handler)
                self._installed.append(event)
        except Exception:
            self.release()
            raise
        logger.debug("Attached transport handlers: %s", ", ".join(self._installed))
        return self

    def release(self) -> None:
        while self._installed:
            event = self._installed.pop()
            try:
                self._transport.off(event, self._handlers[event])
            except Exception as e:
                logger.warning("Failed to detach %s handler: %s", event, e)

    def __enter__(self):
        return self.attach()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
