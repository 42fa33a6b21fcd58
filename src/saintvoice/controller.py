import asyncio
import logging
import time
from typing import Callable

from saintvoice.errors import (
    CallError,
    PermissionDenied,
    RegistrationFailed,
    TransportStartFailed,
    TransportStopFailed,
)
from saintvoice.registration import RegistrationClient
from saintvoice.session import CallSession, SessionSnapshot
from saintvoice.states import CallStatus
from saintvoice.transcript import normalize
from saintvoice.transport import (
    ENDED,
    ERROR,
    STARTED,
    UPDATE,
    MicrophoneGate,
    TransportSubscription,
    VoiceTransport,
)

logger = logging.getLogger(__name__)


class CallSessionController:
    """Drives a single voice session behind the consultation call button.

    toggle() is the only command: it starts a call from any idle status and
    stops it when active. A toggle issued while a start or stop is still
    pending is dropped. Failures on either path never escape toggle(); they
    are logged and the session falls back to inactive.

    Start path:
      microphone gate -> registration -> transport.start_call -> wait for the
      transport's ``started`` event. The controller only becomes active on
      that event, never on issuing the command.

    Timeouts are off (None) unless configured. With a start timeout, a call
    that never confirms is stopped best-effort so a late ``started`` cannot
    leave a live call behind an inactive button.

    Transport handlers are attached once at construction and released by
    close() (or on leaving a ``with`` block). aclose() also closes the
    registration client when the controller was handed ownership of it.
    """

    def __init__(
        self,
        transport: VoiceTransport,
        registration: RegistrationClient,
        microphone: MicrophoneGate,
        agent_id: str,
        dynamic_variables: dict | None = None,
        *,
        start_timeout: float | None = None,
        stop_timeout: float | None = None,
        permission_timeout: float | None = None,
        clear_transcript_on_end: bool = False,
        owns_registration: bool = False,
    ):
        self.transport = transport
        self.registration = registration
        self.microphone = microphone
        self.agent_id = agent_id
        self.dynamic_variables = dict(dynamic_variables or {})
        self.start_timeout = start_timeout
        self.stop_timeout = stop_timeout
        self.permission_timeout = permission_timeout
        self.clear_transcript_on_end = clear_transcript_on_end
        self._owns_registration = owns_registration

        self.session = CallSession()
        self._listeners: list[Callable[[SessionSnapshot], None]] = []
        self._pending_start: asyncio.Future | None = None
        self._closed = False
        self._subscription = TransportSubscription(
            transport,
            {
                STARTED: self._on_started,
                ENDED: self._on_ended,
                ERROR: self._on_error,
                UPDATE: self._on_update,
            },
        ).attach()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def status(self) -> CallStatus:
        return self.session.status

    @property
    def operation_in_flight(self) -> bool:
        return self.session.operation_in_flight

    @property
    def transcript(self) -> list[dict]:
        return list(self.session.transcript)

    def snapshot(self) -> SessionSnapshot:
        return self.session.snapshot()

    def subscribe(self, listener: Callable[[SessionSnapshot], None]) -> Callable[[], None]:
        """Call ``listener`` with a snapshot after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        snapshot = self.session.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session listener raised")

    def _set_status(self, status: CallStatus):
        if self.session.status is not status:
            logger.debug("Call status %s -> %s", self.session.status.value, status.value)
        self.session.status = status
        self._notify()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def toggle(self) -> None:
        if self._closed:
            logger.warning("toggle() on a closed controller, ignored")
            return
        if self.session.operation_in_flight:
            logger.debug("toggle() dropped: %s already in flight", self.session.status.value)
            return

        self.session.operation_in_flight = True
        try:
            if self.session.status.is_live:
                await self._stop()
            else:
                await self._start()
        finally:
            self.session.operation_in_flight = False
            self._notify()

    async def _start(self):
        self.session.last_error = None
        self._set_status(CallStatus.STARTING)
        try:
            await self._acquire_microphone()

            registration = await self.registration.register(self.agent_id, self.dynamic_variables)
            if not registration.is_complete:
                raise RegistrationFailed(None, "Registration response missing access_token or call_id")

            self.session.access_token = registration.access_token
            self.session.call_id = registration.call_id
            self.session.sample_rate = registration.sample_rate

            self._pending_start = asyncio.get_running_loop().create_future()
            try:
                await self.transport.start_call(
                    access_token=registration.access_token,
                    call_id=registration.call_id,
                    sample_rate=registration.sample_rate,
                    enable_update=True,
                )
            except Exception as e:
                raise TransportStartFailed(f"start_call failed: {e}") from e

            await self._await_started()
        except CallError as e:
            logger.error("Call start failed: %s", e)
            self._fail(e)
        except Exception as e:
            logger.exception("Unexpected error while starting call")
            self._fail(e)
        finally:
            self._drop_pending_start()

    async def _acquire_microphone(self):
        try:
            granted = await asyncio.wait_for(
                self.microphone.request_access(), self.permission_timeout
            )
        except asyncio.TimeoutError as e:
            raise PermissionDenied(
                f"Microphone prompt unanswered after {self.permission_timeout}s"
            ) from e
        except Exception as e:
            raise PermissionDenied(f"Microphone access failed: {e}") from e
        if not granted:
            raise PermissionDenied("Microphone access denied")

    async def _await_started(self):
        try:
            await asyncio.wait_for(self._pending_start, self.start_timeout)
        except asyncio.TimeoutError as e:
            await self._best_effort_stop()
            raise TransportStartFailed(
                f"No start confirmation after {self.start_timeout}s"
            ) from e

    async def _best_effort_stop(self):
        try:
            await asyncio.wait_for(self.transport.stop_call(), self.stop_timeout)
        except Exception as e:
            logger.warning("Best-effort stop_call failed: %s", e)

    def _drop_pending_start(self):
        pending = self._pending_start
        self._pending_start = None
        if pending is not None and pending.done() and not pending.cancelled():
            # Mark a stored failure as retrieved when start_call raised first.
            pending.exception()

    async def _stop(self):
        call_id = self.session.call_id
        self._set_status(CallStatus.STOPPING)
        try:
            await asyncio.wait_for(self.transport.stop_call(), self.stop_timeout)
            logger.info("Call %s stopped", call_id or "<unknown>")
        except asyncio.TimeoutError:
            error = TransportStopFailed(f"stop_call unconfirmed after {self.stop_timeout}s")
            logger.error("Call stop failed: %s", error)
            self.session.last_error = error
        except Exception as e:
            error = TransportStopFailed(f"stop_call failed: {e}")
            logger.error("Call stop failed: %s", error)
            self.session.last_error = error
        finally:
            self._teardown()

    def _fail(self, error: Exception):
        self.session.last_error = error
        self._teardown()

    def _teardown(self):
        """Return to inactive and drop this call's credentials."""
        session = self.session
        if session.started_at:
            session.ended_at = time.time()
            logger.info(
                "Call %s ended after %.1fs",
                session.call_id or "<unknown>",
                session.ended_at - session.started_at,
            )
            session.started_at = 0.0
        session.clear_credentials()
        if self.clear_transcript_on_end:
            session.transcript = []
        self._set_status(CallStatus.INACTIVE)

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    def _awaiting_start(self) -> bool:
        return self._pending_start is not None and not self._pending_start.done()

    def _on_started(self, *args):
        if self.session.status is not CallStatus.STARTING or not self._awaiting_start():
            logger.warning("Ignoring started event in status %s", self.session.status.value)
            return
        self.session.started_at = time.time()
        logger.info("Call %s started", self.session.call_id)
        self._set_status(CallStatus.ACTIVE)
        self._pending_start.set_result(None)

    def _on_ended(self, code=None, reason=""):
        logger.info("Call ended with code %s, reason: %s", code, reason)
        if self._end_from_transport(f"ended (code={code}, reason={reason})"):
            self.session.end_code = code
            self.session.end_reason = reason or ""

    def _on_error(self, details=None):
        logger.error("Transport error: %s", details)
        if self._end_from_transport(f"error ({details})") and details is not None:
            self.session.last_error = details

    def _end_from_transport(self, description: str) -> bool:
        """Tear down for a terminal transport event. Returns False when the event was stale."""
        if self._awaiting_start():
            # The start path owns the teardown while it is waiting.
            self._pending_start.set_exception(
                TransportStartFailed(f"Transport {description} before call started")
            )
            return True
        status = self.session.status
        if status is CallStatus.STARTING:
            logger.warning("Ignoring stale transport %s while starting", description)
            return False
        if status.is_idle:
            logger.debug("Transport %s with no live call", description)
            return False
        self._teardown()
        return True

    def _on_update(self, payload=None):
        entries = normalize(payload)
        if entries is None:
            return
        self.session.transcript = entries
        logger.debug("Transcript updated: %d entries", len(entries))
        self._notify()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Detach transport handlers and drop listeners. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._subscription.release()
        if self._awaiting_start():
            self._pending_start.set_exception(TransportStartFailed("Controller closed"))
        self._listeners.clear()

    async def aclose(self) -> None:
        """close(), then release the registration client if this controller owns it."""
        self.close()
        if self._owns_registration:
            self._owns_registration = False
            await self.registration.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False
