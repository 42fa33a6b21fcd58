import asyncio
import pytest
from unittest.mock import AsyncMock

from saintvoice.controller import CallSessionController
from saintvoice.registration import CallRegistration


class FakeTransport:
    """In-memory transport honouring the VoiceTransport contract.

    By default start_call schedules ``started`` for the next loop iteration,
    the way the real client confirms a call once media is flowing. Set
    ``start_event`` to
    "ended", "error" or None to simulate other outcomes.
    """

    def __init__(self):
        self.handlers: dict[str, list] = {}
        self.start_calls: list[dict] = []
        self.stop_calls = 0
        self.start_event: str | None = "started"
        self.start_error: Exception | None = None
        self.stop_error: Exception | None = None

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def off(self, event, handler):
        if handler in self.handlers.get(event, []):
            self.handlers[event].remove(handler)

    def handler_count(self, event=None) -> int:
        if event is not None:
            return len(self.handlers.get(event, []))
        return sum(len(h) for h in self.handlers.values())

    def emit(self, event, *args):
        for handler in list(self.handlers.get(event, [])):
            handler(*args)

    async def start_call(self, *, access_token, call_id, sample_rate, enable_update):
        self.start_calls.append({
            "access_token": access_token,
            "call_id": call_id,
            "sample_rate": sample_rate,
            "enable_update": enable_update,
        })
        if self.start_error:
            raise self.start_error
        # Confirmation arrives on a later loop iteration, never inside the command.
        loop = asyncio.get_running_loop()
        if self.start_event == "started":
            loop.call_soon(self.emit, "started")
        elif self.start_event == "ended":
            loop.call_soon(self.emit, "ended", 1006, "media connection lost")
        elif self.start_event == "error":
            loop.call_soon(self.emit, "error", "websocket closed")

    async def stop_call(self):
        self.stop_calls += 1
        if self.stop_error:
            raise self.stop_error
        self.emit("ended", 1000, "user hangup")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def microphone():
    mic = AsyncMock()
    mic.request_access.return_value = True
    return mic


@pytest.fixture
def registration():
    client = AsyncMock()
    client.register.return_value = CallRegistration(
        access_token="tok_abc",
        call_id="call_123",
        sample_rate=16000,
    )
    return client


@pytest.fixture
def controller(transport, registration, microphone):
    ctrl = CallSessionController(
        transport=transport,
        registration=registration,
        microphone=microphone,
        agent_id="agent_test",
        dynamic_variables={"member_name": "Ada", "email": "ada@example.com"},
    )
    yield ctrl
    ctrl.close()
