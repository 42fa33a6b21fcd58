from enum import Enum

IDLE_STATES = {"not_started", "inactive"}
BUSY_STATES = {"starting", "stopping"}
LIVE_STATES = {"active"}


class CallStatus(Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"
    INACTIVE = "inactive"

    @property
    def is_idle(self) -> bool:
        return self.value in IDLE_STATES

    @property
    def is_busy(self) -> bool:
        return self.value in BUSY_STATES

    @property
    def is_live(self) -> bool:
        return self.value in LIVE_STATES
