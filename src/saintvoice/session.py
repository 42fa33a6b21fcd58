from dataclasses import dataclass, field
from saintvoice.states import CallStatus
from saintvoice.transcript import last_agent_line, to_plain_text


@dataclass
class CustomerDetails:
    name: str = ""
    dob: str = ""
    email: str = ""
    shipping_address: str = ""

    def to_dynamic_variables(self) -> dict:
        """Map details to the variable names the consultant agent's prompt expects."""
        return {
            "member_name": self.name,
            "email": self.email,
            "DOB": self.dob,
            "shippingAddress": self.shipping_address,
        }


@dataclass(frozen=True)
class SessionSnapshot:
    status: CallStatus
    operation_in_flight: bool
    call_id: str
    transcript: tuple = ()

    @property
    def button_busy(self) -> bool:
        """True while the call button should render as pending and ignore presses."""
        return self.operation_in_flight or self.status.is_busy

    @property
    def transcript_text(self) -> str:
        return to_plain_text(list(self.transcript))

    @property
    def latest_agent_line(self) -> str:
        return last_agent_line(list(self.transcript))


@dataclass
class CallSession:
    status: CallStatus = CallStatus.NOT_STARTED
    operation_in_flight: bool = False

    # From registration
    call_id: str = ""
    access_token: str = ""
    sample_rate: int = 0

    # Latest normalized transcript snapshot
    transcript: list = field(default_factory=list)

    # Call metadata (set from transport events, used for logging)
    started_at: float = 0.0
    ended_at: float = 0.0
    end_code: int | None = None
    end_reason: str = ""
    last_error: object = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.access_token and self.call_id)

    def clear_credentials(self) -> None:
        self.call_id = ""
        self.access_token = ""
        self.sample_rate = 0

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            status=self.status,
            operation_in_flight=self.operation_in_flight,
            call_id=self.call_id,
            transcript=tuple(self.transcript),
        )
