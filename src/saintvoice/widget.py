import logging

import httpx

from saintvoice.config import Settings, configure_logging, load_settings, validate_config
from saintvoice.controller import CallSessionController
from saintvoice.registration import RegistrationClient
from saintvoice.session import CustomerDetails, SessionSnapshot
from saintvoice.states import CallStatus
from saintvoice.transport import MicrophoneGate, VoiceTransport

logger = logging.getLogger(__name__)


def build_controller(
    transport: VoiceTransport,
    microphone: MicrophoneGate,
    customer: CustomerDetails | None = None,
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
) -> CallSessionController:
    """Wire the consultation call button for one page.

    The page owns ``transport`` (one per page, injected rather than global)
    and the microphone prompt. Customer details are sent to the agent as
    dynamic variables on every registration. Release the controller with
    ``await controller.aclose()``; it owns the registration client built here
    (an injected ``client`` stays with the caller).

    Without ``settings`` this is the page entry point: the environment is
    validated and logging configured before anything is built.
    """
    if settings is None:
        validate_config()
        settings = load_settings()
        configure_logging(settings.log_level)
    customer = customer or CustomerDetails()

    registration = RegistrationClient(
        api_key=settings.api_key,
        base_url=settings.base_url,
        timeout=settings.registration_timeout,
        client=client,
    )
    logger.info("Consultation call widget ready for agent %s", settings.agent_id)
    return CallSessionController(
        transport=transport,
        registration=registration,
        microphone=microphone,
        agent_id=settings.agent_id,
        dynamic_variables=customer.to_dynamic_variables(),
        start_timeout=settings.start_timeout,
        stop_timeout=settings.stop_timeout,
        permission_timeout=settings.permission_timeout,
        clear_transcript_on_end=settings.clear_transcript_on_end,
        owns_registration=True,
    )


BUTTON_LABELS = {
    CallStatus.NOT_STARTED: "Talk to a consultant",
    CallStatus.STARTING: "Connecting...",
    CallStatus.ACTIVE: "End call",
    CallStatus.STOPPING: "Ending call...",
    CallStatus.INACTIVE: "Talk to a consultant",
}


def button_view(snapshot: SessionSnapshot) -> dict:
    """What the page renders for one snapshot: the button plus the transcript panel."""
    return {
        "label": BUTTON_LABELS[snapshot.status],
        "disabled": snapshot.button_busy,
        "caption": snapshot.latest_agent_line,
        "transcript": snapshot.transcript_text,
    }
