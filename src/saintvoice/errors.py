"""Failures on the start/stop path of a voice session.

All of these are caught by CallSessionController.toggle() and resolved into
the inactive state; none of them reach the page.
"""


class CallError(Exception):
    """Base class for start/stop failures."""


class PermissionDenied(CallError):
    """Microphone access was refused. Raised before any network activity."""


class RegistrationFailed(CallError):
    """The web-call registration returned an error status or an unusable body.

    ``status_code`` is None when the request never got a response
    (connection error, timeout).
    """

    def __init__(self, status_code: int | None, message: str = ""):
        self.status_code = status_code
        if not message:
            message = f"Registration failed with status {status_code}"
        super().__init__(message)


class TransportStartFailed(CallError):
    """The transport rejected start_call or never confirmed the call started."""


class TransportStopFailed(CallError):
    """The transport rejected or did not complete stop_call."""
