import httpx
import logging
from dataclasses import dataclass

from saintvoice.errors import RegistrationFailed

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.retellai.com"
CREATE_WEB_CALL_PATH = "/v2/create-web-call"
DYNAMIC_VARIABLES_KEY = "retell_llm_dynamic_variables"

# Fixed client-side; the registration response does not carry a sample rate.
SAMPLE_RATE = 16000


@dataclass(frozen=True)
class CallRegistration:
    access_token: str = ""
    call_id: str = ""
    sample_rate: int = SAMPLE_RATE

    @property
    def is_complete(self) -> bool:
        return bool(self.access_token and self.call_id)


class RegistrationClient:
    """HTTP client for the web-call registration endpoint.

    Exchanges the API key for a per-call access token. One attempt per
    call; there is no retry. Any non-2xx status, transport failure, or
    non-object body is raised as RegistrationFailed.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float | None = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._owns_client = client is None
        if client is not None:
            self._client = client
        else:
            self._client = httpx.AsyncClient(timeout=self.timeout)

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def close(self):
        """Close the shared HTTP client. An injected client is left to its owner."""
        if self._owns_client:
            await self._client.aclose()

    async def register(self, agent_id: str, dynamic_variables: dict | None = None) -> CallRegistration:
        try:
            resp = await self._client.post(
                f"{self.base_url}{CREATE_WEB_CALL_PATH}",
                headers=self._headers(),
                json={
                    "agent_id": agent_id,
                    DYNAMIC_VARIABLES_KEY: dynamic_variables or {},
                },
            )
        except httpx.HTTPError as e:
            logger.error("register_call request failed: %s", e)
            raise RegistrationFailed(None, f"Registration request failed: {e}") from e

        if not resp.is_success:
            logger.error("register_call failed with status %d", resp.status_code)
            raise RegistrationFailed(resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise RegistrationFailed(resp.status_code, "Registration response is not JSON") from e
        if not isinstance(data, dict):
            raise RegistrationFailed(resp.status_code, "Registration response is not a JSON object")

        registration = CallRegistration(
            access_token=data.get("access_token") or "",
            call_id=data.get("call_id") or "",
            sample_rate=SAMPLE_RATE,
        )
        logger.info("Registered web call %s", registration.call_id or "<missing call_id>")
        return registration
