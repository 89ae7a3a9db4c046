from typing import Any, Dict, Optional, Protocol
import logging

import httpx

logger = logging.getLogger(__name__)

class MessagingError(Exception):
    """The remote send function rejected or failed a message."""

class MessagingUnavailableError(MessagingError):
    """No remote send function is configured or reachable."""

class MessagingGateway(Protocol):
    async def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...

class HttpMessagingGateway:
    """Calls the hosted messaging function over HTTPS.

    The function receives ``{kind, recipientRole, messageIntent, phoneNumber,
    message, record}`` and answers with a JSON delivery acknowledgment.
    """

    def __init__(
        self,
        url: Optional[str],
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.api_key = api_key
        self._transport = transport

    async def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.url:
            raise MessagingUnavailableError("Messaging function URL is not configured")

        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=None) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise MessagingUnavailableError(f"Messaging function unreachable: {str(exc)}") from exc

        if not response.is_success:
            raise MessagingError(
                f"Messaging function returned {response.status_code}: {response.text}"
            )

        try:
            return response.json()
        except ValueError:
            return {"status_code": response.status_code}
