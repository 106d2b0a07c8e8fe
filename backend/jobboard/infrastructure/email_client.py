"""Email Providers: outbound message delivery behind the EmailProvider protocol.

Invariants:
    - send/send_batch raise on any delivery failure (non-2xx, timeout, connection)
    - The template tag is the NotificationType value
    - LoggingEmailProvider is used when no delivery endpoint is configured

Design Decisions:
    - Edge-function style endpoints: POST <base>/send-email-notification and
      POST <base>/send-batch-notifications with a JSON body
"""

import logging

import httpx

from jobboard.core.repository_protocols import BatchEmail, EmailMessage

logger = logging.getLogger(__name__)

SINGLE_ENDPOINT = "send-email-notification"
BATCH_ENDPOINT = "send-batch-notifications"


def _message_body(message: EmailMessage) -> dict:
    body = {
        "to": message.to,
        "template": message.template.value,
        "data": message.data,
    }
    if message.subject:
        body["subject"] = message.subject
    return body


def _batch_body(batch: BatchEmail) -> dict:
    body = {
        "template": batch.template.value,
        "recipients": [
            {"email": r.email, "userId": r.user_id, "data": r.data}
            for r in batch.recipients
        ],
    }
    if batch.subject:
        body["subject"] = batch.subject
    return body


class HttpEmailProvider:
    """Posts email jobs to a delivery service over HTTP."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers=headers,
            timeout=timeout_seconds,
        )

    async def send(self, message: EmailMessage) -> None:
        response = await self.client.post(SINGLE_ENDPOINT, json=_message_body(message))
        response.raise_for_status()

    async def send_batch(self, batch: BatchEmail) -> dict | None:
        response = await self.client.post(BATCH_ENDPOINT, json=_batch_body(batch))
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class LoggingEmailProvider:
    """Development provider: records messages in the log instead of sending them."""

    async def send(self, message: EmailMessage) -> None:
        logger.info(
            f"Email ({message.template.value}) to {message.to}",
            extra={"operation": "email_send"},
        )

    async def send_batch(self, batch: BatchEmail) -> dict | None:
        logger.info(
            f"Batch email ({batch.template.value}) to {len(batch.recipients)} recipients",
            extra={"operation": "email_batch", "count": len(batch.recipients)},
        )
        return {"sent": len(batch.recipients)}

    async def aclose(self) -> None:
        return None
