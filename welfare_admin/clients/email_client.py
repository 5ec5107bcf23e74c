"""Email sending through the Supabase edge function."""

import logging
from typing import Any, Dict, List, Optional, Union

import httpx
from pydantic import BaseModel, Field, model_validator

from ..models import EmailSendError, EmailTemplate

logger = logging.getLogger(__name__)

ORGANIZATION_NAME = "קופת טוב וחסד"

# Default subject per template when a bulk email has none
TEMPLATE_SUBJECTS: Dict[EmailTemplate, str] = {
    EmailTemplate.APPROVAL: f"בקשת התמיכה שלך אושרה - {ORGANIZATION_NAME}",
    EmailTemplate.REMINDER: f"תזכורת - {ORGANIZATION_NAME}",
    EmailTemplate.NOTIFICATION: f"עדכון מהמערכת - {ORGANIZATION_NAME}",
    EmailTemplate.REPORT: f"דוח חודשי - {ORGANIZATION_NAME}",
}
DEFAULT_SUBJECT = TEMPLATE_SUBJECTS[EmailTemplate.NOTIFICATION]


def default_subject(template: Optional[EmailTemplate]) -> str:
    return TEMPLATE_SUBJECTS.get(template, DEFAULT_SUBJECT) if template else DEFAULT_SUBJECT


class EmailMessage(BaseModel):
    """Payload accepted by the email function."""
    to: Union[str, List[str]] = Field(..., description="One address or a list of addresses")
    subject: str = Field(..., description="Subject line")
    html: Optional[str] = Field(None, description="Raw HTML body")
    text: Optional[str] = Field(None, description="Plain-text body")
    template: Optional[EmailTemplate] = Field(None, description="Named template rendered by the function")
    data: Optional[Dict[str, Any]] = Field(None, description="Template substitution data")

    @model_validator(mode="after")
    def check_content(self):
        recipients = [self.to] if isinstance(self.to, str) else self.to
        if not any(address.strip() for address in recipients):
            raise ValueError("At least one recipient is required")
        if not self.html and not self.template:
            raise ValueError("Either html or a template is required")
        return self

    @property
    def recipients(self) -> List[str]:
        return [self.to] if isinstance(self.to, str) else list(self.to)


class EmailClient:
    """Invokes the transactional email function of the hosted backend."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        function_name: str = "resend-email",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.function_name = function_name
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/functions/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def send(self, message: EmailMessage) -> Dict[str, Any]:
        """
        Send one email to all of the message's recipients.

        Raises:
            EmailSendError: When the function cannot be reached, answers with an
                error status, or reports an error in its JSON body
        """
        try:
            response = await self._client.post(
                f"/{self.function_name}",
                json=message.model_dump(mode="json", exclude_none=True),
            )
        except httpx.HTTPError as e:
            logger.error(f"Email function unreachable: {e}")
            raise EmailSendError(f"Failed to send email: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"message": response.text}

        if response.status_code >= 400:
            error_message = body.get("error") or body.get("message") or "Failed to send email"
            logger.error(f"Email function returned {response.status_code}: {error_message}")
            raise EmailSendError(error_message, details=body.get("details"))

        if body.get("error"):
            raise EmailSendError(body["error"], details=body.get("details"))

        logger.info(f"Sent '{message.subject}' to {len(message.recipients)} recipients")
        return body

    async def aclose(self) -> None:
        await self._client.aclose()

