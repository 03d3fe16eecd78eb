"""Invitation e-mail delivery through an HTTP mail webhook."""

import logging

import httpx
from pydantic import BaseModel

from rubberband.config import settings

logger = logging.getLogger(__name__)


class InvitationEmail(BaseModel):
    to: str
    subject: str
    html: str
    invitation_link: str


def build_invitation_email(organization_name: str, email: str, token: str, role: str) -> InvitationEmail:
    link = f"{settings.frontend_url.rstrip('/')}/accept-invitation?token={token}"
    html = (
        "<h1>You've been invited!</h1>"
        f"<p>You've been invited to join <strong>{organization_name}</strong> as a <strong>{role}</strong>.</p>"
        f'<p><a href="{link}">Click here to accept the invitation</a></p>'
        f"<p>This invitation link will expire in {settings.invitation_expiry_hours} hours.</p>"
    )
    return InvitationEmail(
        to=email,
        subject=f"You've been invited to join {organization_name}",
        html=html,
        invitation_link=link,
    )


class EmailNotifier:
    """Posts invitation e-mails to the configured webhook.

    Without a webhook URL the message is only logged. Delivery failures are
    reported through the return value and never raised.
    """

    def __init__(
        self,
        webhook_url: str | None = None,
        api_key: str = "",
        sender: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url
        self.api_key = api_key
        self.sender = sender
        self._transport = transport

    async def send_invitation(self, organization_name: str, email: str, token: str, role: str) -> bool:
        message = build_invitation_email(organization_name, email, token, role)
        if not self.webhook_url:
            logger.info("Email delivery not configured; invitation link for %s: %s", email, message.invitation_link)
            return True

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {"from": self.sender, "to": [message.to], "subject": message.subject, "html": message.html}
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=payload, headers=headers, timeout=10.0)
        except httpx.HTTPError as exc:
            logger.error("Invitation e-mail to %s failed: %s", email, exc)
            return False
        if response.status_code >= 400:
            logger.warning("Invitation e-mail to %s rejected with %s", email, response.status_code)
            return False
        logger.info("Invitation e-mail sent to %s", email)
        return True


def default_notifier() -> EmailNotifier:
    return EmailNotifier(settings.email_webhook_url, settings.email_api_key, settings.email_sender)
