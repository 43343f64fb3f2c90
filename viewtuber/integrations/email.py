"""Transactional email through the Resend HTTP API."""
import html
import logging
from typing import Optional

import httpx

from viewtuber.errors import EmailDeliveryError

logger = logging.getLogger(__name__)


INVITE_TEMPLATE = """\
<h2>You're Invited to Collaborate on the Project "{project_name}"</h2>
<p>You've been invited to collaborate on the project "{project_name}" as an "{role}"
on Viewtuber. It's a great place to work together and manage tasks efficiently.</p>
<p>Click the link below to accept the invitation and get started:</p>
<p><a href="{invite_url}">Accept Invitation</a></p>
<p>This invitation expires in one hour.</p>
"""

SUBMISSION_TEMPLATE = """\
<h2>New Submission Alert</h2>
<p>Hello,</p>
<p>{editor_name} has submitted their edited video for project "{project_name}".</p>
<p>You can now review their work in the project dashboard.</p>
"""


def render_invite(invite_url: str, project_name: str, role: str) -> str:
    return INVITE_TEMPLATE.format(
        invite_url=html.escape(invite_url, quote=True),
        project_name=html.escape(project_name),
        role=html.escape(role),
    )


def render_submission(editor_name: str, project_name: str) -> str:
    return SUBMISSION_TEMPLATE.format(
        editor_name=html.escape(editor_name),
        project_name=html.escape(project_name),
    )


class Mailer:
    def __init__(
        self,
        api_key: Optional[str],
        sender: str,
        api_url: str = "https://api.resend.com/emails",
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url
        self._transport = transport
        self._timeout = timeout

    def send(self, to: str, subject: str, body_html: str) -> str:
        """Send one email; returns the provider message id."""
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {"from": self.sender, "to": [to], "subject": subject, "html": body_html}
        try:
            with httpx.Client(transport=self._transport, timeout=self._timeout) as client:
                response = client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Email to {to} failed: {e}")
            raise EmailDeliveryError() from e
        try:
            return response.json().get("id", "")
        except ValueError:
            # Accepted by the provider; only the id is unreadable
            logger.warning(f"Email to {to} sent but response was not JSON")
            return ""

    def send_project_invite(self, to: str, invite_url: str, project_name: str, role: str) -> str:
        return self.send(to, "Project Invitation", render_invite(invite_url, project_name, role))

    def send_editor_submission(self, to: str, project_name: str, editor_name: str) -> str:
        return self.send(
            to,
            f"{project_name}: Editor has submitted their work",
            render_submission(editor_name, project_name),
        )
