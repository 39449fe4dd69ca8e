"""SMTP mailer rendering Jinja2 templates from ``app/templates``.

Each template defines three blocks: ``subject``, ``plain_body`` and
``html_body``. Sending is blocking; callers run it through
``BackgroundRunner`` so HTTP responses never wait on SMTP.
"""

from __future__ import annotations

import smtplib
import time
from email.message import EmailMessage
from typing import Any, Dict

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from app.utils.logger import logger

SEND_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 0.5
SMTP_TIMEOUT_SECONDS = 5.0

_templates = Environment(
    loader=PackageLoader("app", "templates"),
    autoescape=select_autoescape(["html"]),
    undefined=StrictUndefined,
)


def _render_block(template_file: str, block: str, data: Dict[str, Any]) -> str:
    template = _templates.get_template(template_file)
    context = template.new_context(data)
    return "".join(template.blocks[block](context)).strip()


class Mailer:
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        *,
        attempts: int = SEND_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.attempts = attempts
        self.retry_delay = retry_delay

    def build_message(self, recipient: str, template_file: str, data: Dict[str, Any]) -> EmailMessage:
        msg = EmailMessage()
        msg["To"] = recipient
        msg["From"] = self.sender
        msg["Subject"] = _render_block(template_file, "subject", data)
        msg.set_content(_render_block(template_file, "plain_body", data))
        msg.add_alternative(_render_block(template_file, "html_body", data), subtype="html")
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT_SECONDS) as server:
            if self.username:
                server.login(self.username, self.password)
            server.send_message(msg)

    def send(self, recipient: str, template_file: str, data: Dict[str, Any]) -> None:
        """Render and deliver, retrying transient SMTP failures.

        Raises the last error after ``attempts`` failed tries.
        """
        msg = self.build_message(recipient, template_file, data)
        for attempt in range(1, self.attempts + 1):
            try:
                self._deliver(msg)
                return
            except (smtplib.SMTPException, OSError) as exc:
                logger.warning(
                    "mailer.retry",
                    extra={"attempt": attempt, "recipient": recipient, "error": str(exc)},
                )
                if attempt == self.attempts:
                    raise
                time.sleep(self.retry_delay)
