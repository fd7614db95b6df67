"""Email transports."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Protocol

from cfroster.logging import sanitize_for_log
from cfroster.notifications.exceptions import EmailDeliveryError
from cfroster.notifications.models import EmailMessage

logger = logging.getLogger(__name__)


class EmailTransport(Protocol):
    """Hands a rendered message to a mail system.

    Implementations raise EmailDeliveryError when the message was not accepted.
    """

    def send(self, message: EmailMessage) -> None: ...


class SMTPTransport:
    """Sends mail through an SMTP relay, one connection per message."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        from_address: str = "noreply@cfroster.local",
        from_name: str = "CF Roster",
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address
        self.from_name = from_name
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    def _build(self, message: EmailMessage) -> MIMEText:
        mime = MIMEText(message.body, "plain", "utf-8")
        mime["Subject"] = message.subject
        mime["From"] = formataddr((self.from_name, self.from_address))
        mime["To"] = message.to
        mime["Message-ID"] = make_msgid(domain=self.from_address.rpartition("@")[2] or None)
        return mime

    def send(self, message: EmailMessage) -> None:
        """Send one message.

        Raises:
            EmailDeliveryError: If SMTP is not configured or the relay refused.
        """
        if not self.is_configured:
            raise EmailDeliveryError("SMTP is not configured")

        mime = self._build(message)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(mime)
        except (smtplib.SMTPException, OSError) as e:
            error = sanitize_for_log(str(e))
            logger.error("SMTP delivery to %s failed: %s", message.to, error)
            raise EmailDeliveryError(error) from e

        logger.info("Email sent to %s: %s", message.to, message.subject)
