"""
SMTP email notifications client.

Delivers rendered booking confirmations through a single SMTP session per
message. There is no retry: one attempt per booking per dispatch cycle.
"""

from __future__ import annotations

import smtplib
from typing import Any, Callable, Optional

from booking_mailer.config.settings import SmtpConfig
from booking_mailer.domain.message import EmailMessage
from booking_mailer.utils.logger import StructuredLogger, get_logger, mask_email


class SendError(Exception):
    """Raised when the SMTP transport fails to deliver a message."""


class SmtpEmailClient:
    """
    Client for sending email through an SMTP relay.

    The connection is upgraded with STARTTLS when the server advertises it,
    then authenticated with the configured username and password.
    """

    def __init__(
        self,
        config: SmtpConfig,
        smtp_factory: Callable[..., Any] = smtplib.SMTP,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """
        Initialise the email client.

        Args:
            config: Static SMTP settings and credentials.
            smtp_factory: ``smtplib.SMTP``-compatible constructor (useful for testing).
            logger: Optional structured logger instance.
        """
        self.config = config
        self.smtp_factory = smtp_factory
        self.logger = logger or get_logger(__name__)

    def send(self, message: EmailMessage, to: str) -> None:
        """
        Send ``message`` to ``to``.

        Raises:
            SendError: On connection, authentication or delivery failure. The
                underlying transport message is kept in the error text.
        """
        raw = message.as_bytes(self.config.from_address, to)
        context = {"smtp_host": self.config.address, "to_masked": mask_email(to)}

        self.logger.debug("Sending email via SMTP", operation="send_email", context=context)
        try:
            client = self._connect()
            try:
                client.ehlo()
                if client.has_extn("starttls"):
                    client.starttls()
                    client.ehlo()
                client.login(self.config.username, self.config.password)
                client.sendmail(self.config.from_address, [to], raw)
            finally:
                self._close(client)
        except (smtplib.SMTPException, OSError) as exc:
            self.logger.error(
                "Email delivery failed",
                operation="send_email",
                context=context,
                error=str(exc),
            )
            raise SendError(f"error sending email: {exc}") from exc

        self.logger.info("Email delivered", operation="send_email", context=context)

    def _connect(self):
        port = int(self.config.port)
        if self.config.timeout_seconds is not None:
            return self.smtp_factory(self.config.host, port, timeout=self.config.timeout_seconds)
        return self.smtp_factory(self.config.host, port)

    def _close(self, client) -> None:
        try:
            client.quit()
        except (smtplib.SMTPException, OSError) as exc:
            self.logger.debug(
                "SMTP quit failed", operation="send_email", context={"error": str(exc)}
            )
