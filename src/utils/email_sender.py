"""Outgoing email collaborator.

The auth flow only needs ``send(to_address, subject, body) -> bool``. The
default implementation writes the message to the log; a real transport can
be plugged in by overriding the ``get_email_sender`` dependency.
"""

import logging

logger = logging.getLogger(__name__)


class EmailSender:
    """Interface for sending a single plain-text email."""

    def send(self, to_address: str, subject: str, body: str) -> bool:
        """Send an email.

        Args:
            to_address: Recipient address.
            subject: Subject line.
            body: Plain-text body.

        Returns:
            True if the message was handed off, False otherwise.
        """
        raise NotImplementedError


class LoggingEmailSender(EmailSender):
    """Writes outgoing mail to the application log instead of delivering it."""

    def send(self, to_address: str, subject: str, body: str) -> bool:
        logger.info("Email to %s: %s\n%s", to_address, subject, body)
        return True
