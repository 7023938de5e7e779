"""
Mail Delivery

The relay hands each accepted submission to a ``Mailer``. ``SMTPMailer``
talks to a real SMTP submission server; ``NotificationLogMailer`` appends the
message to a JSON-lines file and is used when no SMTP credentials are set.
Transport failures surface as ``DeliveryError``.
"""

import json
import logging
import smtplib
import ssl
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Optional

from core.error_handling import DeliveryError
from core.secrets import SMTP_CREDENTIALS, describe_setting, get_secret, require_secrets

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_LOG = Path("data") / "contact_notifications.log"


class Mailer(ABC):
    """Delivery collaborator contract."""

    @abstractmethod
    def send(self, to_address: str, from_display: str, subject: str, html_body: str,
             reply_to: Optional[str] = None) -> None:
        """
        Deliver one message.

        Raises:
            DeliveryError: If the message could not be handed off
        """


def build_message(to_address: str, from_display: str, subject: str, html_body: str,
                  reply_to: Optional[str] = None) -> EmailMessage:
    """Assemble an HTML email message."""
    msg = EmailMessage()
    msg["From"] = from_display
    msg["To"] = to_address
    msg["Subject"] = subject
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.set_content("This message requires an HTML capable mail client.")
    msg.add_alternative(html_body, subtype="html")
    return msg


def format_sender(name: str, address: str) -> str:
    """Render a ``Name <address>`` sender header value."""
    return formataddr((name, address))


class SMTPMailer(Mailer):
    """Send mail through an SMTP submission server."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        tls_mode: str = "starttls",
        timeout: float = 20.0,
    ):
        """
        Args:
            host: SMTP server host
            port: SMTP server port
            username: Login user, if the server requires authentication
            password: Login password
            tls_mode: 'starttls' or 'ssl'
            timeout: Socket timeout in seconds
        """
        if tls_mode not in ("starttls", "ssl"):
            raise ValueError(f"Unsupported SMTP TLS mode: {tls_mode}")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.tls_mode = tls_mode
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.tls_mode == "ssl":
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)
        client = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            client.starttls(context=context)
        except (smtplib.SMTPException, OSError):
            client.close()
            raise
        return client

    def send(self, to_address: str, from_display: str, subject: str, html_body: str,
             reply_to: Optional[str] = None) -> None:
        msg = build_message(to_address, from_display, subject, html_body, reply_to)
        try:
            with self._connect() as client:
                if self.username and self.password:
                    client.login(self.username, self.password)
                client.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(
                f"SMTP delivery failed: {e}",
                component="mailer",
                context={"host": self.host, "port": self.port},
            ) from e


class NotificationLogMailer(Mailer):
    """Append messages to a JSON-lines notification log."""

    def __init__(self, log_path: Path = DEFAULT_NOTIFICATION_LOG):
        self.log_path = Path(log_path)
        self._lock = threading.Lock()

    def send(self, to_address: str, from_display: str, subject: str, html_body: str,
             reply_to: Optional[str] = None) -> None:
        entry = {
            "timestamp": datetime.now().isoformat(),
            "to": to_address,
            "from": from_display,
            "reply_to": reply_to,
            "subject": subject,
            "html": html_body,
        }
        try:
            with self._lock:
                self.log_path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.log_path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry) + "\n")
        except OSError as e:
            raise DeliveryError(
                f"Could not write notification log: {e}",
                component="mailer",
                context={"path": str(self.log_path)},
            ) from e


def build_mailer() -> Mailer:
    """
    Select a mailer from the environment.

    SMTP is used as soon as EMAIL_USER or EMAIL_PASS is set, and then both
    are required; SMTP_HOST, SMTP_PORT and SMTP_TLS_MODE refine the
    connection. Otherwise messages go to the notification log at
    NOTIFICATION_LOG.

    Raises:
        ValueError: If only one of the SMTP credentials is set
    """
    if any(get_secret(name) for name in SMTP_CREDENTIALS):
        credentials = require_secrets(SMTP_CREDENTIALS)
        username = credentials["EMAIL_USER"]
        password = credentials["EMAIL_PASS"]
        host = get_secret("SMTP_HOST", "smtp.gmail.com")
        port = int(get_secret("SMTP_PORT", "587"))
        tls_mode = get_secret("SMTP_TLS_MODE", "starttls").strip().lower()
        logger.info(
            f"Using SMTP mailer {host}:{port} ({tls_mode}) as {username}, "
            f"password {describe_setting('EMAIL_PASS', password)}"
        )
        return SMTPMailer(host, port, username, password, tls_mode)

    log_path = Path(get_secret("NOTIFICATION_LOG", str(DEFAULT_NOTIFICATION_LOG)))
    logger.warning(f"SMTP credentials not set; logging notifications to {log_path}")
    return NotificationLogMailer(log_path)
