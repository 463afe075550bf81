"""
Email SMTP channel.
"""

import asyncio
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Any, Dict, Optional

from cryptosense.core.exceptions import ChannelConfigurationError, DeliveryError
from cryptosense.core.models.config_schema import EmailConfig
from cryptosense.core.models.enums import AlertSeverity, NotificationMethod
from .base import NotificationChannel

SEVERITY_PREFIX = {
    AlertSeverity.LOW: "[Info]",
    AlertSeverity.MEDIUM: "[Alert]",
    AlertSeverity.HIGH: "[Warning]",
    AlertSeverity.CRITICAL: "[CRITICAL]",
}

SEVERITY_COLOR = {
    AlertSeverity.LOW: "#3498DB",
    AlertSeverity.MEDIUM: "#2ECC71",
    AlertSeverity.HIGH: "#FFA500",
    AlertSeverity.CRITICAL: "#FF0000",
}


class EmailChannel(NotificationChannel):
    """Sends alerts via SMTP; the blocking client runs in a worker thread."""

    method = NotificationMethod.EMAIL

    def __init__(self, config: EmailConfig):
        self.config = config

    async def _deliver(self, user, alert, override_config: Dict[str, Any]) -> Optional[int]:
        recipient = override_config.get("email") or getattr(user, "email", None)
        if not recipient:
            raise ChannelConfigurationError("No email address configured for email notifications")
        if not self.config.smtp_host:
            raise ChannelConfigurationError("SMTP server is not configured")

        message = self._create_message(alert, recipient)
        await asyncio.to_thread(self._send_message, message)
        return None

    def _send_message(self, message: MIMEMultipart) -> None:
        try:
            with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port) as server:
                if self.config.use_tls:
                    server.starttls()
                if self.config.smtp_user:
                    server.login(self.config.smtp_user, self.config.smtp_password or "")
                server.send_message(message)
        except smtplib.SMTPAuthenticationError as e:
            raise DeliveryError(f"Authentication failed: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP error: {e}") from e

    def _create_message(self, alert, recipient: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = self._create_subject(alert)
        message["From"] = self.config.from_address
        message["To"] = recipient

        message.attach(MIMEText(alert.message, "plain"))
        message.attach(MIMEText(self._create_html_body(alert), "html"))
        return message

    def _create_subject(self, alert) -> str:
        prefix = SEVERITY_PREFIX.get(alert.severity, "[Alert]")
        return f"{prefix} {alert.title}"

    def _create_html_body(self, alert) -> str:
        color = SEVERITY_COLOR.get(alert.severity, "#3498DB")
        paragraphs = "".join(
            f"<p>{block.replace(chr(10), '<br>')}</p>"
            for block in alert.message.split("\n\n")
        )
        return f"""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif;">
  <div style="border-left: 4px solid {color}; padding-left: 12px;">
    <h2 style="color: {color};">{alert.title}</h2>
    {paragraphs}
  </div>
  <p style="color: #888; font-size: 12px;">CryptoSense market alerts</p>
</body>
</html>
"""
