"""Service for sending emails."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: str = "VidSocial",
    ):
        self.smtp_host = smtp_host or ""
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username or ""
        self.smtp_password = smtp_password or ""
        self.from_email = from_email or ""
        self.from_name = from_name
        self.enabled = bool(self.smtp_host and self.smtp_username and self.from_email)

    def send_welcome_email(self, to_email: str, name: str, base_url: str) -> bool:
        """
        Send the welcome email after registration.

        Args:
            to_email: Recipient email
            name: Recipient display name
            base_url: Frontend URL linked from the email

        Returns:
            True if sent (or logged in development), False otherwise
        """
        if not self.enabled:
            logger.info("[EMAIL] Welcome email for %s (SMTP disabled)", to_email)
            return True

        subject = f"Welcome to {self.from_name}!"
        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <div style="background-color: #0f172a; padding: 30px; border-radius: 10px; text-align: center;">
                    <h1 style="color: #93c5fd; margin: 0;">{self.from_name}</h1>
                </div>

                <div style="padding: 30px 0;">
                    <h2 style="color: #1e293b; margin-bottom: 20px;">Hi {name}, welcome aboard!</h2>

                    <p style="color: #475569; line-height: 1.6; margin-bottom: 20px;">
                        Upload your first video, let us draft the captions and schedule it
                        to every platform you publish on.
                    </p>

                    <div style="text-align: center; margin: 30px 0;">
                        <a href="{base_url}"
                           style="background-color: #3b82f6; color: white; padding: 15px 30px;
                                  text-decoration: none; border-radius: 5px; display: inline-block;
                                  font-weight: bold;">
                            Open {self.from_name}
                        </a>
                    </div>
                </div>
            </body>
        </html>
        """

        text_body = f"""
        Hi {name}, welcome to {self.from_name}!

        Upload your first video, let us draft the captions and schedule it
        to every platform you publish on:
        {base_url}
        """

        return self._send_email(to_email, subject, html_body, text_body)

    def _send_email(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.from_name} <{self.from_email}>"
            msg["To"] = to_email

            msg.attach(MIMEText(text_body, "plain", "utf-8"))
            msg.attach(MIMEText(html_body, "html", "utf-8"))

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            return True

        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Failed to send email to %s: %s", to_email, exc)
            return False
