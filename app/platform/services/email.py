import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Optional

import requests
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.platform.config import Settings
from app.platform.logger import get_logger

logger = get_logger("email_service")

template_dir = Path(__file__).resolve().parent.parent.parent / "features" / "auth" / "template"

env = Environment(
    loader=FileSystemLoader(str(template_dir)),
    autoescape=select_autoescape(["html"]),
)


class EmailDeliveryError(Exception):
    pass


def render_template(name: str, **context) -> str:
    return env.get_template(name).render(**context)


class Mailer:
    """
    Outbound transactional email.

    Sends through the HTTP email API when a key is configured and falls back
    to direct SMTP otherwise (or when the API call fails).
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def from_header(self) -> str:
        return f"{self.settings.MAIL_FROM_NAME} <{self.settings.MAIL_FROM_ADDRESS}>"

    def send(self, to_email: str, subject: str, html: str, text: Optional[str] = None) -> None:
        if not to_email or not subject or not (html or text):
            raise ValueError("send requires: to_email, subject, and html or text")

        if self.settings.EMAIL_API_URL and self.settings.EMAIL_API_KEY:
            try:
                self.send_via_api(to_email, subject, html, text)
                return
            except EmailDeliveryError as e:
                logger.error(f"Email API failed: {str(e)}")
                logger.info("Attempting direct SMTP as fallback...")
        else:
            logger.warning("Email API not configured, attempting direct SMTP")

        self.send_via_smtp(to_email, subject, html, text)

    def send_via_api(self, to_email: str, subject: str, html: str, text: Optional[str] = None):
        payload = {
            "from": self.from_header,
            "to": [to_email],
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text

        headers = {
            "Authorization": f"Bearer {self.settings.EMAIL_API_KEY}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(
                self.settings.EMAIL_API_URL,
                json=payload,
                headers=headers,
                timeout=self.settings.EMAIL_API_TIMEOUT,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout:
            logger.error(f"Email API timeout for {to_email}")
            raise EmailDeliveryError("Email API timeout")
        except requests.exceptions.RequestException as e:
            if getattr(e, "response", None) is not None:
                logger.error(f"Response status: {e.response.status_code}")
                logger.error(f"Response body: {e.response.text}")
            raise EmailDeliveryError(f"Email API error: {str(e)}")

        logger.info(f"Email sent via API to {to_email}")

    def send_via_smtp(self, to_email: str, subject: str, html: str, text: Optional[str] = None):
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_header
        msg["To"] = to_email

        if text:
            msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        settings = self.settings
        try:
            if settings.MAIL_PORT == 465:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(settings.MAIL_HOST, settings.MAIL_PORT, context=context) as server:
                    server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
                    server.sendmail(settings.MAIL_FROM_ADDRESS, to_email, msg.as_string())
            else:
                with smtplib.SMTP(settings.MAIL_HOST, settings.MAIL_PORT) as server:
                    server.ehlo()

                    if str(settings.MAIL_ENCRYPTION).upper() in ["TLS", "TRUE"]:
                        server.starttls()
                        server.ehlo()

                    server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
                    server.sendmail(settings.MAIL_FROM_ADDRESS, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"CRITICAL EMAIL ERROR: {str(e)}")
            raise EmailDeliveryError(f"SMTP delivery failed: {str(e)}")

        logger.info(f"Email sent via SMTP to {to_email}")
