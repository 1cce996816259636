import logging
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import List, Optional

import aiosmtplib
import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)

SENDGRID_SMTP_HOST = "smtp.sendgrid.net"
SENDGRID_SMTP_PORT = 587
SENDGRID_SMTP_USERNAME = "apikey"


@dataclass
class MailMessage:
    to_email: str
    subject: str
    text: str
    html: Optional[str] = None


class ChannelError(Exception):
    """A delivery attempt through one channel failed."""


class EmailChannel:
    name = "email"

    def is_configured(self) -> bool:
        raise NotImplementedError

    async def send(self, message: MailMessage) -> None:
        raise NotImplementedError


class SendGridChannel(EmailChannel):
    """SendGrid v3 Web API over HTTPS."""
    name = "sendgrid"

    def __init__(self, api_key: str, from_email: str, api_url: str, timeout: float = 10.0):
        self.api_key = api_key
        self.from_email = from_email
        self.api_url = api_url
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key and self.from_email)

    def _payload(self, message: MailMessage) -> dict:
        content = [{"type": "text/plain", "value": message.text}]
        if message.html:
            content.append({"type": "text/html", "value": message.html})
        return {
            "personalizations": [{"to": [{"email": message.to_email}]}],
            "from": {"email": self.from_email},
            "subject": message.subject,
            "content": content,
        }

    async def send(self, message: MailMessage) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=self._payload(message),
                )
        except httpx.HTTPError as e:
            raise ChannelError(f"SendGrid request failed: {e}") from e

        if response.status_code not in (200, 202):
            raise ChannelError(f"SendGrid returned {response.status_code}: {response.text}")
        logger.info("SendGrid accepted message to %s (status %s)", message.to_email, response.status_code)


class SmtpChannel(EmailChannel):
    """Plain SMTP with STARTTLS (Gmail app password, SendGrid relay, ...)."""
    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_email: str,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.host and self.username and self.password)

    def _mime(self, message: MailMessage) -> MIMEMultipart:
        mime = MIMEMultipart("alternative")
        mime["From"] = self.from_email
        mime["To"] = message.to_email
        mime["Subject"] = message.subject
        mime.attach(MIMEText(message.text, "plain"))
        if message.html:
            mime.attach(MIMEText(message.html, "html"))
        return mime

    async def send(self, message: MailMessage) -> None:
        try:
            await aiosmtplib.send(
                self._mime(message),
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=True,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise ChannelError(f"SMTP delivery via {self.host} failed: {e}") from e
        logger.info("SMTP server %s accepted message to %s", self.host, message.to_email)


def build_channels(config: Settings) -> List[EmailChannel]:
    """
    Ordered delivery channels: SendGrid Web API first, SMTP as fallback.
    Without an explicit SMTP host, a SendGrid key doubles as SMTP relay credentials.
    """
    channels: List[EmailChannel] = [
        SendGridChannel(
            api_key=config.SENDGRID_API_KEY,
            from_email=config.EMAIL_FROM,
            api_url=config.SENDGRID_API_URL,
            timeout=config.MAIL_TIMEOUT_SECONDS,
        )
    ]

    if config.SMTP_HOST:
        smtp = SmtpChannel(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            username=config.SMTP_USERNAME,
            password=config.SMTP_PASSWORD,
            from_email=config.EMAIL_FROM,
            timeout=config.MAIL_TIMEOUT_SECONDS,
        )
    else:
        smtp = SmtpChannel(
            host=SENDGRID_SMTP_HOST if config.SENDGRID_API_KEY else "",
            port=SENDGRID_SMTP_PORT,
            username=SENDGRID_SMTP_USERNAME,
            password=config.SENDGRID_API_KEY,
            from_email=config.EMAIL_FROM,
            timeout=config.MAIL_TIMEOUT_SECONDS,
        )
    channels.append(smtp)
    return channels


def render_otp_email(to_email: str, name: str, otp: str, minutes: int) -> MailMessage:
    subject = "Your verification code"

    text = (
        f"Hello {name},\n\n"
        f"Your OTP is {otp}. It expires in {minutes} minutes.\n\n"
        "If you didn't request this, ignore this mail."
    )

    html = f"""
    <html>
    <body>
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h2>Your Verification Code</h2>
            <p>Hello {escape(name)}, use the following code to verify your email:</p>
            <div style="background-color: #f0f0f0; padding: 15px; text-align: center; font-size: 24px; font-weight: bold; letter-spacing: 5px; margin: 20px 0;">
                {escape(otp)}
            </div>
            <p>This code will expire in {minutes} minutes.</p>
            <p>If you didn't request this code, you can safely ignore this email.</p>
        </div>
    </body>
    </html>
    """

    return MailMessage(to_email=to_email, subject=subject, text=text, html=html)
