import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Awaitable, Callable, List, Optional, Sequence

from app.core.config import settings
from app.utils.email import ChannelError, EmailChannel, MailMessage, build_channels, render_otp_email
from app.utils.errors import DeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 2
    delay: float = 0.5


class NotificationDispatcher:
    """
    Delivers a message through an ordered list of channels.

    Unconfigured channels are skipped. Each configured channel gets
    `policy.attempts` tries with a fixed pause in between; when a channel is
    exhausted the next one is tried. DeliveryError is raised only once every
    channel has failed.
    """

    def __init__(
        self,
        channels: Sequence[EmailChannel],
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.channels = list(channels)
        self.policy = policy or RetryPolicy()
        self.sleep = sleep

    @property
    def available_channels(self) -> List[EmailChannel]:
        return [channel for channel in self.channels if channel.is_configured()]

    async def dispatch(self, message: MailMessage) -> str:
        """Send `message`; returns the name of the channel that delivered it."""
        channels = self.available_channels
        if not channels:
            logger.error("No mail channel configured. Set SENDGRID_API_KEY or SMTP_HOST/SMTP_USERNAME/SMTP_PASSWORD")
            raise DeliveryError("Signup failed (no-mailer-config)")

        last_error: Optional[ChannelError] = None
        for channel in channels:
            for attempt in range(1, self.policy.attempts + 1):
                try:
                    await channel.send(message)
                    logger.info("Delivered to %s via %s (attempt %d)", message.to_email, channel.name, attempt)
                    return channel.name
                except ChannelError as e:
                    last_error = e
                    logger.warning("%s attempt %d failed: %s", channel.name, attempt, e)
                    if attempt < self.policy.attempts:
                        await self.sleep(self.policy.delay)
            logger.error("%s failed after %d attempts, falling through", channel.name, self.policy.attempts)

        raise DeliveryError(error=str(last_error))

    async def send_otp(self, to_email: str, name: str, otp: str, minutes: int) -> str:
        message = render_otp_email(to_email, name, otp, minutes)
        return await self.dispatch(message)


@lru_cache()
def get_dispatcher() -> NotificationDispatcher:
    """Process-wide dispatcher built once from settings."""
    return NotificationDispatcher(build_channels(settings))
