import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from app.core.config import settings
from app.core.security import utcnow

OTP_LOWER_BOUND = 100000
OTP_UPPER_BOUND = 999999


class OtpGenerator:
    """
    Issues 6-digit verification codes, uniform over [100000, 999999], together
    with the absolute time they stop being valid.
    """

    def __init__(
        self,
        validity: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
        randbelow: Callable[[int], int] = secrets.randbelow,
    ):
        self.validity = validity or timedelta(minutes=settings.OTP_EXPIRE_MINUTES)
        self.clock = clock
        self.randbelow = randbelow

    @property
    def validity_minutes(self) -> int:
        return int(self.validity.total_seconds() // 60)

    def generate(self) -> Tuple[str, datetime]:
        span = OTP_UPPER_BOUND - OTP_LOWER_BOUND + 1
        code = str(OTP_LOWER_BOUND + self.randbelow(span))
        return code, self.clock() + self.validity
