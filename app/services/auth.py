import functools
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.config import Settings, settings
from app.core.security import create_access_token, decode_access_token, get_password_hash, utcnow, verify_password
from app.db.base import get_db
from app.models.account import Account
from app.schemas.account import AccountProfile, AccountPublic
from app.services.notifications import NotificationDispatcher, get_dispatcher
from app.services.otp import OtpGenerator
from app.services.store import AccountStore
from app.utils.errors import (
    AlreadyVerifiedError,
    ConflictError,
    DeliveryError,
    ExpiredOtpError,
    InvalidCredentialsError,
    InvalidOtpError,
    NotFoundError,
    StorageError,
    TokenError,
    UnverifiedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/login", auto_error=False)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def storage_failure(message: str):
    """Relabel store failures with the operation's generic message; database detail stays in the logs."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except StorageError as e:
                raise StorageError(message) from e
        return wrapper
    return decorator


class AuthService:
    """
    Signup / verification / login workflow.

    An account moves NEW -> UNVERIFIED (signup) -> VERIFIED (verify_otp) and
    never back through this class. Every public method either returns the
    caller-visible payload or raises an AuthError subclass.
    """

    def __init__(
        self,
        store: AccountStore,
        dispatcher: NotificationDispatcher,
        otp_generator: Optional[OtpGenerator] = None,
        config: Settings = settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.otp_generator = otp_generator or OtpGenerator(clock=clock)
        self.config = config
        self.clock = clock

    async def _deliver_otp(self, account: Account, otp: str) -> Dict[str, Any]:
        if self.config.SKIP_EMAIL:
            logger.info("SKIP_EMAIL enabled - OTP for %s: %s", account.email, otp)
            return {"message": "OTP generated (skipped email)", "otp": otp}

        channel = await self.dispatcher.send_otp(
            account.email, account.name, otp, self.otp_generator.validity_minutes
        )
        logger.info("OTP for %s delivered via %s", account.email, channel)
        return {"message": "OTP sent to email"}

    @storage_failure("Signup failed")
    async def signup(self, name: Optional[str], email: Optional[str], phone: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        if _blank(name) or _blank(email) or _blank(phone) or _blank(password):
            raise ValidationError("All fields are required")

        existing = await self.store.find_by_email(email)
        if existing and existing.is_verified:
            raise ConflictError("Email already registered")

        otp, expires_at = self.otp_generator.generate()
        account = await self.store.upsert_for_signup(
            email=email,
            name=name.strip(),
            phone=phone.strip(),
            hashed_password=get_password_hash(password),
            otp=otp,
            expires_at=expires_at,
        )
        logger.info("Signup recorded for %s (%s)", account.email, "retry" if existing else "new")

        # A DeliveryError leaves the account in place so the user can sign up again to resend
        return await self._deliver_otp(account, otp)

    @storage_failure("OTP verification failed")
    async def verify_otp(self, email: Optional[str], otp: Optional[str]) -> Dict[str, Any]:
        if _blank(email) or _blank(otp):
            raise ValidationError("Email and OTP required")

        account = await self.store.find_by_email(email)
        if not account:
            raise NotFoundError("User not found")
        if account.is_verified:
            raise AlreadyVerifiedError("User already verified")
        # Code is compared first: a wrong code reports "invalid" even when expired
        if not account.has_pending_otp or account.otp_code != otp.strip():
            raise InvalidOtpError("Invalid OTP")
        if self.clock() > account.otp_expires_at:
            raise ExpiredOtpError("OTP expired")

        await self.store.mark_verified(account)
        logger.info("Account %s verified", account.email)
        return {"message": "Account verified successfully"}

    @storage_failure("Login failed")
    async def login(self, email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        if _blank(email) or _blank(password):
            raise ValidationError("Email and password required")

        account = await self.store.find_by_email(email)
        if not account:
            raise NotFoundError("User not found")
        if not account.is_verified:
            raise UnverifiedError("Email not verified")
        if not verify_password(password, account.hashed_password):
            raise InvalidCredentialsError("Invalid credentials")

        token = create_access_token(account.id)
        logger.info("Login for %s", account.email)
        return {
            "message": "Login successful",
            "token": token,
            "user": AccountPublic.model_validate(account).model_dump(),
        }

    @storage_failure("Failed to fetch profile")
    async def get_profile(self, account_id: str) -> Dict[str, Any]:
        account = await self.store.get_by_id(account_id)
        if not account:
            raise NotFoundError("User not found")
        return {"user": AccountProfile.model_validate(account).model_dump()}

    @storage_failure("Failed to resend OTP")
    async def resend_otp(self, email: Optional[str]) -> Dict[str, Any]:
        if _blank(email):
            raise ValidationError("Email required")

        account = await self.store.find_by_email(email)
        if not account:
            raise NotFoundError("User not found")
        if account.is_verified:
            raise AlreadyVerifiedError("User already verified")

        otp, expires_at = self.otp_generator.generate()
        await self.store.update_otp(account, otp, expires_at)
        logger.info("Issued new OTP for %s", account.email)
        try:
            return await self._deliver_otp(account, otp)
        except DeliveryError as e:
            raise DeliveryError("Failed to resend OTP (email)", error=e.error) from e


def get_auth_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AuthService:
    return AuthService(AccountStore(db), dispatcher)


async def get_current_account_id(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    if not token:
        raise TokenError("No token provided")
    payload = decode_access_token(token)
    return payload["sub"]
