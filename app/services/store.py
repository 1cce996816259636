import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.account import Account
from app.utils.errors import ConflictError, StorageError

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountStore:
    """
    Persistence for Account records.

    Each mutating call is its own unit of work: it commits on success and
    rolls back on any database error, which is re-raised as StorageError.
    There is no locking across calls, so concurrent writers for the same
    email resolve as last write wins.
    """

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, account: Account) -> Account:
        try:
            self.db.commit()
            self.db.refresh(account)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to persist account %s", account.email)
            raise StorageError(error=str(e)) from e
        return account

    async def find_by_email(self, email: str) -> Optional[Account]:
        try:
            return self.db.query(Account).filter(Account.email == normalize_email(email)).first()
        except SQLAlchemyError as e:
            logger.exception("Account lookup by email failed")
            raise StorageError(error=str(e)) from e

    async def get_by_id(self, account_id: str) -> Optional[Account]:
        try:
            return self.db.query(Account).filter(Account.id == account_id).first()
        except SQLAlchemyError as e:
            logger.exception("Account lookup by id failed")
            raise StorageError(error=str(e)) from e

    async def upsert_for_signup(
        self,
        email: str,
        name: str,
        phone: str,
        hashed_password: str,
        otp: str,
        expires_at: datetime,
    ) -> Account:
        """
        Insert a new unverified account, or overwrite the pending one in place.
        Verified accounts must be filtered out by the caller.
        """
        email = normalize_email(email)
        account = await self.find_by_email(email)

        if account is None:
            account = Account(email=email)
            self.db.add(account)
        elif account.is_verified:
            raise ConflictError()

        account.name = name
        account.phone = phone
        account.hashed_password = hashed_password
        account.is_verified = False
        account.otp_code = otp
        account.otp_expires_at = expires_at
        return self._commit(account)

    async def mark_verified(self, account: Account) -> Account:
        account.is_verified = True
        account.otp_code = None
        account.otp_expires_at = None
        return self._commit(account)

    async def mark_unverified(self, account: Account) -> Account:
        account.is_verified = False
        return self._commit(account)

    async def update_otp(self, account: Account, otp: str, expires_at: datetime) -> Account:
        account.otp_code = otp
        account.otp_expires_at = expires_at
        return self._commit(account)

    async def update_password(self, account: Account, hashed_password: str) -> Account:
        account.hashed_password = hashed_password
        return self._commit(account)

    async def create_account(
        self,
        email: str,
        name: str,
        phone: str,
        hashed_password: str,
        verified: bool = False,
    ) -> Account:
        account = Account(
            email=normalize_email(email),
            name=name,
            phone=phone,
            hashed_password=hashed_password,
            is_verified=verified,
        )
        self.db.add(account)
        return self._commit(account)
