from sqlalchemy import Boolean, Column, String, DateTime
from sqlalchemy.sql import func
import uuid

from app.db.base import Base

class Account(Base):
    __tablename__ = "accounts"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    hashed_password = Column(String, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    # Pending verification; both set or both NULL, always NULL once verified
    otp_code = Column(String, nullable=True)
    otp_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def has_pending_otp(self) -> bool:
        return self.otp_code is not None and self.otp_expires_at is not None

    def __repr__(self):
        return f"<Account {self.email} verified={self.is_verified}>"
