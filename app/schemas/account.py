from pydantic import BaseModel
from typing import Optional
from datetime import datetime

# Request bodies keep every field optional: missing input is reported by the
# workflow as a ValidationError with a stable message, not as a 422.

class SignupRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    # Older clients send the phone number as "number"
    number: Optional[str] = None
    password: Optional[str] = None

class VerifyOtpRequest(BaseModel):
    email: Optional[str] = None
    otp: Optional[str] = None

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class ResendOtpRequest(BaseModel):
    email: Optional[str] = None

class AccountPublic(BaseModel):
    id: str
    name: str
    email: str
    phone: str

    class Config:
        from_attributes = True

class AccountProfile(AccountPublic):
    is_verified: bool
    created_at: Optional[datetime] = None

class MessageResponse(BaseModel):
    message: str

class OtpIssuedResponse(MessageResponse):
    otp: Optional[str] = None

class LoginResponse(MessageResponse):
    token: str
    user: AccountPublic

class ProfileResponse(BaseModel):
    user: AccountProfile
