from fastapi import APIRouter, Depends
from typing import Any

from app.schemas.account import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    OtpIssuedResponse,
    ProfileResponse,
    ResendOtpRequest,
    SignupRequest,
    VerifyOtpRequest,
)
from app.services.auth import AuthService, get_auth_service, get_current_account_id

router = APIRouter(prefix="/auth", tags=["auth"])

# AuthError subclasses raised below are rendered by the handler registered in main.py

@router.post("/signup", response_model=OtpIssuedResponse, response_model_exclude_none=True)
async def signup(data: SignupRequest, service: AuthService = Depends(get_auth_service)) -> Any:
    return await service.signup(
        name=data.name,
        email=data.email,
        phone=data.phone or data.number,
        password=data.password,
    )

@router.post("/verify-otp", response_model=MessageResponse)
async def verify_otp(data: VerifyOtpRequest, service: AuthService = Depends(get_auth_service)) -> Any:
    return await service.verify_otp(data.email, data.otp)

@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, service: AuthService = Depends(get_auth_service)) -> Any:
    return await service.login(data.email, data.password)

@router.post("/resend-otp", response_model=OtpIssuedResponse, response_model_exclude_none=True)
async def resend_otp(data: ResendOtpRequest, service: AuthService = Depends(get_auth_service)) -> Any:
    return await service.resend_otp(data.email)

@router.get("/profile", response_model=ProfileResponse)
async def read_profile(
    account_id: str = Depends(get_current_account_id),
    service: AuthService = Depends(get_auth_service),
) -> Any:
    return await service.get_profile(account_id)
