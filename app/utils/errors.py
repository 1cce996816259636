from typing import Any, Dict, Optional


class AuthError(Exception):
    """
    Base class for every failure the auth workflow reports to a caller.

    Carries a stable caller-visible message, a machine-readable code and the
    HTTP status the API layer answers with. `error` holds optional detail
    (e.g. the last mail provider error) that is echoed back as-is.
    """
    default_message = "Authentication error"
    code = "auth_error"
    status = 400

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None):
        self.message = message or self.default_message
        self.error = error
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": self.message}
        if self.error:
            payload["error"] = self.error
        return payload


class ValidationError(AuthError):
    default_message = "All fields are required"
    code = "validation_error"


class ConflictError(AuthError):
    default_message = "Email already registered"
    code = "conflict"


class NotFoundError(AuthError):
    default_message = "User not found"
    code = "not_found"
    status = 404


class AlreadyVerifiedError(AuthError):
    default_message = "User already verified"
    code = "already_verified"


class InvalidOtpError(AuthError):
    default_message = "Invalid OTP"
    code = "invalid_otp"


class ExpiredOtpError(AuthError):
    default_message = "OTP expired"
    code = "expired_otp"


class UnverifiedError(AuthError):
    default_message = "Email not verified"
    code = "unverified"
    status = 403


class InvalidCredentialsError(AuthError):
    default_message = "Invalid credentials"
    code = "invalid_credentials"


class TokenError(AuthError):
    default_message = "Not authorized"
    code = "invalid_token"
    status = 401


class DeliveryError(AuthError):
    """All notification channels were exhausted (or none is configured)."""
    default_message = "Signup failed (email)"
    code = "delivery_failed"
    status = 500


class StorageError(AuthError):
    default_message = "Storage failure"
    code = "storage_error"
    status = 500
