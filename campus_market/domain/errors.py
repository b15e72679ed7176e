"""Domain error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional


class MarketplaceError(Exception):
    """Base class for failures that are reported to the caller."""

    status_code = 500
    default_message = "Unexpected error."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_detail(self) -> Dict[str, Any]:
        return {"message": self.message}


class ValidationError(MarketplaceError):
    status_code = 400
    default_message = "Validation failed."

    def __init__(self, errors: Mapping[str, str], message: Optional[str] = None) -> None:
        self.errors: Dict[str, str] = dict(errors)
        super().__init__(message)

    @property
    def fields(self) -> List[str]:
        return list(self.errors)

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["errors"] = [
            {"field": field, "message": message} for field, message in self.errors.items()
        ]
        return detail


class NoImagesError(MarketplaceError):
    status_code = 400
    default_message = "At least one image is required."


class ConflictError(MarketplaceError):
    status_code = 400
    default_message = "Resource already exists."


class NotFoundError(MarketplaceError):
    status_code = 404
    default_message = "Resource not found."


class ForbiddenError(MarketplaceError):
    status_code = 403
    default_message = "Not authorized to modify this resource."


class InvalidCredentialsError(MarketplaceError):
    status_code = 400
    default_message = "Invalid credentials."


class VerificationRequiredError(MarketplaceError):
    status_code = 400
    default_message = "Please verify your email before logging in."

    def __init__(self, email: str, message: Optional[str] = None) -> None:
        self.email = email
        super().__init__(message)

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["needsVerification"] = True
        detail["email"] = self.email
        return detail


class InvalidCodeError(MarketplaceError):
    status_code = 400
    default_message = "Invalid OTP."


class ExpiredCodeError(MarketplaceError):
    status_code = 400
    default_message = "OTP expired. Please request a new one."


class AlreadyVerifiedError(MarketplaceError):
    status_code = 400
    default_message = "Email already verified."


class DeliveryError(MarketplaceError):
    status_code = 500
    default_message = "Failed to send verification email. Please try again."


class UpstreamUploadError(MarketplaceError):
    # Never surfaced to callers; listings fall back to a placeholder image.
    status_code = 502
    default_message = "Image upload failed."


class AuthTokenError(MarketplaceError):
    status_code = 401
    default_message = "Token is not valid."
