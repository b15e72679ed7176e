from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class _LoosePayload(BaseModel):
    """JSON transport shape; the pydantic models in ``domain.validation`` enforce field rules."""

    model_config = ConfigDict(populate_by_name=True)

    def as_fields(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class RegisterPayload(_LoosePayload):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    year: Optional[str] = None
    branch: Optional[str] = None
    institutional_id: Optional[str] = Field(default=None, alias="institutionalId")


class VerifyEmailPayload(_LoosePayload):
    email: Optional[str] = None
    otp: Optional[str] = None


class ResendOtpPayload(_LoosePayload):
    email: Optional[str] = None


class LoginPayload(_LoosePayload):
    email: Optional[str] = None
    password: Optional[str] = None
