"""Pydantic schemas for API request/response serialization."""

import re
from datetime import datetime
from decimal import Decimal
from typing import Optional, Any

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

PASSWORD_RULE = (
    "Password must be 8-32 characters and include an uppercase letter, "
    "a lowercase letter, a number and a special character"
)
PASSWORD_MAX_BYTES = 72


def check_password_strength(value: str) -> str:
    if not (8 <= len(value) <= 32):
        raise ValueError(PASSWORD_RULE)
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must not exceed {PASSWORD_MAX_BYTES} bytes")
    for pattern in (r"[a-z]", r"[A-Z]", r"\d", r"[^A-Za-z0-9]"):
        if not re.search(pattern, value):
            raise ValueError(PASSWORD_RULE)
    return value


class NewPasswordMixin(BaseModel):
    """Adds the password policy and confirmation check to ``new_password``."""

    new_password: str
    confirm_password: Optional[str] = None

    @field_validator("new_password")
    @classmethod
    def _strong_new_password(cls, v: str) -> str:
        return check_password_strength(v)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.confirm_password is not None and self.confirm_password != self.new_password:
            raise ValueError("Passwords do not match")
        return self


# ---- Auth ----
class RegisterRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone_number: str = Field(..., min_length=5, max_length=30)
    nat_id: Optional[str] = Field(None, max_length=50)
    department: Optional[str] = Field(None, max_length=100)
    password: str
    confirm_password: Optional[str] = None

    @field_validator("password")
    @classmethod
    def _strong_password(cls, v: str) -> str:
        return check_password_strength(v)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    remember_me: bool = False


class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class EmailRequest(BaseModel):
    email: EmailStr


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class ResetPasswordRequest(NewPasswordMixin):
    token: str = Field(..., min_length=1)


class ChangePasswordRequest(NewPasswordMixin):
    current_password: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, min_length=5, max_length=30)


# ---- User ----
class UserOut(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    phone_number: str
    nat_id: Optional[str] = None
    department: Optional[str] = None
    role: str = Field("USER", validation_alias="role_name")
    is_verified: bool = False
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class UserStatusUpdate(BaseModel):
    is_active: bool


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    user_id: Optional[str] = None
    email: Optional[str] = None
    action: str
    description: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Payslip ----
class PayslipBase(BaseModel):
    basic_pay: Decimal = Decimal("0")
    commission: Decimal = Decimal("0")
    backpay: Decimal = Decimal("0")
    gross_pay: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    net_pay: Decimal = Decimal("0")
    email_address: Optional[EmailStr] = None


class PayslipCreate(PayslipBase):
    period: str = Field(..., min_length=1, max_length=20)
    nat_id: Optional[str] = None
    phone_number: Optional[str] = None

    @model_validator(mode="after")
    def _has_owner_key(self):
        if not self.nat_id and not self.phone_number:
            raise ValueError("Either nat_id or phone_number is required")
        return self


class PayslipUpdate(BaseModel):
    period: Optional[str] = Field(None, min_length=1, max_length=20)
    nat_id: Optional[str] = None
    phone_number: Optional[str] = None
    basic_pay: Optional[Decimal] = None
    commission: Optional[Decimal] = None
    backpay: Optional[Decimal] = None
    gross_pay: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    net_pay: Optional[Decimal] = None
    email_address: Optional[EmailStr] = None


class PayslipOut(PayslipBase):
    id: int
    user_id: str
    period: str
    nat_id: Optional[str] = None
    phone_number: Optional[str] = None
    email_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Videos ----
class VideoUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = None


# ---- Display settings ----
class DisplaySettingUpdate(BaseModel):
    value: Any


# ---- Common ----
class MessageResponse(BaseModel):
    success: bool = True
    message: str
