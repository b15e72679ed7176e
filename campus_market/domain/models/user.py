"""User domain model for campus accounts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class User:
    """
    Registered campus member.

    Attributes:
        id: Unique identifier
        name: Display name
        email: Login email (unique, lower case)
        password_hash: bcrypt hash, never serialised
        phone: 10-digit phone number
        whatsapp: 10-digit WhatsApp number
        year: Year of study (FE, SE, TE, BE)
        branch: Academic branch
        institutional_id: Campus ID card number (unique)
        profile_image: Optional avatar URL
        is_verified: Whether the email OTP has been confirmed
        email_otp: Pending one-time code, cleared on verification
        email_otp_expiry: Expiry of the pending code
        rating: Seller rating between 0 and 5
        total_ratings: Number of ratings received
        created_at: Account creation timestamp
        updated_at: Last update timestamp
    """

    id: int
    name: str
    email: str
    password_hash: str
    phone: str
    whatsapp: str
    year: str
    branch: str
    institutional_id: str
    profile_image: str
    is_verified: bool
    email_otp: Optional[str]
    email_otp_expiry: Optional[datetime]
    rating: float
    total_ratings: int
    created_at: datetime
    updated_at: datetime

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} verified={self.is_verified}>"
