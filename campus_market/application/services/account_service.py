"""Account registration, email verification and authentication."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import bcrypt
import jwt

from ...domain.errors import (
    AlreadyVerifiedError,
    AuthTokenError,
    ConflictError,
    DeliveryError,
    ExpiredCodeError,
    InvalidCodeError,
    InvalidCredentialsError,
    NotFoundError,
    VerificationRequiredError,
)
from ...domain.models import User
from ...domain.ports.notifications import Notifier
from ...domain.ports.persistence import UserRepository
from ...domain.validation import (
    MAX_PASSWORD_BYTES,
    normalize_email,
    validate_email_only,
    validate_login,
    validate_registration,
    validate_verification,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp() -> str:
    """Return a six digit numeric code."""
    return str(100000 + secrets.randbelow(900000))


def _password_matches(password: str, password_hash: str) -> bool:
    candidate = password.encode("utf-8")
    # Registration caps passwords at 72 bytes, so anything longer cannot match.
    if len(candidate) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(candidate, password_hash.encode("utf-8"))


class AccountService:
    """
    Drives an account from registration to verified.

    A new account starts unverified with exactly one pending code. Resending replaces the
    pending code; a successful verification clears it and issues a session token.
    """

    def __init__(
        self,
        user_repository: UserRepository,
        notifier: Notifier,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        jwt_expiration_days: int = 7,
        otp_expiration_minutes: int = 10,
        clock: Clock = utc_now,
    ) -> None:
        if not jwt_secret:
            raise RuntimeError("JWT_SECRET is not configured.")
        if jwt_secret == "change-me":
            logger.warning("JWT_SECRET is using the default value. Configure a real secret in production.")
        self.user_repository = user_repository
        self.notifier = notifier
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.token_lifetime = timedelta(days=jwt_expiration_days)
        self.otp_lifetime = timedelta(minutes=otp_expiration_minutes)
        self._clock = clock

    # Verification flow ------------------------------------------------------
    def register(self, fields: Mapping[str, Any]) -> User:
        """
        Create an unverified account and email its verification code.

        Raises:
            ValidationError: If any field is malformed
            ConflictError: If the email or ID card is already registered
            DeliveryError: If the code could not be sent; the account is removed again
        """
        registration = validate_registration(fields)

        if self.user_repository.get_user_by_email(registration.email):
            raise ConflictError("User already exists with this email")
        if self.user_repository.get_user_by_institutional_id(registration.institutional_id):
            raise ConflictError("ID card already registered")

        password_hash = bcrypt.hashpw(
            registration.password.encode("utf-8"), bcrypt.gensalt()
        ).decode("utf-8")
        otp = generate_otp()

        user = self.user_repository.create_user(
            name=registration.name,
            email=registration.email,
            password_hash=password_hash,
            phone=registration.phone,
            whatsapp=registration.whatsapp,
            year=registration.year,
            branch=registration.branch,
            institutional_id=registration.institutional_id,
            email_otp=otp,
            email_otp_expiry=self._clock() + self.otp_lifetime,
        )
        logger.info("Registered account %s (%s), awaiting verification", user.id, user.email)

        if not self._deliver_otp(user.email, otp):
            self.user_repository.delete_user(user.id)
            logger.warning("Rolled back account %s after failed code delivery", user.id)
            raise DeliveryError()
        return user

    def verify_email(self, fields: Mapping[str, Any]) -> Tuple[User, str]:
        email, otp = validate_verification(fields)
        user = self._require_user(email)
        if user.is_verified:
            raise AlreadyVerifiedError()
        if not user.email_otp or not secrets.compare_digest(user.email_otp, otp):
            raise InvalidCodeError()
        if user.email_otp_expiry is None or self._clock() > user.email_otp_expiry:
            raise ExpiredCodeError()

        if not self.user_repository.mark_user_verified(user.id):
            raise AlreadyVerifiedError()
        verified = self._require_user(email)
        logger.info("Account %s verified", verified.id)

        try:
            if not self.notifier.send_welcome_email(verified.email, verified.name):
                logger.warning("Welcome email to %s was not delivered", verified.email)
        except Exception:
            logger.exception("Welcome email to %s failed", verified.email)

        return verified, self.create_token(verified)

    def resend_otp(self, fields: Mapping[str, Any]) -> None:
        email = validate_email_only(fields)
        user = self._require_user(email)
        if user.is_verified:
            raise AlreadyVerifiedError()

        otp = generate_otp()
        self.user_repository.set_user_otp(user.id, otp, self._clock() + self.otp_lifetime)
        if not self._deliver_otp(user.email, otp):
            raise DeliveryError("Failed to send OTP. Please try again.")
        logger.info("Issued a new verification code for account %s", user.id)

    # Authentication -----------------------------------------------------------
    def login(self, fields: Mapping[str, Any]) -> Tuple[User, str]:
        email, password = validate_login(fields)
        user = self.user_repository.get_user_by_email(email)
        if not user:
            raise InvalidCredentialsError()
        if not _password_matches(password, user.password_hash):
            raise InvalidCredentialsError()
        if not user.is_verified:
            raise VerificationRequiredError(user.email)
        return user, self.create_token(user)

    def create_token(self, user: User) -> str:
        # Wall-clock time: the token library validates iat/exp against it.
        now = utc_now()
        payload = {
            "user_id": user.id,
            "iat": now,
            "exp": now + self.token_lifetime,
        }
        return jwt.encode(payload, self.jwt_secret, algorithm=self.jwt_algorithm)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode a session token.

        Returns:
            Decoded payload if valid, None otherwise
        """
        try:
            return jwt.decode(token, self.jwt_secret, algorithms=[self.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    def authenticate_token(self, token: Optional[str]) -> User:
        if not token:
            raise AuthTokenError("No token, authorization denied")
        payload = self.verify_token(token)
        if not payload or not isinstance(payload.get("user_id"), int):
            raise AuthTokenError()
        user = self.user_repository.get_user_by_id(payload["user_id"])
        if not user:
            raise AuthTokenError()
        return user

    # Administration -----------------------------------------------------------
    def get_profile(self, user_id: int) -> User:
        user = self.user_repository.get_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def remove_account(self, email: str) -> User:
        user = self._require_user(normalize_email(email))
        self.user_repository.delete_user(user.id)
        logger.info("Removed account %s (%s)", user.id, user.email)
        return user

    # Helpers ----------------------------------------------------------------
    def _require_user(self, email: str) -> User:
        user = self.user_repository.get_user_by_email(email)
        if not user:
            raise NotFoundError("User not found")
        return user

    def _deliver_otp(self, email: str, otp: str) -> bool:
        try:
            return self.notifier.send_otp_email(email, otp)
        except Exception:
            logger.exception("Verification code delivery to %s failed", email)
            return False
