"""Service for sending account emails."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: str = "Campus Market",
        client_url: str = "http://localhost:3000",
        otp_expiration_minutes: int = 10,
    ):
        self.smtp_host = smtp_host or ""
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username or ""
        self.smtp_password = smtp_password or ""
        self.from_email = from_email or self.smtp_username
        self.from_name = from_name
        self.client_url = client_url
        self.otp_expiration_minutes = otp_expiration_minutes
        self.enabled = bool(self.smtp_host and self.smtp_username and self.from_email)

    def send_otp_email(self, to_email: str, otp: str) -> bool:
        """
        Send the email verification code.

        Args:
            to_email: Recipient email
            otp: Six digit verification code

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            # Development mode: surface the code in the logs instead of sending it
            logger.warning("SMTP not configured; verification code for %s is %s", to_email, otp)
            return True

        subject = f"{self.from_name} - Email Verification OTP"
        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <div style="background-color: #007bff; color: white; padding: 20px; text-align: center;">
                    <h1>{self.from_name}</h1>
                </div>
                <div style="padding: 30px; background-color: #f8f9fa;">
                    <h2 style="color: #333;">Email Verification</h2>
                    <p>Thank you for registering. Use the following code to verify your email address:</p>
                    <div style="background-color: #e9ecef; padding: 20px; text-align: center; margin: 20px 0;">
                        <h1 style="color: #007bff; font-size: 36px; margin: 0; letter-spacing: 5px;">{otp}</h1>
                    </div>
                    <p><strong>This code expires in {self.otp_expiration_minutes} minutes.</strong></p>
                    <p>If you didn't request this verification, please ignore this email.</p>
                </div>
            </body>
        </html>
        """

        text_body = f"""
        {self.from_name} - Email Verification

        Your verification code is: {otp}

        This code expires in {self.otp_expiration_minutes} minutes.

        If you didn't request this verification, please ignore this email.
        """

        return self._send_email(to_email, subject, html_body, text_body)

    def send_welcome_email(self, to_email: str, name: str) -> bool:
        """Send the welcome message once an account is verified."""
        if not self.enabled:
            logger.info("SMTP not configured; skipping welcome email for %s", to_email)
            return True

        subject = f"Welcome to {self.from_name}!"
        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
                <div style="background-color: #28a745; color: white; padding: 20px; text-align: center;">
                    <h1>Welcome to {self.from_name}!</h1>
                </div>
                <div style="padding: 30px; background-color: #f8f9fa;">
                    <h2 style="color: #333;">Hello {name}!</h2>
                    <p>Your email has been verified and your account is now active.</p>
                    <ul>
                        <li>Create listings for items you want to sell</li>
                        <li>Browse and buy items from other students</li>
                        <li>Add items to your favorites</li>
                        <li>Contact sellers directly</li>
                    </ul>
                    <div style="text-align: center; margin: 30px 0;">
                        <a href="{self.client_url}"
                           style="background-color: #007bff; color: white; padding: 12px 30px;
                                  text-decoration: none; border-radius: 5px;">
                            Start Shopping Now!
                        </a>
                    </div>
                </div>
            </body>
        </html>
        """

        text_body = f"""
        Welcome to {self.from_name}, {name}!

        Your email has been verified and your account is now active.

        Start browsing: {self.client_url}
        """

        return self._send_email(to_email, subject, html_body, text_body)

    def _send_email(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """
        Send an email via SMTP.

        Args:
            to_email: Recipient email
            subject: Email subject
            html_body: HTML body
            text_body: Plain text body

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.from_name} <{self.from_email}>"
            msg["To"] = to_email

            msg.attach(MIMEText(text_body, "plain", "utf-8"))
            msg.attach(MIMEText(html_body, "html", "utf-8"))

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)

            return True

        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email to %s: %s", to_email, exc)
            return False
