import sys

from dotenv import load_dotenv

from campus_market.application.services.account_service import AccountService
from campus_market.core.config import Settings
from campus_market.core.logging import configure_logging
from campus_market.domain.errors import NotFoundError
from campus_market.infrastructure.persistence.sqlite import SQLitePersistence
from campus_market.services.email_service import EmailService


def main() -> int:
    load_dotenv()
    settings = Settings()
    configure_logging(settings.log_level)

    email = (sys.argv[1] if len(sys.argv) > 1 else input("Email of the account to remove: ")).strip()
    if not email:
        print("No email given.")
        return 1

    confirm = input(f"Delete {email} together with its listings and favorites? [y/N] ").strip().lower()
    if confirm != "y":
        print("Aborted.")
        return 1

    persistence = SQLitePersistence(settings.database_path)
    try:
        service = AccountService(
            persistence,
            EmailService(
                smtp_host=settings.smtp_host,
                smtp_port=settings.smtp_port,
                smtp_username=settings.smtp_username,
                smtp_password=settings.smtp_password,
                from_email=settings.smtp_from_email,
                client_url=settings.client_url,
                otp_expiration_minutes=settings.otp_expiration_minutes,
            ),
            jwt_secret=settings.jwt_secret,
        )
        try:
            user = service.remove_account(email)
        except NotFoundError:
            print("No account registered with", email)
            return 1
    finally:
        persistence.close()

    print(f"Removed account {user.id} ({user.email}).")
    return 0


if __name__ == "__main__":
    sys.exit(main())
