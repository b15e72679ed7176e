from __future__ import annotations

from typing import Protocol


class Notifier(Protocol):
    """Outbound account notifications. Both methods report delivery success."""

    def send_otp_email(self, to_email: str, otp: str) -> bool:
        ...

    def send_welcome_email(self, to_email: str, name: str) -> bool:
        ...
