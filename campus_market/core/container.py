from dataclasses import dataclass

from ..application.services.account_service import AccountService
from ..application.services.listing_query import ListingQueryService
from ..application.services.listing_service import ListingService
from ..domain.ports.notifications import Notifier
from ..domain.ports.persistence import PersistenceGateway
from .config import Settings


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    persistence: PersistenceGateway
    notifier: Notifier
    account_service: AccountService
    listing_service: ListingService
    listing_query_service: ListingQueryService
