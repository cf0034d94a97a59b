from .activity_repository import ActivityRepository
from .destination_repository import DestinationRepository
from .share_link_repository import ShareLinkRepository
from .trip_repository import TripRepository

__all__ = [
    "TripRepository",
    "DestinationRepository",
    "ActivityRepository",
    "ShareLinkRepository",
]
