from nearby_ingest.models.base import Base
from nearby_ingest.models.category import EventCategory, EventToCategory, PlaceCategory, PlaceToCategory
from nearby_ingest.models.city import City
from nearby_ingest.models.event import Event, EventOccurrence, EventSource
from nearby_ingest.models.place import Place, PlaceSource

__all__ = [
    "Base",
    "City",
    "Event",
    "EventCategory",
    "EventOccurrence",
    "EventSource",
    "EventToCategory",
    "Place",
    "PlaceCategory",
    "PlaceSource",
    "PlaceToCategory",
]
