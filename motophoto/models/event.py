"""Event model definition."""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class Event:
    """
    Event model representing a photographed sporting event.

    Fields:
        id: Unique identifier
        name: Event name
        sport: Sport the event belongs to
        location: Venue and city
        date: Calendar date as text (YYYY-MM-DD)
        photo_count: Number of photos taken at the event
        galleries: Number of galleries the photos are split into
        description: Event description
        tags: Ordered search tags, may be empty
    """
    id: int
    name: str
    sport: str
    location: str
    date: str
    photo_count: int = 0
    galleries: int = 0
    description: str = ""
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.photo_count < 0 or self.galleries < 0:
            raise ValueError(f"Event {self.id} has a negative count")
        # Accept any sequence of tags but store it immutably
        object.__setattr__(self, 'tags', tuple(self.tags))

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to its JSON shape."""
        return {
            'id': self.id,
            'name': self.name,
            'sport': self.sport,
            'location': self.location,
            'date': self.date,
            'photo_count': self.photo_count,
            'galleries': self.galleries,
            'description': self.description,
            'tags': list(self.tags),
        }
