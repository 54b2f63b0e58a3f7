"""Demo events served until the database is wired in.

Environment Configuration:
- The dataset is the same in every environment; it is built once at startup
  and handed to InMemoryEventRepository.
"""

from typing import Tuple

from ..models.event import Event

DEMO_EVENTS: Tuple[Event, ...] = (
    Event(
        id=1,
        name="Spring MX Championship",
        sport="Motocross",
        location="Thunder Valley MX Park, CO",
        date="2026-03-15",
        photo_count=847,
        galleries=3,
        description="Round 1 of the Rocky Mountain Motocross Series featuring 250 and 450 classes.",
        tags=("motocross", "mx", "250", "450", "championship"),
    ),
    Event(
        id=2,
        name="BMX Freestyle Invitational",
        sport="BMX",
        location="Austin, TX",
        date="2026-02-28",
        photo_count=312,
        galleries=2,
        description="Top riders compete in park and street disciplines at the annual invitational.",
        tags=("bmx", "freestyle", "park", "street"),
    ),
    Event(
        id=3,
        name="Lone Star Rodeo Finals",
        sport="Rodeo",
        location="Fort Worth Stockyards, TX",
        date="2026-02-14",
        photo_count=523,
        galleries=4,
        description="Season-ending championship rodeo with bull riding, barrel racing, and roping events.",
        tags=("rodeo", "bull riding", "barrel racing", "roping"),
    ),
    Event(
        id=4,
        name="Regional Swim Meet",
        sport="Swimming",
        location="Barton Springs Aquatic Center, TX",
        date="2026-01-20",
        photo_count=1204,
        galleries=6,
        description="High school regional qualifiers — all strokes and relay events.",
        tags=("swimming", "high school", "regional", "relay"),
    ),
)
