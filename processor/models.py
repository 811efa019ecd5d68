"""Data models for listing parsing, enrichment and persistence."""
from dataclasses import dataclass, field
from datetime import date
from typing import List


EVENT_TYPES = ('pool', 'outdoor', 'night', 'festival', 'cruise')
DEFAULT_EVENT_TYPE = 'night'
DEFAULT_AGE = 'TBA'


@dataclass(frozen=True)
class DateWindow:
    """Inclusive calendar date range of interest."""
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass
class RawEventRecord:
    """Event row as parsed from the listing table."""
    date_key: str
    day: str
    title_part: str
    venue: str
    area: str
    genres: List[str]
    price_raw_text: str
    age: str
    time_raw_text: str
    start_hour: int
    link: str


@dataclass
class EnrichedClassification:
    """Classification fields inferred for a single record."""
    name: str
    artists: str
    type: str


@dataclass
class MergedEvent:
    """Raw record joined with its classification, as persisted."""
    date_key: str
    day: str
    name: str
    artists: str
    venue: str
    area: str
    genres: List[str]
    start_hour: int
    time_display: str
    type: str
    price_raw_numeric: int
    price_display: str
    age: str
    link: str

    def to_item(self) -> dict:
        """
        Convert to the JSON shape consumed by the browser UI.

        Returns:
            Dictionary with camelCase keys
        """
        return {
            'dateKey': self.date_key,
            'day': self.day,
            'name': self.name,
            'artists': self.artists,
            'venue': self.venue,
            'area': self.area,
            'genres': list(self.genres),
            'startHour': self.start_hour,
            'timeDisplay': self.time_display,
            'type': self.type,
            'priceRawNumeric': self.price_raw_numeric,
            'priceDisplay': self.price_display,
            'age': self.age,
            'link': self.link
        }


@dataclass
class RefreshResult:
    """Outcome of one refresh cycle."""
    success: bool
    count: int
    reason: str
    errors: list[str] = field(default_factory=list)
