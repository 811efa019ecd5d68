"""Event processor for merging raw records with their classifications."""
import logging
from typing import Any, List, Sequence

from processor.enrichment import coerce_classification, is_valid_classification
from processor.models import MergedEvent, RawEventRecord
from processor.price import normalize_price, price_display

logger = logging.getLogger(__name__)


class EventProcessor:
    """Joins raw records with classifier output into persisted events."""

    def merge_events(self, records: List[RawEventRecord],
                     classifications: Sequence[Any]) -> List[MergedEvent]:
        """
        Merge classifications onto raw records by position.

        Args:
            records: Raw records in listing order
            classifications: Classifier items, index-aligned with records;
                missing or invalid items fall back per field

        Returns:
            List of MergedEvent objects, same length and order as records
        """
        merged_events = []
        degraded = 0

        for i, record in enumerate(records):
            item = classifications[i] if i < len(classifications) else None
            if not is_valid_classification(item):
                degraded += 1
            merged_events.append(self._merge_single_event(record, item))

        if degraded:
            logger.warning(
                f"{degraded} of {len(records)} events used fallback classification fields"
            )

        logger.info(f"Merged {len(merged_events)} events")
        return merged_events

    def _merge_single_event(self, record: RawEventRecord, item: Any) -> MergedEvent:
        """
        Merge a single record.

        Args:
            record: Raw record
            item: Classifier item at the same index, or None

        Returns:
            MergedEvent object
        """
        classification = coerce_classification(item, record)

        return MergedEvent(
            date_key=record.date_key,
            day=record.day,
            name=classification.name,
            artists=classification.artists,
            venue=record.venue,
            area=record.area,
            genres=list(record.genres),
            start_hour=record.start_hour,
            time_display=record.time_raw_text,
            type=classification.type,
            price_raw_numeric=normalize_price(record.price_raw_text),
            price_display=price_display(record.price_raw_text),
            age=record.age,
            link=record.link
        )
