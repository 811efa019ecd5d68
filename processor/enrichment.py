"""Event classification via an external text model.

The classifier's judgment lives entirely in the remote model. This module
only builds the prompt, sends it in chunks, and turns the reply back into a
list aligned with the input records. Validation of individual items happens
in :func:`coerce_classification`, so one bad item never sinks the batch.
"""
import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import anthropic

from processor.models import (
    DEFAULT_EVENT_TYPE,
    EVENT_TYPES,
    EnrichedClassification,
    RawEventRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'claude-sonnet-4-20250514'
DEFAULT_MAX_TOKENS = 8192
DEFAULT_CHUNK_SIZE = 50

FENCE_OPEN_PATTERN = re.compile(r'^```(?:json)?\s*\n?', re.IGNORECASE)
FENCE_CLOSE_PATTERN = re.compile(r'\n?```\s*$')

PROMPT_HEADER = """You are enriching event data for a music week event tracker.

For each event below, return a JSON array (same order, same length) where each element has exactly these fields:

- "name" (string): The event brand, series, or party name. Split this from the artist list. If the title is just an artist name with no event brand, use the artist name.
- "artists" (string): The full artist lineup as a comma-separated string. If the name already covers the only artist, use an empty string "".
- "type" (string): One of "pool", "outdoor", "night", "festival", "cruise"
  - "pool": hotel pool party
  - "outdoor": open-air non-pool (lots, parks, beaches, racetracks, islands)
  - "night": indoor nightclub or venue
  - "festival": multi-stage festival
  - "cruise": boat/yacht event

Example input:
0: title="Black Book Records: Chris Lake, Eats Everything, Ragie Ban" venue="Toe Jam Backlot" area="Miami" genres="tech house"
1: title="Deadmau5" venue="Toe Jam Backlot" area="Miami" genres="progressive, electro"

Example output:
[{"name":"Black Book Records","artists":"Chris Lake, Eats Everything, Ragie Ban","type":"outdoor"},{"name":"Deadmau5","artists":"","type":"outdoor"}]

Respond ONLY with the raw JSON array. No markdown fences, no explanation, no trailing text.

Events:
"""


class EnrichmentError(Exception):
    """Raised when the classifier produces no usable reply for a batch."""


def build_prompt(records: List[RawEventRecord]) -> str:
    """
    Build the classification prompt for a batch of records.

    Args:
        records: Raw records to classify

    Returns:
        Prompt text with one indexed line per record
    """
    lines = [
        f'{i}: title="{record.title_part}" venue="{record.venue}" '
        f'area="{record.area}" genres="{", ".join(record.genres)}"'
        for i, record in enumerate(records)
    ]
    return PROMPT_HEADER + '\n'.join(lines)


def strip_code_fences(text: str) -> str:
    """Remove a leading ```/```json fence and a trailing ``` fence."""
    text = text.strip()
    text = FENCE_OPEN_PATTERN.sub('', text)
    text = FENCE_CLOSE_PATTERN.sub('', text)
    return text.strip()


def parse_classification_response(text: str) -> List[Any]:
    """
    Parse the classifier reply into a list of raw items.

    Args:
        text: Reply text, possibly wrapped in code fences

    Returns:
        List of decoded JSON items (not yet validated)

    Raises:
        EnrichmentError: If the reply is not a JSON array
    """
    try:
        parsed = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise EnrichmentError(f"Classifier reply is not valid JSON: {e}") from e

    if not isinstance(parsed, list):
        raise EnrichmentError(
            f"Classifier reply is a JSON {type(parsed).__name__}, expected an array"
        )
    return parsed


def align_to_length(items: List[Any], expected: int) -> List[Any]:
    """
    Pad with None or truncate so items stay index-aligned with the input.

    Args:
        items: Decoded reply items
        expected: Number of records sent

    Returns:
        List of exactly ``expected`` items
    """
    if len(items) != expected:
        logger.warning(
            f"Classifier returned {len(items)} items for {expected} events; "
            f"missing items fall back to defaults"
        )
    return (list(items) + [None] * expected)[:expected]


def coerce_classification(item: Any, record: RawEventRecord) -> EnrichedClassification:
    """
    Validate one reply item, degrading each invalid field independently.

    Args:
        item: Decoded reply item (expected to be a dict)
        record: Raw record at the same index

    Returns:
        EnrichedClassification with fallbacks applied
    """
    if not isinstance(item, dict):
        item = {}

    name = item.get('name')
    if not isinstance(name, str) or not name.strip():
        name = record.title_part
    else:
        name = name.strip()

    artists = item.get('artists')
    if not isinstance(artists, str):
        artists = ''

    event_type = item.get('type')
    if event_type not in EVENT_TYPES:
        event_type = DEFAULT_EVENT_TYPE

    return EnrichedClassification(name=name, artists=artists.strip(), type=event_type)


def is_valid_classification(item: Any) -> bool:
    """Return True if the item needs no fallback for any field."""
    return (
        isinstance(item, dict) and
        isinstance(item.get('name'), str) and bool(item['name'].strip()) and
        isinstance(item.get('artists'), str) and
        item.get('type') in EVENT_TYPES
    )


class Enricher(ABC):
    """Classifies raw records into name/artists/type."""

    @abstractmethod
    def classify(self, records: List[RawEventRecord]) -> List[Any]:
        """
        Classify a batch of records.

        Args:
            records: Raw records in listing order

        Returns:
            One raw reply item per record, index-aligned

        Raises:
            EnrichmentError: If the batch cannot be classified
        """


class ClaudeEnricher(Enricher):
    """Enricher backed by the Anthropic Messages API."""

    def __init__(self, api_key: Optional[str], model: str = DEFAULT_MODEL,
                 max_tokens: int = DEFAULT_MAX_TOKENS,
                 chunk_size: int = DEFAULT_CHUNK_SIZE, client=None):
        """
        Initialize the enricher.

        Args:
            api_key: Anthropic API key
            model: Model name
            max_tokens: Reply token budget per chunk
            chunk_size: Records per request; 0 or less sends one request
            client: Prebuilt anthropic.Anthropic client (tests inject a mock)
        """
        self.model = model
        self.max_tokens = max_tokens
        self.chunk_size = chunk_size
        if client is None and api_key:
            client = anthropic.Anthropic(api_key=api_key)
        self.client = client

    def classify(self, records: List[RawEventRecord]) -> List[Any]:
        if not records:
            return []
        if self.client is None:
            raise EnrichmentError("ANTHROPIC_API_KEY is not configured")

        size = self.chunk_size if self.chunk_size > 0 else len(records)
        chunk_count = (len(records) + size - 1) // size
        results = []

        for i in range(0, len(records), size):
            chunk = records[i:i + size]
            logger.info(
                f"Classifying chunk {i // size + 1}/{chunk_count} "
                f"({len(chunk)} events)"
            )
            items = self._classify_chunk(chunk)
            results.extend(align_to_length(items, len(chunk)))

        return results

    def _classify_chunk(self, chunk: List[RawEventRecord]) -> List[Any]:
        """
        Send one chunk and parse the reply.

        Raises:
            EnrichmentError: On API failure, empty reply or unparseable reply
        """
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{'role': 'user', 'content': build_prompt(chunk)}]
            )
        except anthropic.AnthropicError as e:
            raise EnrichmentError(f"Anthropic API error: {e}") from e

        text_blocks = [
            block.text for block in response.content
            if getattr(block, 'type', None) == 'text'
        ]
        if not text_blocks:
            raise EnrichmentError("Anthropic returned no text content")

        usage = getattr(response, 'usage', None)
        logger.info(
            "Classifier reply received",
            extra={
                'model': self.model,
                'input_tokens': getattr(usage, 'input_tokens', None),
                'output_tokens': getattr(usage, 'output_tokens', None)
            }
        )
        return parse_classification_response('\n'.join(text_blocks))
