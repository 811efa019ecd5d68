"""Price text normalization."""
import re

FREE_PATTERN = re.compile(r'free', re.IGNORECASE)
DOLLAR_PATTERN = re.compile(r'\$(\d+)')


def normalize_price(text: str) -> int:
    """
    Convert free-text price to a numeric baseline.

    Unknown prices also yield 0, so callers that need the source text must
    keep it separately (see price_display).

    Args:
        text: Price text as listed (e.g. "$45 adv / $60 door")

    Returns:
        First dollar amount found, or 0 for free/empty/unknown
    """
    if not text or not text.strip():
        return 0
    if FREE_PATTERN.search(text):
        return 0

    match = DOLLAR_PATTERN.search(text)
    return int(match.group(1)) if match else 0


def price_display(text: str) -> str:
    """Return the price text for display, "TBA" when the listing has none."""
    text = (text or '').strip()
    return text or 'TBA'
