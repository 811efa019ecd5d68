"""Scraper and parser for the event listing table."""
import logging
import re
import time
from datetime import date
from typing import List, Optional, Tuple

import requests
from bs4 import BeautifulSoup

from processor.models import DEFAULT_AGE, DateWindow, RawEventRecord

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_URL = 'https://19hz.info/eventlisting_Miami.php'

MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12
}

# "Fri: Mar 27 (10pm-5am)", "Sat: March 28", "Sept. 3"
MONTH_DAY_PATTERN = re.compile(
    r'\b(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+(\d{1,2})\b',
    re.IGNORECASE
)
TIME_RANGE_PATTERN = re.compile(r'\(([^)]*)\)')
START_TIME_PATTERN = re.compile(r'^\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)', re.IGNORECASE)
# "Venue Name (Area) genre, genre"
VENUE_AREA_PATTERN = re.compile(r'^(.+?)\s*\(([^)]+)\)\s*(.*)', re.DOTALL)

VENUE_SEPARATOR = ' @ '
MIN_CELLS = 4
AFTER_HOURS_LAST = 6


def parse_start_hour(time_text: str) -> int:
    """
    Derive the sortable start hour from a time range like "10pm-5am".

    Only the leading start token is read. Hours 1am-6am are shifted by 24
    (to 25-30) so after-midnight sets sort after the evening program.

    Args:
        time_text: Raw time range text

    Returns:
        Hour in 0-30, 0 when no start time can be read
    """
    match = START_TIME_PATTERN.match(time_text or '')
    if not match:
        return 0

    hour = int(match.group(1))
    if hour < 1 or hour > 12:
        return 0

    meridiem = match.group(3).lower()
    if meridiem == 'pm':
        if hour != 12:
            hour += 12
    elif hour == 12:
        hour = 0
    elif hour <= AFTER_HOURS_LAST:
        hour += 24

    return hour


def parse_month_day(text: str, date_window: DateWindow) -> Optional[date]:
    """
    Find a month-and-day token and resolve it to a date inside the window.

    The listing omits the year, so each year spanned by the window is tried
    in turn.

    Args:
        text: Date cell text
        date_window: Inclusive listing window

    Returns:
        Resolved date, or None if there is no token or it falls outside the window
    """
    match = MONTH_DAY_PATTERN.search(text or '')
    if not match:
        return None

    month = MONTHS[match.group(1).lower()]
    day = int(match.group(2))

    for year in range(date_window.start.year, date_window.end.year + 1):
        try:
            candidate = date(year, month, day)
        except ValueError:
            continue
        if date_window.contains(candidate):
            return candidate

    return None


def split_description(text: str) -> Tuple[str, str, str, List[str]]:
    """
    Split a description cell into title, venue, area and genres.

    Args:
        text: Trimmed description cell text,
            e.g. "Bass Church @ Toe Jam Backlot (Miami) tech house, bass"

    Returns:
        Tuple of (title_part, venue, area, genres)
    """
    separator_index = text.find(VENUE_SEPARATOR)
    if separator_index == -1:
        return text, '', '', []

    title_part = text[:separator_index].strip()
    venue_part = text[separator_index + len(VENUE_SEPARATOR):]

    match = VENUE_AREA_PATTERN.match(venue_part)
    if not match:
        return title_part, venue_part.strip(), '', []

    venue = match.group(1).strip()
    area = match.group(2).strip()
    genres = [
        genre.strip().lower()
        for genre in match.group(3).split(',')
        if genre.strip()
    ]
    return title_part, venue, area, genres


def parse_listing(html_content: str, date_window: DateWindow) -> List[RawEventRecord]:
    """
    Parse listing HTML into raw event records.

    Rows that are malformed or outside the window are dropped, never raised.

    Args:
        html_content: Listing page HTML
        date_window: Inclusive listing window

    Returns:
        List of RawEventRecord objects in page order
    """
    soup = BeautifulSoup(html_content or '', 'html.parser')
    records = []
    rejected = 0

    for row in soup.find_all('tr'):
        record = _parse_row(row, date_window)
        if record:
            records.append(record)
        else:
            rejected += 1

    logger.info(
        f"Parsed {len(records)} events in window "
        f"{date_window.start.isoformat()}..{date_window.end.isoformat()}, "
        f"{rejected} rows rejected"
    )
    return records


def _parse_row(row, date_window: DateWindow) -> Optional[RawEventRecord]:
    """
    Parse a single table row.

    Args:
        row: BeautifulSoup tr element
        date_window: Inclusive listing window

    Returns:
        RawEventRecord or None if the row is not an event in the window
    """
    cells = row.find_all('td')
    if len(cells) < MIN_CELLS:
        return None

    date_text = cells[0].get_text().strip()
    event_date = parse_month_day(date_text, date_window)
    if event_date is None:
        logger.debug(f"Skipping row outside listing window: {date_text!r}")
        return None

    time_match = TIME_RANGE_PATTERN.search(date_text)
    time_raw_text = time_match.group(1).strip() if time_match else ''

    description_cell = cells[1]
    link_elem = description_cell.find('a', href=True)
    link = link_elem.get('href') if link_elem else ''

    title_part, venue, area, genres = split_description(
        description_cell.get_text().strip()
    )

    age = cells[3].get_text().strip()

    return RawEventRecord(
        date_key=event_date.isoformat(),
        day=event_date.strftime('%a').lower(),
        title_part=title_part,
        venue=venue,
        area=area,
        genres=genres,
        price_raw_text=cells[2].get_text().strip(),
        age=age or DEFAULT_AGE,
        time_raw_text=time_raw_text,
        start_hour=parse_start_hour(time_raw_text),
        link=link
    )


class ListingScraper:
    """Fetches the listing page and parses it into raw records."""

    def __init__(self, source_url: str = DEFAULT_SOURCE_URL, timeout: int = 30,
                 max_retries: int = 1):
        """
        Initialize the listing scraper.

        Args:
            source_url: Listing page URL
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Fetch attempts per cycle (default: 1, the next
                scheduled cycle is the retry)
        """
        self.source_url = source_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

    def fetch_events(self, date_window: DateWindow) -> List[RawEventRecord]:
        """
        Fetch the listing and parse the rows inside the window.

        Args:
            date_window: Inclusive listing window

        Returns:
            List of RawEventRecord objects

        Raises:
            requests.RequestException: If the listing cannot be fetched
        """
        html_content = self.fetch_html()
        return parse_listing(html_content, date_window)

    def fetch_html(self) -> str:
        """
        Fetch the listing HTML.

        Returns:
            HTML content as string

        Raises:
            requests.RequestException: If all attempts fail
        """
        base_delay = 1  # seconds

        for attempt in range(self.max_retries):
            try:
                logger.info(
                    f"Fetching listing HTML from {self.source_url} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                response = requests.get(self.source_url, timeout=self.timeout)
                response.raise_for_status()
                logger.info(f"Fetched {len(response.text)} bytes of listing HTML")
                return response.text

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"Listing fetch failed after {self.max_retries} attempt(s). "
                        f"Last error: {e}"
                    )
                    raise
