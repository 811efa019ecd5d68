"""Unit tests for the listing parser and ListingScraper."""
from datetime import date

import pytest
import responses
from requests.exceptions import RequestException, Timeout

from processor.models import DateWindow
from scraper.listing_scraper import (
    DEFAULT_SOURCE_URL,
    ListingScraper,
    parse_listing,
    parse_month_day,
    parse_start_hour,
    split_description,
)

WINDOW = DateWindow(start=date(2026, 3, 27), end=date(2026, 3, 28))

BASS_CHURCH_HTML = (
    '<table><tr><td>Fri: Mar 27 (10pm-5am)</td>'
    '<td>Bass Church @ Toe Jam Backlot (Miami) tech house, bass</td>'
    '<td>$20</td><td>21+</td></tr></table>'
)


def row(date_cell, description, price='$20', age='21+'):
    return (
        f'<tr><td>{date_cell}</td><td>{description}</td>'
        f'<td>{price}</td><td>{age}</td></tr>'
    )


def table(*rows):
    return '<html><body><table>' + ''.join(rows) + '</table></body></html>'


class TestParseStartHour:
    """Test cases for start hour derivation."""

    @pytest.mark.parametrize('hour', [1, 2, 3, 4, 5, 6])
    def test_after_hours_am_shifted(self, hour):
        """1am-6am land in 25-30 so they sort after the night program."""
        start_hour = parse_start_hour(f'{hour}am-10am')

        assert 25 <= start_hour <= 30
        assert start_hour == (hour % 12) + 24

    def test_midnight_is_zero(self):
        assert parse_start_hour('12am-6am') == 0

    @pytest.mark.parametrize('hour', range(1, 12))
    def test_pm_hours(self, hour):
        assert parse_start_hour(f'{hour}pm-11pm') == hour + 12

    def test_noon(self):
        assert parse_start_hour('12pm-11pm') == 12

    def test_morning_after_cutoff_not_shifted(self):
        assert parse_start_hour('7am-3pm') == 7
        assert parse_start_hour('11am') == 11

    def test_minutes_and_uppercase(self):
        assert parse_start_hour('10:30PM-4AM') == 22
        assert parse_start_hour('2:30am-8am') == 26

    def test_unmatched_time_is_zero(self):
        assert parse_start_hour('') == 0
        assert parse_start_hour('TBA') == 0
        assert parse_start_hour('late') == 0

    def test_reads_start_token_only(self):
        """The row start "10pm" decides, not the after-hours end "5am"."""
        assert parse_start_hour('10pm-5am') == 22


class TestParseMonthDay:
    """Test cases for date token resolution."""

    def test_abbreviated_month(self):
        assert parse_month_day('Fri: Mar 27 (10pm-5am)', WINDOW) == date(2026, 3, 27)

    def test_full_month_name(self):
        assert parse_month_day('Saturday: March 28', WINDOW) == date(2026, 3, 28)

    def test_outside_window(self):
        assert parse_month_day('Sun: Mar 29 (2pm-10pm)', WINDOW) is None

    def test_no_token(self):
        assert parse_month_day('Every Friday', WINDOW) is None

    def test_impossible_date(self):
        assert parse_month_day('Feb 30', WINDOW) is None

    def test_window_across_year_end(self):
        window = DateWindow(start=date(2025, 12, 30), end=date(2026, 1, 2))

        assert parse_month_day('Wed: Dec 31', window) == date(2025, 12, 31)
        assert parse_month_day('Thu: Jan 1', window) == date(2026, 1, 1)


class TestSplitDescription:
    """Test cases for description cell splitting."""

    def test_full_pattern(self):
        title, venue, area, genres = split_description(
            'Bass Church @ Toe Jam Backlot (Miami) tech house, bass'
        )

        assert title == 'Bass Church'
        assert venue == 'Toe Jam Backlot'
        assert area == 'Miami'
        assert genres == ['tech house', 'bass']

    def test_missing_separator(self):
        assert split_description('Secret Rooftop Party') == ('Secret Rooftop Party', '', '', [])

    def test_missing_area(self):
        title, venue, area, genres = split_description('Sunrise Set @ Some Beach')

        assert title == 'Sunrise Set'
        assert venue == 'Some Beach'
        assert area == ''
        assert genres == []

    def test_genres_normalized(self):
        _, _, _, genres = split_description(
            'Night @ Club Space (Downtown)  Techno , ,MELODIC House,  '
        )

        assert genres == ['techno', 'melodic house']

    def test_splits_on_first_separator(self):
        title, venue, _, _ = split_description('A @ B @ Venue (Area) house')

        assert title == 'A'
        assert venue == 'B @ Venue'


class TestParseListing:
    """Test cases for whole-document parsing."""

    def test_end_to_end_row(self):
        records = parse_listing(BASS_CHURCH_HTML, WINDOW)

        assert len(records) == 1
        record = records[0]
        assert record.date_key == '2026-03-27'
        assert record.day == 'fri'
        assert record.title_part == 'Bass Church'
        assert record.venue == 'Toe Jam Backlot'
        assert record.area == 'Miami'
        assert record.genres == ['tech house', 'bass']
        assert record.price_raw_text == '$20'
        assert record.age == '21+'
        assert record.time_raw_text == '10pm-5am'
        assert record.start_hour == 22
        assert record.link == ''

    def test_link_extracted(self):
        html = table(row(
            'Sat: Mar 28 (11am-7pm)',
            '<a href="https://example.com/tix">Pool Party</a> @ Surfcomber (Miami Beach) house'
        ))

        records = parse_listing(html, WINDOW)

        assert records[0].link == 'https://example.com/tix'
        assert records[0].title_part == 'Pool Party'
        assert records[0].area == 'Miami Beach'

    def test_out_of_window_row_excluded(self):
        html = table(
            row('Thu: Mar 26 (10pm-5am)', 'Early @ Floyd (Miami) techno'),
            row('Fri: Mar 27 (10pm-5am)', 'Kept @ Floyd (Miami) techno'),
            row('Sun: Mar 29 (10pm-5am)', 'Late @ Floyd (Miami) techno')
        )

        records = parse_listing(html, WINDOW)

        assert [r.title_part for r in records] == ['Kept']

    def test_short_and_header_rows_rejected(self):
        html = table(
            '<tr><th>Date</th><th>Event</th><th>Price</th><th>Age</th></tr>',
            '<tr><td>Fri: Mar 27</td><td>Only two cells</td></tr>',
            row('Fri: Mar 27 (9pm-3am)', 'Real @ Club (Area) house')
        )

        records = parse_listing(html, WINDOW)

        assert len(records) == 1
        assert records[0].title_part == 'Real'

    def test_missing_time_and_age_defaults(self):
        html = table(row('Fri: Mar 27', 'No Time Listed @ Venue (Area) disco', price='', age=' '))

        records = parse_listing(html, WINDOW)

        assert records[0].time_raw_text == ''
        assert records[0].start_hour == 0
        assert records[0].price_raw_text == ''
        assert records[0].age == 'TBA'

    def test_row_without_separator(self):
        html = table(row('Fri: Mar 27 (8pm-2am)', '  Mystery Warehouse Party  '))

        records = parse_listing(html, WINDOW)

        assert records[0].title_part == 'Mystery Warehouse Party'
        assert records[0].venue == ''
        assert records[0].area == ''
        assert records[0].genres == []

    def test_after_hours_sort_after_night(self):
        html = table(
            row('Sat: Mar 28 (4am-10am)', 'After @ Club Space (Downtown) techno'),
            row('Sat: Mar 28 (11pm-5am)', 'Main @ Club Space (Downtown) techno'),
            row('Sat: Mar 28 (12pm-11pm)', 'Day @ Racetrack (Miami) house')
        )

        records = sorted(parse_listing(html, WINDOW), key=lambda r: r.start_hour)

        assert [r.title_part for r in records] == ['Day', 'Main', 'After']

    def test_empty_document(self):
        assert parse_listing('', WINDOW) == []
        assert parse_listing('<html><body>No table</body></html>', WINDOW) == []


class TestListingScraper:
    """Test cases for ListingScraper fetching."""

    @responses.activate
    def test_fetch_events_success(self):
        responses.add(responses.GET, DEFAULT_SOURCE_URL, body=BASS_CHURCH_HTML, status=200)

        scraper = ListingScraper(timeout=30)
        records = scraper.fetch_events(WINDOW)

        assert len(records) == 1
        assert records[0].venue == 'Toe Jam Backlot'
        assert len(responses.calls) == 1

    @responses.activate
    def test_single_attempt_by_default(self):
        responses.add(responses.GET, DEFAULT_SOURCE_URL, body='Server Error', status=500)

        scraper = ListingScraper()

        with pytest.raises(RequestException):
            scraper.fetch_events(WINDOW)

        assert len(responses.calls) == 1

    @responses.activate
    def test_fetch_with_retry_success(self, monkeypatch):
        """Test retry logic succeeds after initial failures."""
        monkeypatch.setattr('scraper.listing_scraper.time.sleep', lambda _: None)
        responses.add(responses.GET, DEFAULT_SOURCE_URL, body='Server Error', status=500)
        responses.add(responses.GET, DEFAULT_SOURCE_URL, body='Server Error', status=500)
        responses.add(responses.GET, DEFAULT_SOURCE_URL, body=BASS_CHURCH_HTML, status=200)

        scraper = ListingScraper(max_retries=3)
        records = scraper.fetch_events(WINDOW)

        assert len(records) == 1
        assert len(responses.calls) == 3

    @responses.activate
    def test_fetch_timeout(self, monkeypatch):
        monkeypatch.setattr('scraper.listing_scraper.time.sleep', lambda _: None)
        for _ in range(2):
            responses.add(responses.GET, DEFAULT_SOURCE_URL, body=Timeout('Request timed out'))

        scraper = ListingScraper(max_retries=2)

        with pytest.raises(Timeout):
            scraper.fetch_html()

        assert len(responses.calls) == 2

    @responses.activate
    def test_custom_source_url(self):
        url = 'https://listings.example.com/events.php'
        responses.add(responses.GET, url, body='<table></table>', status=200)

        scraper = ListingScraper(source_url=url)

        assert scraper.fetch_events(WINDOW) == []
        assert responses.calls[0].request.url == url
