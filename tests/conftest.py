"""Shared fixtures for the test suite."""
from datetime import date

import pytest

from processor.models import DateWindow, RawEventRecord


@pytest.fixture
def date_window():
    """Listing window covering one festival weekend."""
    return DateWindow(start=date(2026, 3, 27), end=date(2026, 3, 28))


@pytest.fixture
def make_record():
    """Factory for RawEventRecord with overridable fields."""
    def _make_record(**overrides):
        fields = {
            'date_key': '2026-03-27',
            'day': 'fri',
            'title_part': 'Bass Church',
            'venue': 'Toe Jam Backlot',
            'area': 'Miami',
            'genres': ['tech house', 'bass'],
            'price_raw_text': '$20',
            'age': '21+',
            'time_raw_text': '10pm-5am',
            'start_hour': 22,
            'link': 'https://example.com/bass-church'
        }
        fields.update(overrides)
        return RawEventRecord(**fields)
    return _make_record
