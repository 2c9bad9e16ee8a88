from datetime import datetime, timedelta

import pytest
from django.utils import timezone

from circulation import utils
from circulation.models import Book

pytestmark = pytest.mark.django_db


def local(*args):
    return timezone.make_aware(datetime(*args))


@pytest.fixture
def march_loans(make_student, make_book, make_loan):
    """Five loans spread over March 2025 and the first of April"""
    ana = make_student(grade_level=7)
    ben = make_student(grade_level=3)
    carla = make_student(grade_level=7)

    def lend(student, checkout_date, **kwargs):
        return make_loan(student, make_book(), checkout_date, checkout_date + timedelta(days=14), **kwargs)

    lend(ana, local(2025, 3, 3, 10, 0), is_returned=True, return_date=local(2025, 3, 5, 9, 0), renewal_count=1)
    lend(ana, local(2025, 3, 4, 15, 0))
    lend(ben, local(2025, 3, 8, 9, 0))
    lend(ben, local(2025, 3, 9, 9, 30), renewal_count=2)
    # Still 31 March in UTC
    lend(carla, local(2025, 4, 1, 0, 30))


class TestCirculationByPeriod:

    def test_daily_buckets_use_library_dates(self, march_loans, now):
        rows = utils.circulation_by_period('daily', now - timedelta(days=1), now + timedelta(days=40))
        assert [row['period'] for row in rows] == [
            '2025-03-03', '2025-03-04', '2025-03-08', '2025-03-09', '2025-04-01'
        ]
        assert rows[0] == {'period': '2025-03-03', 'checkouts': 1, 'returns': 1, 'renewals': 1}

    def test_weeks_start_on_sunday(self, march_loans, now):
        rows = utils.circulation_by_period('weekly', now - timedelta(days=1), now + timedelta(days=40))
        assert rows == [
            {'period': '2025-03-02', 'checkouts': 3, 'returns': 1, 'renewals': 1},
            {'period': '2025-03-09', 'checkouts': 1, 'returns': 0, 'renewals': 2},
            {'period': '2025-03-30', 'checkouts': 1, 'returns': 0, 'renewals': 0},
        ]

    def test_monthly(self, march_loans, now):
        rows = utils.circulation_by_period('monthly', now - timedelta(days=1), now + timedelta(days=40))
        assert [(row['period'], row['checkouts']) for row in rows] == [('2025-03', 4), ('2025-04', 1)]

    def test_range_is_respected(self, march_loans, now):
        rows = utils.circulation_by_period('monthly', now, local(2025, 3, 5))
        assert rows == [{'period': '2025-03', 'checkouts': 2, 'returns': 1, 'renewals': 1}]

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            utils.circulation_by_period('hourly')


def test_circulation_by_grade(march_loans, now):
    rows = utils.circulation_by_grade(now - timedelta(days=1), now + timedelta(days=40))
    assert rows == [
        {'grade': 3, 'checkouts': 2, 'unique_students': 1},
        {'grade': 7, 'checkouts': 3, 'unique_students': 2},
    ]


def test_peak_usage_by_local_day_and_hour(march_loans, now):
    usage = utils.peak_usage(now - timedelta(days=1), now + timedelta(days=40))

    days = {row['day']: row['count'] for row in usage['by_day_of_week']}
    assert usage['by_day_of_week'][0]['day'] == 'Sunday'
    assert days == {
        'Sunday': 1, 'Monday': 1, 'Tuesday': 2, 'Wednesday': 0,
        'Thursday': 0, 'Friday': 0, 'Saturday': 1,
    }
    hours = {row['hour']: row['count'] for row in usage['by_hour'] if row['count']}
    assert hours == {0: 1, 9: 2, 10: 1, 15: 1}
    assert len(usage['by_hour']) == 24
    assert usage['by_hour'][9]['label'] == '09:00'


class TestInventoryStatus:

    @pytest.fixture
    def shelves(self, make_book, now):
        return [
            make_book(location='Shelf A', last_inventoried_at=now),
            make_book(location='Shelf A', last_inventoried_at=now - timedelta(days=2)),
            make_book(location='Shelf A'),
            make_book(location='Shelf A', status=Book.STATUS_BORROWED),
            make_book(location='Shelf B', category='Filipiniana'),
        ]

    def test_unscanned_available_copies_are_potentially_missing(self, shelves, now):
        result = utils.inventory_status(since=now - timedelta(hours=1), location='Shelf A', now=now)

        assert result['total'] == 4
        assert result['inventoried'] == 1
        assert result['not_inventoried'] == 3
        assert result['potentially_missing'] == 2
        assert list(result['inventoried_books']) == [shelves[0]]
        assert list(result['missing_books']) == [shelves[1], shelves[2]]

    def test_category_filter_and_default_window(self, shelves, now):
        result = utils.inventory_status(category='Filipiniana', now=now)
        assert result['since'] == now - timedelta(hours=24)
        assert result['total'] == 1
        assert list(result['missing_books']) == [shelves[4]]

    def test_missing_list_is_capped(self, shelves, now):
        result = utils.inventory_status(since=now - timedelta(hours=1), now=now, missing_limit=1)
        assert result['potentially_missing'] == 3
        assert len(result['missing_books']) == 1


def test_locations_and_categories(make_book):
    make_book(location='Shelf B', category='Filipiniana')
    make_book(location='Shelf A')
    make_book(location='Shelf A')
    make_book()

    assert utils.get_locations() == ['Shelf A', 'Shelf B']
    assert utils.get_categories() == ['Fiction', 'Filipiniana']
