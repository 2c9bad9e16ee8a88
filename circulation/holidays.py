"""
Philippine school-year holiday calendar used to seed the holiday table.
"""
import logging
from datetime import date

from .models import Holiday

logger = logging.getLogger(__name__)

# (month, day, name)
REGULAR_HOLIDAYS = [
    (1, 1, "New Year's Day"),
    (4, 9, "Araw ng Kagitingan"),
    (5, 1, "Labor Day"),
    (6, 12, "Independence Day"),
    (8, 26, "National Heroes Day"),
    (11, 30, "Bonifacio Day"),
    (12, 25, "Christmas Day"),
    (12, 30, "Rizal Day"),
]

SPECIAL_HOLIDAYS = [
    (2, 25, "EDSA People Power Revolution Anniversary"),
    (8, 21, "Ninoy Aquino Day"),
    (11, 1, "All Saints' Day"),
    (11, 2, "All Souls' Day"),
    (12, 8, "Feast of the Immaculate Conception"),
    (12, 24, "Christmas Eve"),
    (12, 31, "New Year's Eve"),
]

SCHOOL_BREAKS = [
    (10, 14, "Semestral Break"),
    (10, 15, "Semestral Break"),
    (10, 16, "Semestral Break"),
    (10, 17, "Semestral Break"),
    (10, 18, "Semestral Break"),
    (12, 22, "Christmas Break"),
    (12, 23, "Christmas Break"),
    (12, 26, "Christmas Break"),
    (12, 27, "Christmas Break"),
    (12, 28, "Christmas Break"),
    (12, 29, "Christmas Break"),
]


def initialize_philippine_holidays(year):
    """
    Insert the holiday calendar for a school year, skipping dates that
    already have a holiday.

    Args:
        year (int): Calendar year to seed

    Returns:
        int: Number of holidays created
    """
    groups = [
        (REGULAR_HOLIDAYS, 'national', True),
        (SPECIAL_HOLIDAYS, 'special', True),
        (SCHOOL_BREAKS, 'school', False),
    ]

    created = 0
    for holidays, holiday_type, recurring in groups:
        for month, day, name in holidays:
            holiday_date = date(year, month, day)
            if Holiday.objects.filter(date=holiday_date).exists():
                continue
            Holiday.objects.create(date=holiday_date, name=name, type=holiday_type, is_recurring=recurring)
            created += 1

    logger.info(f"Initialized {created} holiday(s) for {year}")
    return created
