"""
Lending calendar: weekends and registered holidays are non-lending days.

Due dates are always computed against this calendar so a book never falls due
on a day the library is closed.
"""
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from django.utils import timezone

# Monday is 0, so Saturday and Sunday
WEEKEND_DAYS = (5, 6)

END_OF_DAY = time(23, 59, 59, 999000)


def local_day(value) -> date:
    """Normalize a date or datetime to its calendar day in local time"""
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    return value


def end_of_day(day: date) -> datetime:
    """23:59:59.999 local time on the given day"""
    return timezone.make_aware(datetime.combine(day, END_OF_DAY))


class HolidayCalendar:
    """
    In-memory view of the holiday table.

    Holds the exact holiday dates plus the (month, day) pairs of recurring
    holidays, which block the same day in every year.
    """

    def __init__(self, holidays: Iterable = ()):
        self.dates = set()
        self.recurring = set()
        for holiday in holidays:
            day = local_day(holiday.date)
            self.dates.add(day)
            if holiday.is_recurring:
                self.recurring.add((day.month, day.day))

    @classmethod
    def load(cls):
        """Build the calendar from every stored holiday"""
        from .models import Holiday
        return cls(Holiday.objects.only('date', 'is_recurring'))

    def is_holiday(self, value) -> bool:
        day = local_day(value)
        return day in self.dates or (day.month, day.day) in self.recurring

    def is_lending_day(self, value) -> bool:
        day = local_day(value)
        if day.weekday() in WEEKEND_DAYS:
            return False
        return not self.is_holiday(day)


def is_lending_day(value, calendar: Optional[HolidayCalendar] = None) -> bool:
    if calendar is None:
        calendar = HolidayCalendar.load()
    return calendar.is_lending_day(value)


def compute_due_date(start, borrowing_days: int, calendar: Optional[HolidayCalendar] = None) -> datetime:
    """
    Count borrowing_days lending days after the start day and return the end
    of the last one.

    The start day itself is never counted, whether or not it is a lending day.

    Args:
        start (datetime): Checkout or renewal instant
        borrowing_days (int): Number of lending days in the loan period
        calendar (HolidayCalendar): Holidays to skip; loaded from the database if omitted

    Returns:
        datetime: Aware datetime at 23:59:59.999 local time
    """
    if calendar is None:
        calendar = HolidayCalendar.load()

    day = local_day(start)
    counted = 0
    while counted < borrowing_days:
        day += timedelta(days=1)
        if not calendar.is_lending_day(day):
            continue
        counted += 1

    return end_of_day(day)
