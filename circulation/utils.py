"""
Utility functions for the library management system.
This module provides the read-only statistics behind the dashboard reports.
"""
import re
from datetime import timedelta
from decimal import Decimal

from django.db.models import Count, Sum
from django.utils import timezone

DEFAULT_STATS_WINDOW_DAYS = 30


def circulation_statistics(start=None, end=None):
    """
    Circulation counts for loans checked out within a period.

    Args:
        start (datetime): Period start, defaults to 30 days ago
        end (datetime): Period end, defaults to now

    Returns:
        dict: Checkouts, returns, overdue returns, current loans and the
        average loan duration in days
    """
    from .models import Loan

    now = timezone.now()
    end = end or now
    start = start or end - timedelta(days=DEFAULT_STATS_WINDOW_DAYS)

    in_period = Loan.objects.filter(checkout_date__gte=start, checkout_date__lte=end)
    active = Loan.objects.filter(is_returned=False)

    durations = [
        returned - checked_out
        for checked_out, returned in in_period.filter(
            return_date__isnull=False
        ).values_list('checkout_date', 'return_date')
    ]
    avg_days = 0
    if durations:
        avg_days = round(sum(d.total_seconds() for d in durations) / len(durations) / 86400, 1)

    return {
        'total_checkouts': in_period.count(),
        'total_checkins': in_period.filter(is_returned=True).count(),
        'overdue_returns': in_period.filter(is_overdue=True).count(),
        'current_active_loans': active.count(),
        'current_overdue': active.filter(due_date__lt=now).count(),
        'avg_loan_duration_days': avg_days,
    }


def overdue_report(now=None):
    """
    Open loans past their due date, most overdue first.

    Args:
        now (datetime): Reference instant

    Returns:
        list: One dict per overdue loan with student and book details
    """
    from .models import Loan

    now = now or timezone.now()
    overdue = Loan.objects.filter(
        is_returned=False,
        due_date__lt=now
    ).select_related('student', 'book').order_by('due_date')

    return [
        {
            'transaction_id': loan.pk,
            'student_name': loan.student.name,
            'student_id': loan.student.student_id,
            'grade_level': loan.student.grade_level,
            'phone': loan.student.phone or loan.student.guardian_phone,
            'book_title': loan.book.title,
            'accession_number': loan.book.accession_number,
            'replacement_cost': loan.book.replacement_cost,
            'due_date': loan.due_date,
            'days_overdue': loan.days_overdue(now),
            'checkout_date': loan.checkout_date,
        }
        for loan in overdue
    ]


def financial_summary(now=None):
    """
    Replacement value of the collection and of the copies at risk.

    Returns:
        dict: Collection, borrowed, overdue and missing values
    """
    from .models import Book, Loan

    now = now or timezone.now()
    zero = Decimal('0.00')

    def total(queryset, field):
        return queryset.aggregate(total=Sum(field))['total'] or zero

    active = Loan.objects.filter(is_returned=False)
    overdue = active.filter(due_date__lt=now)
    overdue_value = total(overdue, 'book__replacement_cost')
    missing_value = total(Book.objects.filter(status=Book.STATUS_MISSING), 'replacement_cost')

    return {
        'total_collection_value': total(Book.objects.all(), 'replacement_cost'),
        'borrowed_value': total(active, 'book__replacement_cost'),
        'overdue_value': overdue_value,
        'missing_value': missing_value,
        'value_at_risk': overdue_value + missing_value,
        'active_loans_count': active.count(),
        'overdue_loans_count': overdue.count(),
    }


def book_statistics():
    """Copies per status and total value of the collection"""
    from .models import Book

    by_status = {
        row['status']: row['total']
        for row in Book.objects.order_by().values('status').annotate(total=Count('id'))
    }
    return {
        'total': sum(by_status.values()),
        'by_status': {status: by_status.get(status, 0) for status, _ in Book.STATUS_CHOICES},
        'total_value': Book.objects.aggregate(total=Sum('replacement_cost'))['total'] or Decimal('0.00'),
    }


def student_statistics():
    """Registered, blocked and per-grade student counts"""
    from .models import Student

    total = Student.objects.count()
    blocked = Student.objects.filter(is_blocked=True).count()
    grades = Student.objects.order_by('grade_level').values('grade_level').annotate(total=Count('id'))

    return {
        'total': total,
        'blocked': blocked,
        'active': total - blocked,
        'grade_distribution': {row['grade_level']: row['total'] for row in grades},
    }


def get_popular_books(limit=10):
    """
    Get most popular books based on number of times borrowed.

    Args:
        limit (int): Number of books to return

    Returns:
        QuerySet: Top books ordered by popularity
    """
    from .models import Book

    return Book.objects.filter(total_borrows__gt=0).order_by('-total_borrows', 'title')[:limit]


def get_student_book_history(student, limit=50):
    """
    Get borrowing history for a student.

    Args:
        student: Student model instance
        limit (int): Maximum number of loans returned

    Returns:
        QuerySet: Loans for this student, newest first
    """
    from .models import Loan

    return Loan.objects.filter(
        student=student
    ).select_related('book').order_by('-checkout_date')[:limit]


def next_accession_number(prefix='B', year=None):
    """
    Suggest the next accession number in the PREFIX-YEAR-NNNN sequence.

    Args:
        prefix (str): Accession prefix, e.g. 'B'
        year (int): Sequence year, defaults to the current year

    Returns:
        str: e.g. 'B-2026-0042'
    """
    from .models import Book

    year = year or timezone.localtime().year
    base = f"{prefix}-{year}-"
    pattern = re.compile(rf'^{re.escape(base)}(\d+)$')

    highest = 0
    for number in Book.objects.filter(accession_number__startswith=base).values_list('accession_number', flat=True):
        match = pattern.match(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{base}{highest + 1:04d}"


def inventory_status(since=None, location=None, category=None, now=None, missing_limit=50):
    """
    Discrepancy check after a shelf inventory.

    A copy counts as inventoried when it was scanned at or after `since`.
    Available copies that were not scanned are potentially missing: the
    catalogue says they are on the shelf but nobody saw them there.

    Args:
        since (datetime): Start of the inventory run, defaults to 24 hours ago
        location (str): Only copies shelved here
        category (str): Only copies in this category
        missing_limit (int): Cap on the potentially missing copies listed

    Returns:
        dict: Counts plus the inventoried and potentially missing copies
    """
    from .models import Book

    now = now or timezone.now()
    since = since or now - timedelta(hours=24)

    books = Book.objects.all()
    if location:
        books = books.filter(location=location)
    if category:
        books = books.filter(category=category)

    inventoried = books.filter(last_inventoried_at__gte=since)
    not_inventoried = books.exclude(pk__in=inventoried.values('pk'))
    missing = not_inventoried.filter(status=Book.STATUS_AVAILABLE).order_by('location', 'accession_number')

    return {
        'since': since,
        'total': books.count(),
        'inventoried': inventoried.count(),
        'not_inventoried': not_inventoried.count(),
        'potentially_missing': missing.count(),
        'inventoried_books': inventoried.order_by('-last_inventoried_at'),
        'missing_books': missing[:missing_limit],
    }


def _distinct_values(field):
    from .models import Book

    return list(
        Book.objects.exclude(**{field: ''}).order_by(field).values_list(field, flat=True).distinct()
    )


def get_locations():
    """Shelf locations in use, sorted"""
    return _distinct_values('location')


def get_categories():
    """Book categories in use, sorted"""
    return _distinct_values('category')


PERIODS = ('daily', 'weekly', 'monthly')


def _period_key(moment, period):
    day = timezone.localtime(moment).date()
    if period == 'daily':
        return day.isoformat()
    if period == 'weekly':
        # Weeks start on Sunday
        return (day - timedelta(days=(day.weekday() + 1) % 7)).isoformat()
    return f"{day.year}-{day.month:02d}"


def circulation_by_period(period, start=None, end=None):
    """
    Checkouts, returns and renewals grouped by day, week or month.

    Loans are bucketed by their local checkout date. A loan returned later
    still counts as a return in the bucket it was checked out in.

    Args:
        period (str): 'daily', 'weekly' or 'monthly'
        start (datetime): Range start, defaults to 30 days before end
        end (datetime): Range end, defaults to now

    Returns:
        list: One dict per non-empty bucket, oldest first
    """
    from .models import Loan

    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period}")

    end = end or timezone.now()
    start = start or end - timedelta(days=DEFAULT_STATS_WINDOW_DAYS)

    buckets = {}
    loans = Loan.objects.filter(checkout_date__gte=start, checkout_date__lte=end).values_list(
        'checkout_date', 'is_returned', 'renewal_count'
    )
    for checkout_date, is_returned, renewal_count in loans:
        bucket = buckets.setdefault(
            _period_key(checkout_date, period), {'checkouts': 0, 'returns': 0, 'renewals': 0}
        )
        bucket['checkouts'] += 1
        if is_returned:
            bucket['returns'] += 1
        bucket['renewals'] += renewal_count

    return [{'period': key, **buckets[key]} for key in sorted(buckets)]


def circulation_by_grade(start=None, end=None):
    """Checkouts and distinct borrowers per grade level"""
    from .models import Loan

    end = end or timezone.now()
    start = start or end - timedelta(days=DEFAULT_STATS_WINDOW_DAYS)

    rows = Loan.objects.filter(
        checkout_date__gte=start, checkout_date__lte=end
    ).order_by('student__grade_level').values('student__grade_level').annotate(
        checkouts=Count('id'),
        unique_students=Count('student', distinct=True),
    )
    return [
        {
            'grade': row['student__grade_level'],
            'checkouts': row['checkouts'],
            'unique_students': row['unique_students'],
        }
        for row in rows
    ]


DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


def peak_usage(start=None, end=None):
    """
    When checkouts happen, by local day of week and hour of day.

    Returns:
        dict: 'by_day_of_week' (Sunday first) and 'by_hour' (0-23), every
        slot present even when its count is zero
    """
    from .models import Loan

    end = end or timezone.now()
    start = start or end - timedelta(days=DEFAULT_STATS_WINDOW_DAYS)

    by_day = [0] * 7
    by_hour = [0] * 24
    for checkout_date in Loan.objects.filter(
        checkout_date__gte=start, checkout_date__lte=end
    ).values_list('checkout_date', flat=True):
        local = timezone.localtime(checkout_date)
        by_day[(local.weekday() + 1) % 7] += 1
        by_hour[local.hour] += 1

    return {
        'by_day_of_week': [
            {'day': name, 'day_index': index, 'count': by_day[index]}
            for index, name in enumerate(DAY_NAMES)
        ],
        'by_hour': [
            {'hour': hour, 'label': f"{hour:02d}:00", 'count': by_hour[hour]}
            for hour in range(24)
        ],
    }
