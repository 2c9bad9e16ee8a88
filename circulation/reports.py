"""
Scheduled jobs: the overdue sweep and the weekly/monthly summaries.

These are run by cron through management commands and may also be triggered
by an administrator from the dashboard. None of them changes books or
students; the sweep only raises the sticky overdue flag on loans.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from . import audit
from .models import Book, Loan, ReportSnapshot
from .policy import LoanPolicy

logger = logging.getLogger(__name__)

SWEEP_BATCH_SIZE = 500
WEEKLY_WINDOW_DAYS = 7
MONTHLY_WINDOW_DAYS = 30
WEEDING_THRESHOLD_DAYS = 180


def overdue_sweep(now=None, batch_size=SWEEP_BATCH_SIZE):
    """
    Flag every open loan whose due date has passed.

    Loans are processed in primary-key batches, each committed on its own, so
    an interrupted run leaves consistent rows behind and the next run picks up
    whatever is left. Running it again with nothing new to flag returns 0.

    With an overdueGracePeriod the flag trails the due date by that many days.
    Eligibility still refuses new checkouts from the raw due date, so during
    the grace window a student can be refused with HAS_OVERDUE while none of
    their loans is flagged yet.

    Args:
        now (datetime): Reference instant, defaults to the current time
        batch_size (int): Loans updated per transaction

    Returns:
        dict: {'overdue_count': number of loans newly flagged, 'checked_at': now}
    """
    now = now or timezone.now()
    policy = LoanPolicy.load()
    threshold = now - timedelta(days=policy.overdue_grace_period)

    pending = Loan.objects.filter(
        is_returned=False,
        is_overdue=False,
        due_date__lt=threshold,
    ).order_by('pk')

    flagged = 0
    last_pk = 0
    while True:
        batch = list(pending.filter(pk__gt=last_pk).values_list('pk', flat=True)[:batch_size])
        if not batch:
            break
        with transaction.atomic():
            # Re-check the flags so a concurrent check-in is never overwritten
            flagged += Loan.objects.filter(
                pk__in=batch, is_returned=False, is_overdue=False
            ).update(is_overdue=True)
        last_pk = batch[-1]

    audit.record(
        'cron_overdue_check', 'transaction', 'system',
        details={'overdue_count': flagged, 'checked_at': now},
        timestamp=now,
    )
    logger.info(f"Overdue sweep flagged {flagged} loan(s)")
    return {'overdue_count': flagged, 'checked_at': now}


def _window_counts(start, now):
    in_window = Loan.objects.filter(checkout_date__gte=start, checkout_date__lte=now)
    return {
        'total_checkouts': in_window.count(),
        'total_returns': in_window.filter(is_returned=True).count(),
        'overdue_returns': in_window.filter(is_returned=True, is_overdue=True).count(),
        'currently_overdue': Loan.objects.filter(is_returned=False, due_date__lt=now).count(),
    }


def weekly_summary(now=None):
    """
    Circulation rollup for the trailing seven days.

    Returns:
        ReportSnapshot: Newly stored snapshot
    """
    now = now or timezone.now()
    start = now - timedelta(days=WEEKLY_WINDOW_DAYS)

    data = _window_counts(start, now)

    snapshot = ReportSnapshot.objects.create(
        report_type=ReportSnapshot.TYPE_WEEKLY,
        period_start=start,
        period_end=now,
        generated_at=now,
        data=data,
    )
    logger.info(f"Weekly summary {snapshot.pk}: {data}")
    return snapshot


def weeding_candidates(now=None, days=WEEDING_THRESHOLD_DAYS):
    """Books never borrowed, or not borrowed in the last `days` days"""
    now = now or timezone.now()
    cutoff = now - timedelta(days=days)
    return Book.objects.filter(
        Q(last_borrowed_at__isnull=True) | Q(last_borrowed_at__lt=cutoff)
    )


def monthly_summary(now=None):
    """
    Collection and circulation rollup for the trailing thirty days.

    Returns:
        ReportSnapshot: Newly stored snapshot
    """
    now = now or timezone.now()
    start = now - timedelta(days=MONTHLY_WINDOW_DAYS)

    counts = _window_counts(start, now)
    by_status = {
        row['status']: row['total']
        for row in Book.objects.order_by().values('status').annotate(total=Count('id'))
    }
    collection_value = Book.objects.aggregate(total=Sum('replacement_cost'))['total'] or Decimal('0')

    data = {
        'total_books': Book.objects.count(),
        'available_books': by_status.get(Book.STATUS_AVAILABLE, 0),
        'borrowed_books': by_status.get(Book.STATUS_BORROWED, 0),
        'missing_books': by_status.get(Book.STATUS_MISSING, 0),
        'monthly_checkouts': counts['total_checkouts'],
        'monthly_returns': counts['total_returns'],
        'overdue_returns': counts['overdue_returns'],
        'currently_overdue': counts['currently_overdue'],
        'weeding_candidates_count': weeding_candidates(now).count(),
        'total_collection_value': str(collection_value),
    }

    snapshot = ReportSnapshot.objects.create(
        report_type=ReportSnapshot.TYPE_MONTHLY,
        period_start=start,
        period_end=now,
        generated_at=now,
        data=data,
    )
    logger.info(f"Monthly summary {snapshot.pk}: {data}")
    return snapshot
