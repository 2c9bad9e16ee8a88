"""
Loan lifecycle: checkout, check-in and renewal.

Every operation runs in a single database transaction and locks the rows it
reads before writing, so concurrent kiosk and dashboard calls cannot put two
open loans on one book or push a student past their limit. A rejected call
raises a CirculationError and leaves nothing behind.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from . import audit
from .eligibility import load_and_check
from .exceptions import NotFound, PolicyViolation, ReasonCode
from .lending_calendar import HolidayCalendar, compute_due_date
from .models import Book, Loan
from .policy import LoanPolicy

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@dataclass
class CheckoutResult:
    transaction_id: int
    due_date: datetime


@dataclass
class CheckInResult:
    transaction_id: int
    was_overdue: bool
    days_overdue: int


@dataclass
class RenewResult:
    transaction_id: int
    new_due_date: datetime
    renewal_count: int


def _pk(ref):
    return ref.pk if hasattr(ref, 'pk') else ref


def checkout(student, book, device=Loan.DEVICE_ADMIN_DASHBOARD, librarian=None, now=None):
    """
    Lend a book to a student.

    Args:
        student: Student instance or primary key
        book: Book instance or primary key
        device (str): Originating surface, recorded on the loan and audit entry
        librarian: Acting Librarian, None for kiosk checkouts
        now (datetime): Checkout instant, defaults to the current time

    Returns:
        CheckoutResult: New loan id and its due date

    Raises:
        NotFound: Student or book does not exist
        PolicyViolation: Any eligibility rule failed
    """
    now = now or timezone.now()

    try:
        with transaction.atomic():
            eligibility, student_obj, book_obj = load_and_check(
                _pk(student), _pk(book), now=now, lock=True
            )
            if not eligibility.ok:
                raise eligibility.to_exception()

            policy = LoanPolicy.load()
            due_date = compute_due_date(now, policy.borrowing_days, HolidayCalendar.load())

            loan = Loan.objects.create(
                student=student_obj,
                book=book_obj,
                librarian=librarian,
                checkout_date=now,
                due_date=due_date,
                is_returned=False,
                is_overdue=False,
                renewal_count=0,
                max_renewals=policy.max_renewals,
                device=device or '',
            )

            Book.objects.filter(pk=book_obj.pk).update(
                status=Book.STATUS_BORROWED,
                last_borrowed_at=now,
                total_borrows=F('total_borrows') + 1,
                updated_at=now,
            )

            audit.record(
                'checkout', 'transaction', loan.pk,
                details={
                    'student_id': student_obj.pk,
                    'student_name': student_obj.name,
                    'book_id': book_obj.pk,
                    'book_title': book_obj.title,
                    'accession_number': book_obj.accession_number,
                    'due_date': due_date,
                },
                librarian=librarian,
                device=device,
                timestamp=now,
            )
    except IntegrityError:
        # Another open loan for this copy slipped in concurrently
        logger.warning(f"Concurrent checkout rejected for book {_pk(book)}")
        raise PolicyViolation(
            ReasonCode.BOOK_NOT_AVAILABLE,
            "Book is not available (status: borrowed)",
            status=Book.STATUS_BORROWED,
        )

    logger.info(
        f"Checkout: book {book_obj.accession_number} to student {student_obj.student_id} "
        f"via {device}, due {due_date.isoformat()}"
    )
    return CheckoutResult(transaction_id=loan.pk, due_date=due_date)


def check_in(book, device=Loan.DEVICE_ADMIN_DASHBOARD, notes=None, librarian=None, now=None):
    """
    Return a book and close its open loan.

    Raises:
        NotFound: Book does not exist
        PolicyViolation: NO_ACTIVE_LOAN when the book is not checked out
    """
    now = now or timezone.now()

    with transaction.atomic():
        book_obj = Book.objects.select_for_update().filter(pk=_pk(book)).first()
        if book_obj is None:
            raise NotFound(ReasonCode.BOOK_NOT_FOUND, "Book not found")

        loan = (
            Loan.objects.select_for_update()
            .filter(book=book_obj, is_returned=False)
            .first()
        )
        if loan is None:
            raise PolicyViolation(ReasonCode.NO_ACTIVE_LOAN, "No active loan found for this book")

        was_overdue = loan.due_date < now
        days_overdue = (now - loan.due_date) // ONE_DAY if was_overdue else 0

        loan.return_date = now
        loan.is_returned = True
        loan.is_overdue = loan.is_overdue or was_overdue
        update_fields = ['return_date', 'is_returned', 'is_overdue']
        if notes:
            loan.notes = notes
            update_fields.append('notes')
        loan.save(update_fields=update_fields)

        Book.objects.filter(pk=book_obj.pk).update(status=Book.STATUS_AVAILABLE, updated_at=now)

        audit.record(
            'checkin', 'transaction', loan.pk,
            details={
                'student_id': loan.student_id,
                'book_id': book_obj.pk,
                'accession_number': book_obj.accession_number,
                'was_overdue': was_overdue,
                'days_overdue': days_overdue,
            },
            librarian=librarian,
            device=device,
            timestamp=now,
        )

    if was_overdue:
        logger.info(f"Check-in: book {book_obj.accession_number} returned {days_overdue} day(s) late via {device}")
    else:
        logger.info(f"Check-in: book {book_obj.accession_number} returned via {device}")
    return CheckInResult(transaction_id=loan.pk, was_overdue=was_overdue, days_overdue=days_overdue)


def renew(transaction_id, device=Loan.DEVICE_ADMIN_DASHBOARD, librarian=None, now=None):
    """
    Extend an open loan.

    The renewal ceiling is the one captured at checkout, while the new loan
    period comes from the borrowing-days setting in force today.

    Raises:
        NotFound: Loan does not exist
        PolicyViolation: Already returned, out of renewals, or overdue
    """
    now = now or timezone.now()

    with transaction.atomic():
        try:
            loan = Loan.objects.select_for_update().filter(pk=_pk(transaction_id)).first()
        except (TypeError, ValueError):
            loan = None
        if loan is None:
            raise NotFound(ReasonCode.NOT_FOUND, "Transaction not found")
        if loan.is_returned:
            raise PolicyViolation(ReasonCode.ALREADY_RETURNED, "Book has already been returned")
        if loan.renewal_count >= loan.max_renewals:
            raise PolicyViolation(
                ReasonCode.MAX_RENEWALS_REACHED,
                f"Maximum renewals ({loan.max_renewals}) reached",
                renewal_count=loan.renewal_count,
                max_renewals=loan.max_renewals,
            )
        if loan.due_date < now:
            raise PolicyViolation(ReasonCode.CANNOT_RENEW_OVERDUE, "Cannot renew overdue books")

        policy = LoanPolicy.load()
        previous_due_date = loan.due_date
        new_due_date = compute_due_date(now, policy.borrowing_days, HolidayCalendar.load())

        loan.due_date = new_due_date
        loan.renewal_count += 1
        loan.save(update_fields=['due_date', 'renewal_count'])

        audit.record(
            'renew', 'transaction', loan.pk,
            details={
                'previous_due_date': previous_due_date,
                'new_due_date': new_due_date,
                'renewal_count': loan.renewal_count,
            },
            librarian=librarian,
            device=device,
            timestamp=now,
        )

    logger.info(f"Renewal {loan.renewal_count}/{loan.max_renewals} for loan {loan.pk}, due {new_due_date.isoformat()}")
    return RenewResult(transaction_id=loan.pk, new_due_date=new_due_date, renewal_count=loan.renewal_count)

