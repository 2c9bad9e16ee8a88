"""
Checkout eligibility rules.

The same checks back the live pre-check shown while staff (or a student at
the kiosk) scan a book, and the gate inside the checkout mutation itself.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from django.utils import timezone

from .exceptions import NotFound, PolicyViolation, ReasonCode
from .models import Book, Loan, Student


@dataclass
class Eligibility:
    ok: bool
    reason: Optional[str] = None
    message: str = ''
    details: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self):
        data = {'ok': self.ok}
        if not self.ok:
            data.update({'reason': self.reason, 'message': self.message, **self.details})
        return data

    def to_exception(self):
        exc_class = NotFound if self.reason in (
            ReasonCode.STUDENT_NOT_FOUND, ReasonCode.BOOK_NOT_FOUND
        ) else PolicyViolation
        return exc_class(self.reason, self.message, **self.details)


def _resolve(model, ref, lock=False):
    if ref is None:
        return None
    if isinstance(ref, model):
        if not lock:
            return ref
        ref = ref.pk
    queryset = model.objects.select_for_update() if lock else model.objects
    return queryset.filter(pk=ref).first()


def check_eligibility(student, book, now=None):
    """
    Decide whether student may borrow book right now.

    Checks run in a fixed order and the first failure wins: the student's
    own problems are reported before anything about the book.

    Args:
        student: Student instance or None
        book: Book instance or None
        now (datetime): Reference instant for overdue detection

    Returns:
        Eligibility: ok, or the failing reason with its details
    """
    now = now or timezone.now()

    if student is None:
        return Eligibility(False, ReasonCode.STUDENT_NOT_FOUND, "Student not found")

    if student.is_blocked:
        return Eligibility(
            False, ReasonCode.STUDENT_BLOCKED,
            f"Student is blocked: {student.block_reason or 'Contact librarian'}",
            {'block_reason': student.block_reason},
        )

    if book is None:
        return Eligibility(False, ReasonCode.BOOK_NOT_FOUND, "Book not found")

    if book.status != Book.STATUS_AVAILABLE:
        return Eligibility(
            False, ReasonCode.BOOK_NOT_AVAILABLE,
            f"Book is not available (status: {book.status})",
            {'status': book.status},
        )

    open_loans = list(
        Loan.objects.filter(student=student, is_returned=False).only('due_date')
    )
    count = len(open_loans)
    if count >= student.borrowing_limit:
        return Eligibility(
            False, ReasonCode.LIMIT_REACHED,
            f"Borrowing limit reached ({count}/{student.borrowing_limit})",
            {'count': count, 'limit': student.borrowing_limit},
        )

    overdue = sum(1 for loan in open_loans if loan.due_date < now)
    if overdue:
        return Eligibility(
            False, ReasonCode.HAS_OVERDUE,
            f"Student has {overdue} overdue book(s)",
            {'overdue_count': overdue},
        )

    return Eligibility(ok=True)


def load_and_check(student_ref, book_ref, now=None, lock=False):
    """
    Look up both parties and run the eligibility checks.

    With lock=True the student row, then the book row, are locked for the
    rest of the enclosing transaction.

    Returns:
        tuple: (Eligibility, student or None, book or None)
    """
    student = _resolve(Student, student_ref, lock=lock)
    book = _resolve(Book, book_ref, lock=lock) if student is not None else None
    return check_eligibility(student, book, now), student, book


def validate_borrow(student_ref, book_ref, now=None):
    """Read-only pre-check; never raises for a rule violation"""
    eligibility, _, _ = load_and_check(student_ref, book_ref, now)
    return eligibility
