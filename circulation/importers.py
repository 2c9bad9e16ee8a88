"""
Bulk creation of students and books from already-parsed rows.

Rows whose identifier already exists, or that repeat an identifier seen
earlier in the same batch, are skipped and reported instead of failing the
whole import.
"""
import logging

from django.db import IntegrityError, transaction

from . import audit
from .models import Book, Student
from .policy import LoanPolicy
from .serializers import BookImportSerializer, StudentImportSerializer

logger = logging.getLogger(__name__)


def _row_errors(index, errors):
    messages = []
    for field, field_errors in errors.items():
        for error in field_errors:
            messages.append(f"Row {index}: {field}: {error}")
    return messages


def find_duplicates(model, field, identifiers):
    """Identifiers that already exist, in the order given"""
    existing = set(
        model.objects.filter(**{f'{field}__in': identifiers}).values_list(field, flat=True)
    )
    return [identifier for identifier in identifiers if identifier in existing]


def _import(rows, model, field, row_serializer, build, librarian=None, device=''):
    results = {'created': 0, 'skipped': 0, 'errors': []}
    rows_checked = [row_serializer(data=row) for row in rows]
    identifiers = [s.validated_data[field] for s in rows_checked if s.is_valid()]
    existing = set(find_duplicates(model, field, identifiers))
    seen = set()

    with transaction.atomic():
        for index, serializer in enumerate(rows_checked, start=1):
            if not serializer.is_valid():
                results['errors'].extend(_row_errors(index, serializer.errors))
                continue

            data = serializer.validated_data
            identifier = data[field]
            if identifier in existing or identifier in seen:
                results['skipped'] += 1
                results['errors'].append(f"Duplicate: {identifier}")
                continue

            # A row created concurrently still counts as a duplicate
            try:
                with transaction.atomic():
                    build(data)
            except IntegrityError:
                logger.warning(f"{model._meta.verbose_name} {identifier} already exists; skipped")
                results['skipped'] += 1
                results['errors'].append(f"Duplicate: {identifier}")
                continue
            seen.add(identifier)
            results['created'] += 1

        audit.record(
            'bulk_import', model._meta.model_name, '',
            details={'created': results['created'], 'skipped': results['skipped']},
            librarian=librarian,
            device=device,
        )

    logger.info(
        f"Bulk import of {model._meta.verbose_name_plural}: {results['created']} created, "
        f"{results['skipped']} skipped, {len(results['errors'])} error(s)"
    )
    return results


def import_students(rows, librarian=None, device=''):
    """
    Create students in bulk.

    Each student's borrowing limit comes from their grade band.

    Args:
        rows (list): Dicts with student_id, name, grade_level and optional contact fields
        librarian: Acting Librarian for the audit trail

    Returns:
        dict: {'created': int, 'skipped': int, 'errors': [str]}
    """
    policy = LoanPolicy.load()

    def build(data):
        Student.objects.create(
            borrowing_limit=policy.borrowing_limit(data['grade_level']),
            is_blocked=False,
            **data
        )

    return _import(rows, Student, 'student_id', StudentImportSerializer, build, librarian, device)


def import_books(rows, librarian=None, device=''):
    """
    Create books in bulk; every new copy starts out available.

    Returns:
        dict: {'created': int, 'skipped': int, 'errors': [str]}
    """
    def build(data):
        Book.objects.create(status=Book.STATUS_AVAILABLE, total_borrows=0, **data)

    return _import(rows, Book, 'accession_number', BookImportSerializer, build, librarian, device)
